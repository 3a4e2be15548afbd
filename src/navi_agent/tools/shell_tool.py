"""
Shell Command Tool - execute a shell command and return its output.

A failing command is not an exception: its stdout/stderr (or exit status)
is returned so the model can react to it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .base import Tool, ToolParameter

logger = logging.getLogger(__name__)


@dataclass
class ShellConfig:
    """Configuration for shell command execution."""

    timeout_seconds: float = 30.0
    max_output_chars: int = 1024 * 1024
    working_dir: Optional[str] = None


class ShellExecutor:
    """Executes shell commands with a timeout and output limit."""

    def __init__(self, config: Optional[ShellConfig] = None):
        self.config = config or ShellConfig()

    async def execute(self, command: str) -> tuple[int, str, str]:
        """
        Execute a shell command.

        Returns:
            Tuple of (return_code, stdout, stderr)
        """
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.config.working_dir,
        )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.timeout_seconds,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command timed out: {command}")
            return -1, "", f"Command timed out after {self.config.timeout_seconds} seconds"

        return (
            process.returncode if process.returncode is not None else -1,
            self._truncate_output(stdout.decode("utf-8", errors="replace")),
            self._truncate_output(stderr.decode("utf-8", errors="replace")),
        )

    def _truncate_output(self, output: str) -> str:
        """Truncate output to the configured limit."""
        if len(output) > self.config.max_output_chars:
            return output[:self.config.max_output_chars] + "\n\n... (truncated)"
        return output


def format_command_output(return_code: int, stdout: str, stderr: str) -> str:
    """Combine command output into the text returned to the model."""
    if return_code == 0:
        return stdout

    parts = [part for part in (stdout, stderr) if part]
    if not parts:
        parts.append(f"Command failed with exit code {return_code}")
    return "\n".join(parts)


def create_shell_tools(config: Optional[ShellConfig] = None) -> list[Tool]:
    """Create shell-related tools."""
    executor = ShellExecutor(config)

    async def exec_handler(command: str) -> str:
        """Execute a shell command."""
        return_code, stdout, stderr = await executor.execute(str(command))
        return format_command_output(return_code, stdout, stderr)

    exec_tool = Tool(
        name="exec",
        description="Execute a shell command and return its output. Use with caution.",
        parameters=[
            ToolParameter(
                name="command",
                param_type="string",
                description="Shell command to execute",
            ),
        ],
        handler=exec_handler,
    )

    return [exec_tool]
