"""
File Operations Tools - read, write and list files.

Paths are resolved against the current working directory. Failures are
raised with a message naming the path; the agent loop reports them to the
model as error results.
"""

import logging
from pathlib import Path

from .base import Tool, ToolParameter

logger = logging.getLogger(__name__)


def _resolve(path: str) -> Path:
    return Path(str(path)).expanduser().resolve()


async def read_file_handler(path: str) -> str:
    """Read a file."""
    file_path = _resolve(path)
    try:
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RuntimeError(f"Failed to read {file_path}: {e}") from e


async def write_file_handler(path: str, content: str) -> str:
    """Write to a file, creating or overwriting it."""
    file_path = _resolve(path)
    content = str(content)
    try:
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise RuntimeError(f"Failed to write {file_path}: {e}") from e

    logger.info(f"Wrote {len(content)} characters to {file_path}")
    return f"Wrote {len(content)} bytes to {file_path}"


async def list_dir_handler(path: str) -> str:
    """List a directory; subdirectories are suffixed with '/'."""
    dir_path = _resolve(path)
    try:
        entries = sorted(dir_path.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise RuntimeError(f"Failed to list {dir_path}: {e}") from e

    lines = []
    for entry in entries:
        try:
            lines.append(f"{entry.name}/" if entry.is_dir() else entry.name)
        except OSError:
            lines.append(entry.name)
    return "\n".join(lines)


def create_file_tools() -> list[Tool]:
    """Create file operation tools."""
    read_file = Tool(
        name="read_file",
        description="Read the contents of a file at the given path.",
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the file to read",
            ),
        ],
        handler=read_file_handler,
    )

    write_file = Tool(
        name="write_file",
        description=(
            "Write content to a file at the given path. Creates the file if it "
            "doesn't exist, overwrites if it does."
        ),
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the file to write",
            ),
            ToolParameter(
                name="content",
                param_type="string",
                description="Content to write to the file",
            ),
        ],
        handler=write_file_handler,
    )

    list_dir = Tool(
        name="list_dir",
        description=(
            "List the contents of a directory. Returns file names with type "
            "indicators (/ for directories)."
        ),
        parameters=[
            ToolParameter(
                name="path",
                param_type="string",
                description="Path to the directory to list",
            ),
        ],
        handler=list_dir_handler,
    )

    return [read_file, write_file, list_dir]
