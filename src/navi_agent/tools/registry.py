"""
Tool registry for managing available tools.
"""

import structlog

from ..llm.base import ToolDefinition
from .base import Tool

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.debug("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the provider request."""
        return [tool.to_definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def create_default_registry() -> ToolRegistry:
    """Create a registry holding the built-in file and shell tools."""
    from .file_tool import create_file_tools
    from .shell_tool import create_shell_tools

    return ToolRegistry([*create_file_tools(), *create_shell_tools()])
