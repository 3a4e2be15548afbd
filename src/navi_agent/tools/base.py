"""
Base classes for tools.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..llm.base import ToolDefinition


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


@dataclass
class Tool:
    """
    A tool the model can call, wrapping an async handler.

    The handler receives the model-supplied input as keyword arguments and
    returns the result text. Raising signals failure; the agent loop turns
    the exception message into an error tool result.
    """

    name: str
    description: str
    handler: Callable[..., Awaitable[str]]
    parameters: list[ToolParameter] = field(default_factory=list)

    def get_parameters_schema(self) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        properties = {}
        required = []

        for param in self.parameters:
            prop: dict[str, Any] = {
                "type": param.param_type,
                "description": param.description,
            }
            if param.enum:
                prop["enum"] = param.enum
            if param.default is not None:
                prop["default"] = param.default

            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    def to_definition(self) -> ToolDefinition:
        """Wire-safe projection for provider requests."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.get_parameters_schema(),
        )

    async def execute(self, input: dict[str, Any]) -> str:
        """Execute the tool handler."""
        return await self.handler(**input)
