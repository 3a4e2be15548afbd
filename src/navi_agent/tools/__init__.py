"""
Tools module for agent capabilities.
"""

from .base import Tool, ToolParameter
from .exec_approval import DANGEROUS_TOOLS, RiskLevel, needs_confirmation
from .registry import ToolRegistry, create_default_registry

__all__ = [
    "Tool",
    "ToolParameter",
    "DANGEROUS_TOOLS",
    "RiskLevel",
    "needs_confirmation",
    "ToolRegistry",
    "create_default_registry",
]
