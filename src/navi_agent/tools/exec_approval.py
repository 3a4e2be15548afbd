"""
Execution approval - which tool calls need the caller's confirmation.

Tools are classified by risk level. Dangerous tools (shell execution, file
writes) are routed through the caller's confirmation callback before they
run; a denial becomes an error tool result.
"""

from enum import Enum
from typing import Any


class RiskLevel(str, Enum):
    """Risk classification for tool operations."""
    SAFE = "safe"              # read-only - auto-execute
    DANGEROUS = "dangerous"    # shell, file write - require confirmation


DEFAULT_RISK_MAP: dict[str, RiskLevel] = {
    "read_file": RiskLevel.SAFE,
    "list_dir": RiskLevel.SAFE,
    "exec": RiskLevel.DANGEROUS,
    "write_file": RiskLevel.DANGEROUS,
}

DANGEROUS_TOOLS: frozenset[str] = frozenset(
    name for name, level in DEFAULT_RISK_MAP.items() if level == RiskLevel.DANGEROUS
)


def get_risk_level(tool_name: str) -> RiskLevel:
    """Get the risk level for a tool. Unknown tools are treated as safe."""
    return DEFAULT_RISK_MAP.get(tool_name, RiskLevel.SAFE)


def needs_confirmation(tool_name: str) -> bool:
    """Check if a tool call must be confirmed before execution."""
    return tool_name in DANGEROUS_TOOLS


def format_confirmation_prompt(tool_name: str, arguments: dict[str, Any]) -> str:
    """Format a confirmation request for display."""
    args_display = "\n".join(
        f"  {k}: {str(v)[:200]}" for k, v in arguments.items()
    )
    return (
        f"Allow {tool_name} ({get_risk_level(tool_name).value})?\n"
        f"{args_display}\n"
        "[y/N] "
    )
