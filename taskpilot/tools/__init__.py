"""
TaskPilot Tools - External capabilities invoked by plan steps

Usage:
    from taskpilot.tools import Tool, tool, BUILTIN_TOOLS

    @tool(tags=["data"])
    async def lookup(text: str) -> str:
        ...
"""

from .models import Tool
from .decorator import tool
from .builtin import BUILTIN_TOOLS, calculator, web_fetch

__all__ = [
    "Tool",
    "tool",
    "BUILTIN_TOOLS",
    "calculator",
    "web_fetch",
]
