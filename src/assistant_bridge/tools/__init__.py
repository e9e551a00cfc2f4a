"""Tool registry for the assistant bridge."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from . import demo_tools, scrape_tools
from .registry import DuplicateToolError, ToolNotFoundError, ToolRegistry


def build_tool_registry() -> ToolRegistry:
    """Merge the tools of every tool module; duplicate names fail startup."""

    return ToolRegistry.from_tool_lists(
        demo_tools.get_tools(),
        scrape_tools.get_tools(),
    )


def get_continuations() -> Dict[str, Callable[[str], Optional[Awaitable[Any]]]]:
    """Completion hooks selectable by name in ``whenDone``."""

    return {"runAfter": demo_tools.run_after}


__all__ = [
    "DuplicateToolError",
    "ToolNotFoundError",
    "ToolRegistry",
    "build_tool_registry",
    "get_continuations",
]
