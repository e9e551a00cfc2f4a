"""Name-to-handler registry for assistant function tools."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Dict

from langchain_core.tools import BaseTool

logger = logging.getLogger(__name__)


class ToolNotFoundError(Exception):
    """Raised when a tool name has no registered handler."""

    def __init__(self, name: str):
        super().__init__(f"Function {name} not supported")
        self.name = name


class DuplicateToolError(Exception):
    """Raised at startup when two tool modules declare the same name."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is registered more than once.")
        self.name = name


def _coerce_output(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class ToolRegistry:
    """Read-only mapping from function name to a LangChain tool."""

    def __init__(self, tools: Mapping[str, BaseTool] | None = None) -> None:
        self._tools: Dict[str, BaseTool] = dict(tools or {})

    @classmethod
    def from_tool_lists(cls, *tool_lists: Iterable[BaseTool]) -> "ToolRegistry":
        """Merge the tool lists of several modules, failing on name collisions."""

        merged: Dict[str, BaseTool] = {}
        for tools in tool_lists:
            for tool in tools:
                if tool.name in merged:
                    raise DuplicateToolError(tool.name)
                merged[tool.name] = tool
        return cls(merged)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> Sequence[str]:
        return sorted(self._tools)

    def get(self, name: str) -> BaseTool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    async def invoke(self, name: str, args: Mapping[str, Any]) -> str:
        """Run a tool and return its output as text.

        Failures inside the handler are returned as an error string so the
        remote run always receives an output for the call.
        """

        tool = self.get(name)
        try:
            result = await tool.ainvoke(dict(args))
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return f"{type(exc).__name__}: {exc}"
        return _coerce_output(result)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
