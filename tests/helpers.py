"""Builders for fake Assistants API objects."""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any


def make_run(
    status: str = "completed",
    run_id: str = "run_1",
    tool_calls: list[Any] | None = None,
    last_error: Any = None,
    incomplete_details: Any = None,
) -> SimpleNamespace:
    required_action = None
    if tool_calls is not None:
        required_action = SimpleNamespace(submit_tool_outputs=SimpleNamespace(tool_calls=tool_calls))
    return SimpleNamespace(
        id=run_id,
        status=status,
        required_action=required_action,
        last_error=last_error,
        incomplete_details=incomplete_details,
    )


def make_tool_call(call_id: str, name: str, arguments: Any = None) -> SimpleNamespace:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments or {})
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def make_text_message(value: str, annotations: list[Any] | None = None, role: str = "assistant") -> SimpleNamespace:
    block = SimpleNamespace(type="text", text=SimpleNamespace(value=value, annotations=annotations or []))
    return SimpleNamespace(role=role, content=[block])


def make_image_message(role: str = "assistant") -> SimpleNamespace:
    block = SimpleNamespace(type="image_file", image_file=SimpleNamespace(file_id="file-img"))
    return SimpleNamespace(role=role, content=[block])


def make_thread(thread_id: str = "thread_1", metadata: dict[str, Any] | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=thread_id, metadata=metadata or {})


def function_tool(name: str) -> SimpleNamespace:
    return SimpleNamespace(type="function", function=SimpleNamespace(name=name))


def builtin_tool(tool_type: str) -> SimpleNamespace:
    return SimpleNamespace(type=tool_type)


def make_assistant(
    assistant_id: str,
    name: str | None,
    tools: list[Any] | None = None,
    instructions: str | None = None,
    model: str = "gpt-4o",
) -> SimpleNamespace:
    return SimpleNamespace(
        id=assistant_id,
        name=name,
        instructions=instructions,
        model=model,
        tools=tools or [],
    )
