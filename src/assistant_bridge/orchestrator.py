"""Drives assistant runs to a terminal state, answering tool calls on the way."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from .background import BackgroundTasks
from .provider import AssistantProvider
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled", "expired", "incomplete"})

Continuation = Callable[[str], Optional[Awaitable[Any]]]


class OrchestrationProtocolError(Exception):
    """The remote run asked for tool outputs without saying which."""

    def __init__(self, message: str, run_id: str | None = None):
        super().__init__(message)
        self.run_id = run_id


class RunTimeoutError(Exception):
    """The run did not reach a terminal state within the polling budget."""

    def __init__(self, run_id: str, status: str, polls: int):
        super().__init__(f"Run {run_id} still '{status}' after {polls} poll(s)")
        self.run_id = run_id
        self.status = status
        self.polls = polls


class ResponseUnavailableError(Exception):
    """The thread has no assistant text message to return."""


@dataclass(slots=True)
class RunResult:
    response: Any
    status_code: int
    thread_id: str | None
    success: bool
    status: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "statusCode": self.status_code,
            "threadId": self.thread_id,
        }


def remove_annotations(text: str, annotations: Iterable[Any] | None) -> str:
    """Cut each annotation's exact span text out of ``text`` (first occurrence)."""

    for annotation in annotations or ():
        span = annotation.get("text") if isinstance(annotation, dict) else getattr(annotation, "text", None)
        if span:
            text = text.replace(span, "", 1)
    return text


def _error_detail(run: Any) -> Any:
    for attr in ("last_error", "incomplete_details"):
        detail = getattr(run, attr, None)
        if detail:
            return detail.model_dump() if hasattr(detail, "model_dump") else detail
    return f"Run {run.id} ended with status {run.status}"


def _requested_tool_calls(run: Any) -> list[Any]:
    required = getattr(run, "required_action", None)
    submit = getattr(required, "submit_tool_outputs", None) if required is not None else None
    tool_calls = getattr(submit, "tool_calls", None) if submit is not None else None
    if not tool_calls:
        raise OrchestrationProtocolError(
            f"Run {run.id} requires action but lists no tool calls.", run_id=run.id
        )
    return list(tool_calls)


class RunOrchestrator:
    """State machine for a single assistant run.

    The orchestrator only observes run status; the one transition it causes is
    submitting tool outputs.
    """

    def __init__(
        self,
        provider: AssistantProvider,
        registry: ToolRegistry,
        background: BackgroundTasks,
        *,
        poll_interval: float = 1.0,
        max_poll_attempts: int | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._background = background
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._timeout = timeout
        self._clock = clock

    async def run(self, thread_id: str, assistant_id: str) -> RunResult:
        """Create a run and wait for it to finish."""

        run = await self._provider.create_run(thread_id, assistant_id)
        logger.info("Created run %s on thread %s (assistant %s)", run.id, thread_id, assistant_id)
        return await self.process_run(thread_id, run.id)

    async def start(self, thread_id: str, assistant_id: str, on_complete: Continuation) -> RunResult:
        """Create a run and finish it in the background.

        ``on_complete`` is called with the thread id once the run reaches a
        terminal state.
        """

        run = await self._provider.create_run(thread_id, assistant_id)
        logger.info("Queued run %s on thread %s (assistant %s)", run.id, thread_id, assistant_id)
        self._background.spawn(
            self._finish_in_background(thread_id, run.id, on_complete),
            name=f"run-{run.id}",
        )
        return RunResult(
            response=f"Thread {thread_id} queued for execution",
            status_code=200,
            thread_id=thread_id,
            success=True,
            status="queued",
        )

    async def _finish_in_background(self, thread_id: str, run_id: str, on_complete: Continuation) -> None:
        try:
            result = await self.process_run(thread_id, run_id)
        except Exception:
            logger.exception("Background run %s on thread %s failed", run_id, thread_id)
            return

        logger.info("Background run %s finished with status %s", run_id, result.status)
        try:
            outcome = on_complete(thread_id)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("Completion handler for thread %s failed", thread_id)

    async def process_run(self, thread_id: str, run_id: str) -> RunResult:
        run = await self._provider.retrieve_run(thread_id, run_id)
        polls = 0
        deadline = None if self._timeout is None else self._clock() + self._timeout

        while run.status not in TERMINAL_STATUSES:
            self._check_budget(run, polls, deadline)

            if run.status == "requires_action":
                tool_calls = _requested_tool_calls(run)
                tool_outputs = await self.process_tool_calls(tool_calls)
                logger.info("Submitting %d tool output(s) for run %s", len(tool_outputs), run.id)
                run = await self._provider.submit_tool_outputs(thread_id, run.id, tool_outputs)
                # A submit returns a fresh status, so it spends the poll budget too.
                polls += 1
                continue

            await asyncio.sleep(self._poll_interval)
            run = await self._provider.retrieve_run(thread_id, run.id)
            polls += 1

        if run.status == "completed":
            response = await self.get_response(thread_id)
            return RunResult(response, 200, thread_id, True, run.status)

        logger.warning("Run %s ended with status %s", run.id, run.status)
        return RunResult(_error_detail(run), 500, thread_id, False, run.status)

    def _check_budget(self, run: Any, polls: int, deadline: float | None) -> None:
        if self._max_poll_attempts is not None and polls >= self._max_poll_attempts:
            raise RunTimeoutError(run.id, run.status, polls)
        if deadline is not None and self._clock() >= deadline:
            raise RunTimeoutError(run.id, run.status, polls)

    async def process_tool_calls(self, tool_calls: Iterable[Any]) -> list[dict[str, str]]:
        return list(await asyncio.gather(*(self.process_tool_call(call) for call in tool_calls)))

    async def process_tool_call(self, tool_call: Any) -> dict[str, str]:
        name = tool_call.function.name

        if not self._registry.has(name):
            output = f"Function {name} not supported"
        else:
            try:
                args = json.loads(tool_call.function.arguments or "{}")
            except json.JSONDecodeError as exc:
                output = f"{type(exc).__name__}: {exc}"
            else:
                if isinstance(args, dict):
                    output = await self._registry.invoke(name, args)
                else:
                    output = f"Arguments for {name} must be a JSON object"

        logger.info("Tool call %s -> %s (%d chars)", tool_call.id, name, len(output))
        return {"tool_call_id": tool_call.id, "output": output}

    async def get_response(self, thread_id: str, strip: bool = True) -> str:
        """Return the text of the newest message, which must be the assistant's."""

        messages = await self._provider.list_messages(thread_id, limit=1)
        if not messages or not messages[0].content:
            raise ResponseUnavailableError("No messages or message content found")

        message = messages[0]
        if message.role != "assistant":
            raise ResponseUnavailableError(f"Newest message on thread {thread_id} is not from the assistant")

        block = message.content[0]
        if block.type != "text":
            raise ResponseUnavailableError("First content block is not of type text")

        value = block.text.value
        if strip:
            value = remove_annotations(value, block.text.annotations)
        return value
