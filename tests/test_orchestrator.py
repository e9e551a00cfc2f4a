"""Tests for the run orchestration loop."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from assistant_bridge.orchestrator import (
    OrchestrationProtocolError,
    ResponseUnavailableError,
    RunOrchestrator,
    RunTimeoutError,
    remove_annotations,
)

from tests.helpers import make_image_message, make_run, make_text_message, make_tool_call


@pytest.fixture
def orchestrator(mock_provider, registry, background):
    return RunOrchestrator(mock_provider, registry, background, poll_interval=0)


class TestRemoveAnnotations:
    """Tests for citation stripping."""

    def test_removes_exact_span(self):
        assert remove_annotations("See [1] for details", [{"text": "[1]"}]) == "See  for details"

    def test_object_annotations(self):
        annotations = [SimpleNamespace(text="【4:0†source】")]
        assert remove_annotations("Answer【4:0†source】.", annotations) == "Answer."

    def test_first_occurrence_only(self):
        assert remove_annotations("[1] and [1]", [{"text": "[1]"}]) == " and [1]"

    def test_no_annotations(self):
        assert remove_annotations("plain", None) == "plain"


class TestProcessRun:
    """Tests for polling and tool-call handling."""

    @pytest.mark.asyncio
    async def test_polls_until_completed(self, orchestrator, mock_provider):
        """Should poll through non-terminal states and return the reply."""
        mock_provider.create_run.return_value = make_run("queued")
        mock_provider.retrieve_run.side_effect = [
            make_run("queued"),
            make_run("in_progress"),
            make_run("completed"),
        ]
        mock_provider.list_messages.return_value = [
            make_text_message("See [1] for details", [{"text": "[1]"}])
        ]

        result = await orchestrator.run("thread_1", "asst_1")

        assert result.success
        assert result.status_code == 200
        assert result.response == "See  for details"
        assert result.thread_id == "thread_1"
        assert mock_provider.retrieve_run.await_count == 3
        mock_provider.list_messages.assert_awaited_once_with("thread_1", limit=1)

    @pytest.mark.asyncio
    async def test_unknown_function_output(self, orchestrator, mock_provider):
        """An unregistered function gets 'Function foo not supported' and polling continues."""
        mock_provider.retrieve_run.side_effect = [
            make_run("requires_action", tool_calls=[make_tool_call("call_1", "foo", {})]),
            make_run("completed"),
        ]
        mock_provider.submit_tool_outputs.return_value = make_run("in_progress")
        mock_provider.list_messages.return_value = [make_text_message("done")]

        result = await orchestrator.process_run("thread_1", "run_1")

        mock_provider.submit_tool_outputs.assert_awaited_once_with(
            "thread_1",
            "run_1",
            [{"tool_call_id": "call_1", "output": "Function foo not supported"}],
        )
        assert result.response == "done"
        assert mock_provider.retrieve_run.await_count == 2

    @pytest.mark.asyncio
    async def test_one_output_per_call(self, orchestrator, mock_provider):
        """Every requested call_id gets exactly one output, in request order."""
        calls = [
            make_tool_call("call_a", "echo", {"text": "a"}),
            make_tool_call("call_b", "explode", {"reason": "nope"}),
            make_tool_call("call_c", "echo", "{not json"),
            make_tool_call("call_d", "echo", "[1, 2]"),
        ]
        mock_provider.retrieve_run.return_value = make_run("requires_action", tool_calls=calls)
        mock_provider.submit_tool_outputs.return_value = make_run("completed")
        mock_provider.list_messages.return_value = [make_text_message("ok")]

        await orchestrator.process_run("thread_1", "run_1")

        outputs = mock_provider.submit_tool_outputs.await_args.args[2]
        assert [output["tool_call_id"] for output in outputs] == ["call_a", "call_b", "call_c", "call_d"]
        assert outputs[0]["output"] == "echo: a"
        assert outputs[1]["output"] == "RuntimeError: nope"
        assert outputs[2]["output"].startswith("JSONDecodeError")
        assert outputs[3]["output"] == "Arguments for echo must be a JSON object"

    @pytest.mark.asyncio
    async def test_requires_action_without_tool_calls(self, orchestrator, mock_provider):
        """A requires_action run listing no calls is a protocol error."""
        mock_provider.retrieve_run.return_value = make_run("requires_action", tool_calls=[])

        with pytest.raises(OrchestrationProtocolError) as exc_info:
            await orchestrator.process_run("thread_1", "run_1")
        assert exc_info.value.run_id == "run_1"
        mock_provider.submit_tool_outputs.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_run_returns_error_detail(self, orchestrator, mock_provider):
        """Non-completed terminal states become a 500 result carrying the error."""
        error = MagicMock()
        error.model_dump.return_value = {"code": "rate_limit_exceeded", "message": "slow down"}
        mock_provider.retrieve_run.return_value = make_run("failed", last_error=error)

        result = await orchestrator.process_run("thread_1", "run_1")

        assert not result.success
        assert result.status_code == 500
        assert result.status == "failed"
        assert result.response == {"code": "rate_limit_exceeded", "message": "slow down"}
        mock_provider.list_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_max_poll_attempts(self, mock_provider, registry, background):
        """Should raise once the poll budget is spent."""
        orchestrator = RunOrchestrator(mock_provider, registry, background, poll_interval=0, max_poll_attempts=2)
        mock_provider.retrieve_run.return_value = make_run("in_progress")

        with pytest.raises(RunTimeoutError) as exc_info:
            await orchestrator.process_run("thread_1", "run_1")
        assert exc_info.value.polls == 2
        assert exc_info.value.status == "in_progress"

    @pytest.mark.asyncio
    async def test_max_poll_attempts_counts_tool_rounds(self, mock_provider, registry, background):
        """A run stuck in requires_action is stopped by the poll budget."""
        orchestrator = RunOrchestrator(mock_provider, registry, background, poll_interval=0, max_poll_attempts=2)
        stuck = make_run("requires_action", tool_calls=[make_tool_call("call_1", "echo", {"text": "again"})])
        mock_provider.retrieve_run.return_value = stuck
        mock_provider.submit_tool_outputs.side_effect = [stuck] * 50 + [make_run("completed")]

        with pytest.raises(RunTimeoutError) as exc_info:
            await orchestrator.process_run("thread_1", "run_1")

        assert exc_info.value.polls == 2
        assert exc_info.value.status == "requires_action"
        assert mock_provider.submit_tool_outputs.await_count == 2
        mock_provider.list_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout(self, mock_provider, registry, background):
        """Should raise once the wall-clock budget is spent."""
        ticks = iter([0.0, 1.0, 6.0])
        orchestrator = RunOrchestrator(
            mock_provider, registry, background, poll_interval=0, timeout=5.0, clock=lambda: next(ticks)
        )
        mock_provider.retrieve_run.return_value = make_run("queued")

        with pytest.raises(RunTimeoutError):
            await orchestrator.process_run("thread_1", "run_1")
        assert mock_provider.retrieve_run.await_count == 2


class TestGetResponse:
    """Tests for reading the newest assistant reply."""

    @pytest.mark.asyncio
    async def test_no_messages(self, orchestrator, mock_provider):
        mock_provider.list_messages.return_value = []
        with pytest.raises(ResponseUnavailableError):
            await orchestrator.get_response("thread_1")

    @pytest.mark.asyncio
    async def test_newest_is_user(self, orchestrator, mock_provider):
        mock_provider.list_messages.return_value = [make_text_message("question", role="user")]
        with pytest.raises(ResponseUnavailableError):
            await orchestrator.get_response("thread_1")

    @pytest.mark.asyncio
    async def test_non_text_block(self, orchestrator, mock_provider):
        mock_provider.list_messages.return_value = [make_image_message()]
        with pytest.raises(ResponseUnavailableError):
            await orchestrator.get_response("thread_1")

    @pytest.mark.asyncio
    async def test_keep_annotations(self, orchestrator, mock_provider):
        mock_provider.list_messages.return_value = [make_text_message("See [1]", [{"text": "[1]"}])]
        assert await orchestrator.get_response("thread_1", strip=False) == "See [1]"


class TestFireAndForget:
    """Tests for background runs and their completion hooks."""

    @pytest.mark.asyncio
    async def test_continuation_called_once(self, orchestrator, mock_provider, background):
        """A completed background run calls the hook exactly once with the thread id."""
        mock_provider.create_run.return_value = make_run("queued")
        mock_provider.retrieve_run.side_effect = [make_run("queued"), make_run("completed")]
        mock_provider.list_messages.return_value = [make_text_message("hi")]
        on_complete = AsyncMock()

        result = await orchestrator.start("thread_1", "asst_1", on_complete)

        assert result.success
        assert result.status_code == 200
        assert result.response == "Thread thread_1 queued for execution"
        await background.drain(timeout=1)
        on_complete.assert_awaited_once_with("thread_1")

    @pytest.mark.asyncio
    async def test_sync_continuation(self, orchestrator, mock_provider, background):
        """Plain callables work as hooks too."""
        mock_provider.create_run.return_value = make_run("queued")
        mock_provider.retrieve_run.return_value = make_run("failed")
        seen = []

        await orchestrator.start("thread_1", "asst_1", seen.append)
        await background.drain(timeout=1)

        assert seen == ["thread_1"]

    @pytest.mark.asyncio
    async def test_continuation_error_is_logged(self, orchestrator, mock_provider, background, caplog):
        """Errors raised by the hook are logged, never re-raised."""
        mock_provider.create_run.return_value = make_run("queued")
        mock_provider.retrieve_run.return_value = make_run("completed")
        mock_provider.list_messages.return_value = [make_text_message("hi")]
        on_complete = AsyncMock(side_effect=RuntimeError("sms down"))

        with caplog.at_level(logging.ERROR):
            await orchestrator.start("thread_1", "asst_1", on_complete)
            await background.drain(timeout=1)

        on_complete.assert_awaited_once_with("thread_1")
        assert "Completion handler for thread thread_1 failed" in caplog.text
        assert background.pending == 0

    @pytest.mark.asyncio
    async def test_run_error_skips_continuation(self, orchestrator, mock_provider, background):
        mock_provider.create_run.return_value = make_run("queued")
        mock_provider.retrieve_run.return_value = make_run("requires_action", tool_calls=[])
        on_complete = AsyncMock()

        await orchestrator.start("thread_1", "asst_1", on_complete)
        await background.drain(timeout=1)

        on_complete.assert_not_awaited()
