"""Shared test fixtures and configuration."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.tools import tool

from assistant_bridge.background import BackgroundTasks
from assistant_bridge.config import Settings
from assistant_bridge.tools import ToolRegistry

from tests.helpers import make_thread


@pytest.fixture
def mock_settings():
    """Settings with test credentials and the in-memory record store."""
    return Settings(
        OPENAI_API_KEY="sk-test",
        TWILIO_ACCOUNT_SID="AC123",
        TWILIO_AUTH_TOKEN="auth-token",
        TWILIO_PHONE_NUMBER="+15550000000",
        GOOGLE_SEARCH_DEVELOPER_KEY="google-key",
        GOOGLE_SEARCH_CX_ID="cx-id",
        RECORD_STORE_BACKEND="memory",
        RUN_POLL_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def mock_provider():
    """An AssistantProvider double with every call mocked."""
    provider = MagicMock()
    provider.list_assistants = AsyncMock(return_value=[])
    provider.retrieve_thread = AsyncMock(side_effect=lambda thread_id: make_thread(thread_id))
    provider.create_thread = AsyncMock(return_value=make_thread("thread_new"))
    provider.create_message = AsyncMock(return_value=None)
    provider.list_messages = AsyncMock(return_value=[])
    provider.create_run = AsyncMock()
    provider.retrieve_run = AsyncMock()
    provider.submit_tool_outputs = AsyncMock()
    provider.upload_file = AsyncMock()
    provider.transcribe_audio = AsyncMock(return_value="")
    return provider


@tool
async def echo(text: str) -> str:
    """Echo the text back.

    Args:
        text: Text to echo.
    """
    return f"echo: {text}"


@tool
async def explode(reason: str) -> str:
    """Always fail.

    Args:
        reason: Failure message.
    """
    raise RuntimeError(reason)


@pytest.fixture
def registry():
    """Registry with a well-behaved and a failing tool."""
    return ToolRegistry.from_tool_lists([echo, explode])


@pytest.fixture
def background():
    return BackgroundTasks()
