"""OpenAI Assistants API provider."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)


class AssistantProviderError(Exception):
    """Error from the assistant provider."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class AssistantProvider:
    """The slice of the Assistants API the bridge relies on.

    Every call translates ``OpenAIError`` into ``AssistantProviderError`` so
    callers only deal with one failure type.
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    @classmethod
    def from_api_key(cls, api_key: str | None) -> "AssistantProvider":
        return cls(AsyncOpenAI(api_key=api_key))

    async def list_assistants(self) -> list[Any]:
        try:
            return [
                assistant
                async for assistant in self._client.beta.assistants.list(order="asc", limit=100)
            ]
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to list assistants: {exc}", exc) from exc

    async def retrieve_thread(self, thread_id: str) -> Any:
        try:
            return await self._client.beta.threads.retrieve(thread_id)
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to retrieve thread {thread_id}: {exc}", exc) from exc

    async def create_thread(self, metadata: Mapping[str, Any] | None = None) -> Any:
        try:
            return await self._client.beta.threads.create(metadata=dict(metadata or {}))
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to create thread: {exc}", exc) from exc

    async def create_message(
        self,
        thread_id: str,
        content: str | list[dict[str, Any]],
        attachments: Iterable[dict[str, Any]] = (),
    ) -> Any:
        try:
            return await self._client.beta.threads.messages.create(
                thread_id,
                role="user",
                content=content,
                attachments=list(attachments),
            )
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to add message to thread {thread_id}: {exc}", exc) from exc

    async def list_messages(self, thread_id: str, limit: int = 20) -> list[Any]:
        try:
            page = await self._client.beta.threads.messages.list(thread_id, order="desc", limit=limit)
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to list messages for thread {thread_id}: {exc}", exc) from exc
        return list(page.data)

    async def create_run(self, thread_id: str, assistant_id: str) -> Any:
        try:
            return await self._client.beta.threads.runs.create(thread_id, assistant_id=assistant_id)
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to create run on thread {thread_id}: {exc}", exc) from exc

    async def retrieve_run(self, thread_id: str, run_id: str) -> Any:
        try:
            return await self._client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to retrieve run {run_id}: {exc}", exc) from exc

    async def submit_tool_outputs(
        self, thread_id: str, run_id: str, tool_outputs: list[dict[str, str]]
    ) -> Any:
        try:
            return await self._client.beta.threads.runs.submit_tool_outputs(
                run_id, thread_id=thread_id, tool_outputs=tool_outputs
            )
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to submit tool outputs for run {run_id}: {exc}", exc) from exc

    async def upload_file(self, content: bytes, filename: str, purpose: str) -> Any:
        try:
            return await self._client.files.create(file=(filename, content), purpose=purpose)
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to upload {filename}: {exc}", exc) from exc

    async def transcribe_audio(self, content: bytes, filename: str, model: str = "whisper-1") -> str:
        try:
            transcription = await self._client.audio.transcriptions.create(
                model=model, file=(filename, content)
            )
        except OpenAIError as exc:
            raise AssistantProviderError(f"Failed to transcribe {filename}: {exc}", exc) from exc
        return transcription.text
