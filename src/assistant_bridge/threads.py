"""Resolve remote threads and attach inbound content to them."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .files import FileRef
from .provider import AssistantProvider, AssistantProviderError

logger = logging.getLogger(__name__)

ASSISTANT_NAME_METADATA_KEY = "assistant_name"


class ThreadPreparer:
    def __init__(self, provider: AssistantProvider) -> None:
        self._provider = provider

    async def get_thread(
        self,
        thread_id: str | None = None,
        assistant_name: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Any:
        """Retrieve ``thread_id`` or create a new thread.

        Thread continuity is best-effort: a thread that cannot be retrieved is
        replaced by a fresh one instead of failing the request.
        """

        thread = None
        if thread_id:
            try:
                thread = await self._provider.retrieve_thread(thread_id)
            except AssistantProviderError as exc:
                logger.warning("Could not retrieve thread %s, creating a new one: %s", thread_id, exc)

        if thread is None:
            meta = dict(metadata or {})
            if assistant_name:
                meta[ASSISTANT_NAME_METADATA_KEY] = assistant_name
            thread = await self._provider.create_thread(meta)
            logger.info("Created thread %s", thread.id)

        return thread

    async def prepare(
        self,
        content: str,
        *,
        thread_id: str | None = None,
        assistant_name: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        attachments: Iterable[FileRef] = (),
    ) -> Any:
        """Post ``content`` and its attachments onto a resolved thread."""

        image_files: list[FileRef] = []
        attachment_payloads: list[dict[str, Any]] = []
        for file in attachments:
            if file.is_image_capable:
                image_files.append(file)
                continue
            attachment_payloads.append(
                {"file_id": file.remote_file_id, "tools": [{"type": file.attachment_tool}]}
            )

        thread = await self.get_thread(thread_id, assistant_name, metadata)
        await self._provider.create_message(thread.id, content, attachment_payloads)
        await self.add_image_files(thread.id, image_files)
        return thread

    async def add_image_files(self, thread_id: str, image_files: Iterable[FileRef]) -> None:
        for file in image_files:
            await self._provider.create_message(
                thread_id,
                [{"type": "image_file", "image_file": {"file_id": file.remote_file_id}}],
            )
            logger.info("Attached image %s to thread %s", file.filename, thread_id)
