"""High-level assistant calls: resolve, prepare, run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Mapping, Optional

from .background import BackgroundTasks, get_background_tasks
from .config import Settings, get_settings
from .files import FileRef
from .orchestrator import Continuation, RunOrchestrator, RunResult
from .provider import AssistantProvider
from .threads import ThreadPreparer
from .tools import ToolRegistry, build_tool_registry

logger = logging.getLogger(__name__)

# Assistant tool types that are served by the provider rather than locally
BUILTIN_TOOL_TYPES = ("file_search", "code_interpreter")


class AssistantNotFoundError(Exception):
    def __init__(self, assistant_name: str):
        super().__init__(f"Assistant '{assistant_name}' not found")
        self.assistant_name = assistant_name


@dataclass(slots=True)
class RunRequest:
    """One message to send to an assistant.

    ``thread_id`` reuses a thread; without it a new thread is created with
    ``metadata``. Supplying ``on_complete`` switches to fire-and-forget.
    """

    content: str
    assistant_id: Optional[str] = None
    assistant_name: Optional[str] = None
    thread_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    attachments: list[FileRef] = field(default_factory=list)
    on_complete: Optional[Continuation] = None


class AssistantService:
    def __init__(
        self,
        provider: AssistantProvider,
        registry: ToolRegistry,
        orchestrator: RunOrchestrator,
        preparer: ThreadPreparer | None = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.orchestrator = orchestrator
        self.preparer = preparer or ThreadPreparer(provider)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        provider: AssistantProvider | None = None,
        registry: ToolRegistry | None = None,
        background: BackgroundTasks | None = None,
    ) -> "AssistantService":
        provider = provider or AssistantProvider.from_api_key(settings.openai_api_key)
        registry = registry or build_tool_registry()
        orchestrator = RunOrchestrator(
            provider,
            registry,
            background or get_background_tasks(),
            poll_interval=settings.run_poll_interval_seconds,
            max_poll_attempts=settings.run_max_poll_attempts,
            timeout=settings.run_timeout_seconds,
        )
        return cls(provider, registry, orchestrator)

    async def list_assistants(self) -> list[Any]:
        return await self.provider.list_assistants()

    async def resolve_assistant_id(
        self, assistant_id: str | None = None, assistant_name: str | None = None
    ) -> str:
        """Return ``assistant_id`` or the id of the first assistant named exactly ``assistant_name``."""

        if assistant_id:
            return assistant_id
        if not assistant_name:
            raise AssistantNotFoundError("")
        for assistant in await self.list_assistants():
            if assistant.name == assistant_name:
                return assistant.id
        raise AssistantNotFoundError(assistant_name)

    async def run(self, request: RunRequest) -> RunResult:
        try:
            assistant_id = await self.resolve_assistant_id(request.assistant_id, request.assistant_name)
        except AssistantNotFoundError as exc:
            logger.warning("%s", exc)
            return RunResult(str(exc), 404, None, False)

        thread = await self.preparer.prepare(
            request.content,
            thread_id=request.thread_id,
            assistant_name=request.assistant_name,
            metadata=request.metadata,
            attachments=request.attachments,
        )

        if request.on_complete is not None:
            return await self.orchestrator.start(thread.id, assistant_id, request.on_complete)
        return await self.orchestrator.run(thread.id, assistant_id)

    async def prepare_thread(
        self,
        content: str,
        *,
        thread_id: str | None = None,
        assistant_name: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        attachments: list[FileRef] | None = None,
    ) -> Any:
        return await self.preparer.prepare(
            content,
            thread_id=thread_id,
            assistant_name=assistant_name,
            metadata=metadata,
            attachments=attachments or [],
        )

    async def get_thread(
        self, thread_id: str | None = None, metadata: Mapping[str, Any] | None = None
    ) -> Any:
        return await self.preparer.get_thread(thread_id, metadata=metadata)

    async def get_response(self, thread_id: str) -> str:
        return await self.orchestrator.get_response(thread_id)

    async def upload_file(self, content: bytes, filename: str) -> FileRef:
        draft = FileRef.from_filename("", filename)
        purpose = "vision" if draft.is_image_capable else "assistants"
        uploaded = await self.provider.upload_file(content, filename, purpose)
        logger.info("Uploaded %s as %s (%s)", filename, uploaded.id, purpose)
        return FileRef.from_filename(uploaded.id, filename)

    async def transcribe_audio(self, content: bytes, filename: str) -> str:
        return await self.provider.transcribe_audio(content, filename)

    def describe_tool(self, tool: Any) -> dict[str, Any]:
        if tool.type == "function":
            name = tool.function.name
            return {"name": name, "enabled": self.registry.has(name)}
        if tool.type in BUILTIN_TOOL_TYPES:
            return {"name": tool.type, "enabled": True}
        return {"name": "", "enabled": False}

    async def describe_assistants(self) -> list[dict[str, Any]]:
        assistants = sorted(await self.list_assistants(), key=lambda a: a.name or "")
        return [
            {
                "id": assistant.id,
                "name": assistant.name,
                "instructions": assistant.instructions,
                "model": assistant.model,
                "tools": [self.describe_tool(tool) for tool in assistant.tools or []],
            }
            for assistant in assistants
        ]


@lru_cache
def get_assistant_service() -> AssistantService:
    return AssistantService.from_settings(get_settings())
