from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, Field


class FileDescriptor(BaseModel):
    """An uploaded file as returned by ``POST /upload``."""

    file_id: str = Field(..., alias="fileId", min_length=1)
    filename: str | None = None
    extension: str | None = None
    vision: bool | None = None
    retrieval: bool | None = None

    model_config = {"populate_by_name": True}


class AssistantRequest(BaseModel):
    content: str | None = None
    file_ids: list[Union[str, FileDescriptor]] | None = Field(default=None, alias="fileIds")
    when_done: str | None = Field(default=None, alias="whenDone")
    metadata: dict[str, Any] | None = None
    thread_id: str | None = Field(default=None, alias="threadId")

    model_config = {"populate_by_name": True}


class RunResponse(BaseModel):
    response: Any
    status_code: int = Field(alias="statusCode")
    thread_id: str | None = Field(default=None, alias="threadId")

    model_config = {"populate_by_name": True}


class ChatRequest(BaseModel):
    content: str | None = None
    thread_id: str | None = Field(default=None, alias="threadId")
    assistant_id: str | None = Field(default=None, alias="assistantId")

    model_config = {"populate_by_name": True}


class ChatResponse(BaseModel):
    response: Any
    thread_id: str | None = Field(default=None, alias="threadId")

    model_config = {"populate_by_name": True}


class ToolSummary(BaseModel):
    name: str
    enabled: bool


class AssistantSummary(BaseModel):
    id: str
    name: str | None = None
    instructions: str | None = None
    model: str | None = None
    tools: list[ToolSummary] = Field(default_factory=list)


class AddUserRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None


class HealthResponse(BaseModel):
    status: str = "ok"
