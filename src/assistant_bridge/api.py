from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse

from .files import normalize_file_inputs
from .orchestrator import OrchestrationProtocolError, RunResult, RunTimeoutError
from .provider import AssistantProviderError
from .schemas import (
    AssistantRequest,
    AssistantSummary,
    ChatRequest,
    ChatResponse,
    HealthResponse,
    RunResponse,
)
from .service import AssistantService, RunRequest, get_assistant_service
from .tools import get_continuations

logger = logging.getLogger(__name__)

router = APIRouter()


async def _run(service: AssistantService, request: RunRequest) -> RunResult:
    try:
        return await service.run(request)
    except RunTimeoutError as exc:
        logger.warning("%s", exc)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc)) from exc
    except (OrchestrationProtocolError, AssistantProviderError) as exc:
        logger.exception("Assistant run failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get("/healthz", response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    return HealthResponse()


@router.post("/assistant/{assistant_name}", response_model=RunResponse)
async def run_assistant(
    assistant_name: str,
    payload: AssistantRequest,
    service: AssistantService = Depends(get_assistant_service),
):
    if payload.content is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="content is required")

    on_complete = None
    if payload.when_done:
        on_complete = get_continuations().get(payload.when_done)
        if on_complete is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown whenDone handler '{payload.when_done}'",
            )

    raw_files = [
        item if isinstance(item, str) else item.model_dump(by_alias=True, exclude_none=True)
        for item in payload.file_ids or []
    ]
    try:
        attachments = normalize_file_inputs(raw_files)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    result = await _run(
        service,
        RunRequest(
            content=payload.content,
            assistant_name=assistant_name,
            thread_id=payload.thread_id,
            metadata=payload.metadata or {},
            attachments=attachments,
            on_complete=on_complete,
        ),
    )
    return JSONResponse(result.to_payload(), status_code=result.status_code)


@router.get("/assistants", response_model=list[AssistantSummary])
async def list_assistants(service: AssistantService = Depends(get_assistant_service)):
    try:
        return await service.describe_assistants()
    except Exception:
        logger.exception("Error listing assistants")
        return []


@router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, service: AssistantService = Depends(get_assistant_service)):
    if not payload.content or not payload.assistant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="content and assistantId are required",
        )

    result = await _run(
        service,
        RunRequest(
            content=payload.content,
            assistant_id=payload.assistant_id,
            thread_id=payload.thread_id,
        ),
    )
    return JSONResponse(
        {"response": result.response, "threadId": result.thread_id},
        status_code=result.status_code,
    )


@router.post("/upload", response_model=ChatResponse)
async def upload(
    file: Optional[UploadFile] = File(default=None),
    assistant_id: Optional[str] = Form(default=None, alias="assistantId"),
    thread_id: Optional[str] = Form(default=None, alias="threadId"),
    service: AssistantService = Depends(get_assistant_service),
):
    if file is None or not assistant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="file and assistantId are required",
        )
    # Browser clients send the literal string "null" for a missing thread.
    if thread_id in ("", "null", "undefined"):
        thread_id = None

    filename = file.filename or "upload"
    try:
        content = await file.read()
        file_ref = await service.upload_file(content, filename)
        thread = await service.prepare_thread(
            f"file uploaded {filename}",
            thread_id=thread_id,
            attachments=[file_ref],
        )
    except AssistantProviderError as exc:
        logger.exception("Error handling upload of %s", filename)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error handling file upload",
        ) from exc

    return ChatResponse(response=file_ref.to_payload(), thread_id=thread.id)
