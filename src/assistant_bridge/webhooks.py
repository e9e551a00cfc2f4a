"""Twilio voice and SMS webhooks."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from .channels import OutgoingMessage, TwilioProvider, get_twilio_provider
from .config import Settings, get_settings
from .directory import ThreadDirectory, get_thread_directory
from .files import FileRef
from .orchestrator import Continuation, ResponseUnavailableError
from .records import CorrespondentExistsError
from .schemas import AddUserRequest
from .service import AssistantService, RunRequest, get_assistant_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telephony", tags=["telephony"])

TRANSCRIBE_PATH = "/telephony/transcribe"


def _twiml(body: str) -> Response:
    return Response(content=body, media_type="text/xml")


def recording_callback_url(settings: Settings) -> str:
    if settings.public_app_url:
        return settings.public_app_url.rstrip("/") + TRANSCRIBE_PATH
    return TRANSCRIBE_PATH


def _media_filename(content_type: str, index: int) -> str:
    subtype = content_type.split("/", 1)[-1].split(";", 1)[0].strip() or "dat"
    return f"media_{int(time.time() * 1000)}_{index}.{subtype}"


def sms_reply_handler(service: AssistantService, twilio: TwilioProvider) -> Continuation:
    """Build the completion hook that texts the newest assistant message back."""

    async def reply(thread_id: str) -> None:
        thread = await service.get_thread(thread_id)
        metadata = dict(getattr(thread, "metadata", None) or {})
        recipient = metadata.get("from")
        if not recipient:
            logger.warning("[SMS] Thread %s has no sender to reply to", thread_id)
            return
        try:
            text = await service.get_response(thread_id)
        except ResponseUnavailableError as exc:
            logger.warning("[SMS] Nothing to send for thread %s: %s", thread_id, exc)
            return
        await twilio.dispatch_responses(
            [
                OutgoingMessage(
                    provider=twilio.name,
                    recipient_id=recipient,
                    text=text,
                    metadata={"thread_id": thread_id},
                )
            ]
        )

    return reply


async def resolve_thread(
    service: AssistantService,
    directory: ThreadDirectory,
    key: str,
    metadata: Mapping[str, Any],
) -> str:
    """Return the correspondent's live thread, creating and binding one if needed."""

    thread_id = await asyncio.to_thread(directory.resolve, key)
    if thread_id:
        return thread_id

    thread = await service.get_thread(metadata=metadata)
    await asyncio.to_thread(directory.bind, key, thread.id)
    logger.info("Bound new thread %s to %s", thread.id, key)
    return thread.id


async def _run_for_correspondent(
    service: AssistantService,
    directory: ThreadDirectory,
    twilio: TwilioProvider,
    settings: Settings,
    *,
    key: str,
    content: str,
    metadata: Mapping[str, Any],
    attachments: list[FileRef] | None = None,
) -> None:
    thread_id = await resolve_thread(service, directory, key, metadata)
    result = await service.run(
        RunRequest(
            content=content,
            assistant_name=settings.sms_assistant_name,
            thread_id=thread_id,
            metadata=metadata,
            attachments=attachments or [],
            on_complete=sms_reply_handler(service, twilio),
        )
    )
    if not result.success:
        logger.warning("Run for %s not started: %s", key, result.response)
        return
    if result.thread_id and result.thread_id != thread_id:
        # The bound thread could not be retrieved and a fresh one was created.
        await asyncio.to_thread(directory.bind, key, result.thread_id)


@router.post("/in")
async def incoming_call(
    request: Request,
    directory: ThreadDirectory = Depends(get_thread_directory),
    twilio: TwilioProvider = Depends(get_twilio_provider),
    settings: Settings = Depends(get_settings),
):
    form = await request.form()
    direction = form.get("Direction")
    from_number = form.get("From")

    if not direction:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No direction in payload")

    if direction == "inbound":
        if not from_number:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No From number in payload")
        correspondent = await asyncio.to_thread(directory.lookup, from_number)
        if correspondent is None:
            logger.info("[VOICE] Rejecting call from unknown number %s", from_number)
            return _twiml(twilio.reject())
        logger.info("[VOICE] Answering call from %s", correspondent.key)
        return _twiml(twilio.greeting(correspondent.name, recording_callback_url(settings)))

    if form.get("Digits") == "hangup":
        return {"status": "success", "response": "Call ended"}

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown request")


@router.post("/sms")
async def incoming_sms(
    request: Request,
    service: AssistantService = Depends(get_assistant_service),
    directory: ThreadDirectory = Depends(get_thread_directory),
    twilio: TwilioProvider = Depends(get_twilio_provider),
    settings: Settings = Depends(get_settings),
):
    form = await request.form()
    messages = twilio.parse_update(form)
    if not messages or not messages[0].recipient_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    message = messages[0]
    logger.info("[SMS] Message from %s with %d media item(s)", message.sender_id, len(message.media))

    attachments: list[FileRef] = []
    for index, item in enumerate(message.media):
        try:
            content = await twilio.fetch_media(item.url)
            attachments.append(await service.upload_file(content, _media_filename(item.content_type, index)))
        except Exception:
            logger.exception("[SMS] Skipping media %s from %s", item.url, message.sender_id)

    await _run_for_correspondent(
        service,
        directory,
        twilio,
        settings,
        key=message.sender_id,
        content=message.text,
        metadata={"from": message.sender_id, "to": message.recipient_id},
        attachments=attachments,
    )
    return {"status": "success", "response": "SMS received"}


@router.post("/transcribe")
async def transcribe_recording(
    request: Request,
    service: AssistantService = Depends(get_assistant_service),
    directory: ThreadDirectory = Depends(get_thread_directory),
    twilio: TwilioProvider = Depends(get_twilio_provider),
    settings: Settings = Depends(get_settings),
):
    form = await request.form()
    recording_url = form.get("RecordingUrl")
    call_sid = form.get("CallSid")
    if not recording_url or not call_sid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    try:
        from_number = await twilio.caller_number(str(call_sid))
    except Exception as exc:
        logger.exception("[VOICE] Could not fetch call %s", call_sid)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error fetching call details"
        ) from exc

    correspondent = await asyncio.to_thread(directory.lookup, from_number)
    if correspondent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Caller ID not allowed to use the service")

    try:
        audio = await twilio.fetch_media(str(recording_url))
        transcript = await service.transcribe_audio(
            audio, f"voicemail_{int(time.time() * 1000)}.wav"
        )
        if not transcript.strip():
            logger.info("[VOICE] Empty transcript for call %s", call_sid)
        else:
            logger.info("[VOICE] Transcribed %d chars from %s", len(transcript), correspondent.key)
            await _run_for_correspondent(
                service,
                directory,
                twilio,
                settings,
                key=correspondent.key,
                content=transcript,
                metadata={"from": correspondent.key, "to": settings.twilio_phone_number},
            )
    except Exception as exc:
        logger.exception("[VOICE] Error processing recording for call %s", call_sid)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error processing transcription"
        ) from exc

    return {"status": "success", "response": "Transcription received"}


@router.post("/adduser", status_code=status.HTTP_201_CREATED)
async def add_user(
    payload: AddUserRequest,
    directory: ThreadDirectory = Depends(get_thread_directory),
):
    if not payload.name or not payload.phone or not payload.email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    try:
        record = await asyncio.to_thread(directory.register, payload.phone, payload.name, payload.email)
    except CorrespondentExistsError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists") from exc
    except Exception as exc:
        logger.exception("Error adding user %s", payload.phone)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error adding user") from exc

    return {"status": "success", "user": record.to_dict()}
