from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping

import httpx
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from ..config import Settings
from .base import ChannelProvider
from .types import IncomingMessage, MediaItem, OutgoingMessage

logger = logging.getLogger(__name__)

RECORD_TIMEOUT_SECONDS = 10


class TwilioProvider(ChannelProvider):
    """SMS and voice channel backed by the Twilio REST API and TwiML."""

    def __init__(self, settings: Settings, client: Client | None = None) -> None:
        super().__init__("twilio")
        self.settings = settings
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    @property
    def _basic_auth(self) -> tuple[str, str] | None:
        if self.settings.twilio_account_sid and self.settings.twilio_auth_token:
            return (self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return None

    def parse_update(self, payload: Mapping[str, Any]) -> list[IncomingMessage]:
        sender = payload.get("From")
        if not sender:
            return []

        try:
            num_media = int(payload.get("NumMedia") or 0)
        except (TypeError, ValueError):
            num_media = 0

        media: list[MediaItem] = []
        for index in range(num_media):
            url = payload.get(f"MediaUrl{index}")
            content_type = payload.get(f"MediaContentType{index}")
            if url and content_type:
                media.append(MediaItem(url=str(url), content_type=str(content_type)))

        return [
            IncomingMessage(
                provider=self.name,
                sender_id=str(sender),
                recipient_id=payload.get("To"),
                text=payload.get("Body") or "",
                media=media,
                metadata={"message_sid": payload.get("MessageSid")},
            )
        ]

    async def dispatch_responses(self, messages: Iterable[OutgoingMessage]) -> None:
        for message in messages:
            await self.send_sms(message.recipient_id, message.text)

    async def send_sms(self, to_number: str, body: str) -> None:
        logger.info("[SMS] Sending %d chars to %s", len(body), to_number)
        await asyncio.to_thread(
            self.client.messages.create,
            body=body,
            from_=self.settings.twilio_phone_number,
            to=to_number,
        )

    async def fetch_media(self, url: str) -> bytes:
        """Download media or a recording protected by the account credentials."""

        async with httpx.AsyncClient(follow_redirects=True) as client:
            response = await client.get(url, auth=self._basic_auth, timeout=30.0)
            response.raise_for_status()
            return response.content

    async def caller_number(self, call_sid: str) -> str:
        call = await asyncio.to_thread(self.client.calls(call_sid).fetch)
        return call.from_

    def greeting(self, name: str | None, recording_callback_url: str) -> str:
        response = VoiceResponse()
        response.say(f"Hi {name or 'there'}, this is a bot. How can I help you today?")
        response.record(
            timeout=RECORD_TIMEOUT_SECONDS,
            transcribe=False,
            recording_status_callback=recording_callback_url,
            recording_status_callback_event="completed",
        )
        return str(response)

    def reject(self) -> str:
        response = VoiceResponse()
        response.say("No access to this number. Goodbye.")
        response.hangup()
        return str(response)
