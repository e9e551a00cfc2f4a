from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from .base import ChannelProvider
from .telephony import TwilioProvider
from .types import IncomingMessage, MediaItem, OutgoingMessage


@lru_cache
def get_twilio_provider() -> TwilioProvider:
    return TwilioProvider(get_settings())


__all__ = [
    "ChannelProvider",
    "IncomingMessage",
    "MediaItem",
    "OutgoingMessage",
    "TwilioProvider",
    "get_twilio_provider",
]
