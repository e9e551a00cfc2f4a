from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

from .types import IncomingMessage, OutgoingMessage


class ChannelProvider(ABC):
    """Base class for channels that receive webhooks and send replies."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def parse_update(self, payload: Any) -> Iterable[IncomingMessage]:
        """Transform a raw webhook payload into normalized incoming messages."""

    @abstractmethod
    async def dispatch_responses(self, messages: Iterable[OutgoingMessage]) -> None:
        """Send messages back through the channel."""
