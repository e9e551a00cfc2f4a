from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class MediaItem:
    url: str
    content_type: str


@dataclass(slots=True)
class IncomingMessage:
    provider: str
    sender_id: str
    recipient_id: Optional[str] = None
    text: Optional[str] = None
    media: List[MediaItem] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OutgoingMessage:
    provider: str
    recipient_id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
