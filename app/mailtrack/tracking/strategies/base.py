from __future__ import annotations

from typing import Optional, Protocol

from mailtrack.messaging.models import Message

from ..models import TrackingKind, TrackingRecord


class TrackingStrategy(Protocol):
    kind: TrackingKind

    def track(self, message: Message) -> Optional[TrackingRecord]:
        ...
