from __future__ import annotations

from typing import Optional

from mailtrack.messaging.models import Message

from ..models import TrackingKind, TrackingRecord
from .base import TrackingStrategy


class NativeTracking(TrackingStrategy):
    """The transport keeps its own history of the message; nothing to record."""

    kind = TrackingKind.NATIVE

    def track(self, message: Message) -> Optional[TrackingRecord]:
        return None


class NoTracking(TrackingStrategy):
    kind = TrackingKind.NONE

    def track(self, message: Message) -> Optional[TrackingRecord]:
        return None
