from __future__ import annotations

import logging
from typing import Optional

from mailtrack.messaging.classifier import RecipientClassifier
from mailtrack.messaging.models import Message

from ..models import Clock, IdentityProvider, TrackingKind, TrackingRecord, utc_now
from .base import TrackingStrategy
from .log_record import build_tracking_record


debug_logger = logging.getLogger("mailtrack.debug.tracking")


class DebugLogTracking(TrackingStrategy):
    """Emits the tracking record to the debug log instead of persisting it."""

    kind = TrackingKind.DEBUG_LOG

    def __init__(
        self,
        identity: IdentityProvider,
        *,
        classifier: Optional[RecipientClassifier] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._identity = identity
        self._classifier = classifier or RecipientClassifier()
        self._clock = clock

    def track(self, message: Message) -> Optional[TrackingRecord]:
        record = build_tracking_record(message, self._identity, self._clock(), self._classifier)
        debug_logger.info("tracking.debug_record", extra={"record": record.to_dict()})
        return record
