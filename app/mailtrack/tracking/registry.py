from __future__ import annotations

from typing import Dict, Optional

from mailtrack.messaging.classifier import RecipientClassifier
from mailtrack.messaging.models import Message

from .models import Clock, IdentityProvider, TrackingKind, utc_now
from .store import PersistenceStore
from .strategies.base import TrackingStrategy
from .strategies.debug_log import DebugLogTracking
from .strategies.log_record import LogRecordTracking
from .strategies.native import NativeTracking, NoTracking


class TrackingPolicySelector:
    """
    Decide how a sent message is tracked.

    Messages addressed to an internal account (via the target account or the
    first primary recipient) cannot be linked to activity history by the
    transport, so they get an explicit log record. Everything else relies on the
    transport's own history. DEBUG_LOG and NONE are never selected here; they
    exist for callers that override the selection.
    """

    def __init__(self, classifier: Optional[RecipientClassifier] = None) -> None:
        self._classifier = classifier or RecipientClassifier()

    def select(self, message: Message) -> TrackingKind:
        if self._classifier.is_internal(message.target_account):
            return TrackingKind.LOG_RECORD
        if self._classifier.is_internal(message.first_recipient):
            return TrackingKind.LOG_RECORD
        return TrackingKind.NATIVE


def build_strategies(
    store: PersistenceStore,
    identity: IdentityProvider,
    *,
    classifier: Optional[RecipientClassifier] = None,
    clock: Clock = utc_now,
) -> Dict[TrackingKind, TrackingStrategy]:
    strategies: Dict[TrackingKind, TrackingStrategy] = {
        TrackingKind.LOG_RECORD: LogRecordTracking(store, identity, classifier=classifier, clock=clock),
        TrackingKind.NATIVE: NativeTracking(),
        TrackingKind.DEBUG_LOG: DebugLogTracking(identity, classifier=classifier, clock=clock),
        TrackingKind.NONE: NoTracking(),
    }
    return strategies
