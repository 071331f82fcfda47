from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from mailtrack.messaging.classifier import RecipientClassifier
from mailtrack.messaging.models import Message, Recipient, recipient_key

from ..models import Clock, IdentityProvider, TrackingKind, TrackingRecord, utc_now
from ..store import PersistenceStore
from .base import TrackingStrategy


logger = logging.getLogger("mailtrack.tracking")

ADDRESS_DELIMITER = "; "


def _join(recipients: Optional[Iterable[Recipient]]) -> Optional[str]:
    if not recipients:
        return None
    keys = [recipient_key(item) for item in recipients]
    return ADDRESS_DELIMITER.join(key for key in keys if key) or None


def _account_ids(message: Message, classifier: RecipientClassifier) -> List[str]:
    """Internal account ids the message went to, target account first.

    A primary recipient whose key matches an internal target account is that
    account, even when it was given as a plain string.
    """
    target = message.target_account
    target_key = recipient_key(target) if classifier.is_internal(target) else None
    ids: List[str] = [target_key] if target_key else []
    for item in message.to:
        key = recipient_key(item)
        if key in ids:
            continue
        if classifier.is_internal(item):
            ids.append(key)
    return ids


def build_tracking_record(
    message: Message,
    identity: IdentityProvider,
    now: datetime,
    classifier: RecipientClassifier,
) -> TrackingRecord:
    template = message.template
    return TrackingRecord(
        message_date=now,
        from_name=message.sender_display_name or identity.display_name,
        from_address=identity.email,
        to_address=_join(message.addressed_to()),
        cc_address=_join(message.cc),
        bcc_address=_join(message.bcc),
        to_ids=_account_ids(message, classifier),
        subject=message.subject if message.subject is not None else (template.subject if template else None),
        text_body=message.body if message.body is not None else (template.body if template else None),
        html_body=message.rich_body if message.rich_body is not None else (template.rich_body if template else None),
        related_to_id=message.related_record,
        template_id=template.id if template else None,
    )


class LogRecordTracking(TrackingStrategy):
    """Writes a tracking record for every message it is handed."""

    kind = TrackingKind.LOG_RECORD

    def __init__(
        self,
        store: PersistenceStore,
        identity: IdentityProvider,
        *,
        classifier: Optional[RecipientClassifier] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._identity = identity
        self._classifier = classifier or RecipientClassifier()
        self._clock = clock

    def track(self, message: Message) -> Optional[TrackingRecord]:
        record = build_tracking_record(message, self._identity, self._clock(), self._classifier)
        record.id = self._store.insert(record)
        logger.info(
            "Tracked outbound message %s to %s",
            record.id,
            record.to_address or record.to_ids,
        )
        return record
