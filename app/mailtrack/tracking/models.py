from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol


STATUS_SENT = "3"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TrackingKind(str, Enum):
    LOG_RECORD = "log_record"
    NATIVE = "native"
    DEBUG_LOG = "debug_log"
    NONE = "none"


class IdentityProvider(Protocol):
    display_name: str
    email: str


@dataclass(frozen=True, slots=True)
class StaticIdentity:
    display_name: str
    email: str


@dataclass(slots=True)
class TrackingRecord:
    """Persisted representation of an outbound message that was sent."""

    message_date: datetime
    from_name: Optional[str]
    from_address: Optional[str]
    to_address: Optional[str]
    subject: Optional[str]
    text_body: Optional[str]
    html_body: Optional[str]
    status: str = STATUS_SENT
    incoming: bool = False
    cc_address: Optional[str] = None
    bcc_address: Optional[str] = None
    to_ids: List[str] = field(default_factory=list)
    related_to_id: Optional[str] = None
    template_id: Optional[str] = None
    id: Optional[int] = None

    @property
    def direction(self) -> str:
        return "inbound" if self.incoming else "outbound"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "direction": self.direction,
            "message_date": self.message_date.isoformat(),
            "from_name": self.from_name,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "cc_address": self.cc_address,
            "bcc_address": self.bcc_address,
            "to_ids": list(self.to_ids),
            "subject": self.subject,
            "text_body": self.text_body,
            "html_body": self.html_body,
            "related_to_id": self.related_to_id,
            "template_id": self.template_id,
            "status": self.status,
        }
