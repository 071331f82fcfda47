from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union


class RecipientClassification(str, Enum):
    INTERNAL_ACCOUNT = "internal_account"
    EXTERNAL_ADDRESS = "external_address"


@dataclass(frozen=True, slots=True)
class AccountRef:
    """Structured reference to a registered account."""

    id: str

    def __str__(self) -> str:
        return self.id


Recipient = Union[str, AccountRef]


def recipient_key(recipient: Any) -> str:
    if recipient is None:
        return ""
    if isinstance(recipient, AccountRef):
        return recipient.id
    return str(recipient).strip()


@dataclass(frozen=True, slots=True)
class Attachment:
    name: str
    content: bytes


@dataclass(frozen=True, slots=True)
class TransportAttachment:
    filename: str
    content_type: str
    body: bytes


@dataclass(frozen=True, slots=True)
class TemplateRef:
    id: str
    name: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    rich_body: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Message:
    """A fully built outbound message. Produced by ``MessageBuilder.build``."""

    subject: Optional[str]
    body: Optional[str]
    rich_body: Optional[str] = None
    to: Tuple[Recipient, ...] = ()
    cc: Tuple[Recipient, ...] = ()
    bcc: Optional[Tuple[Recipient, ...]] = None
    attachments: Optional[Tuple[TransportAttachment, ...]] = None
    related_record: Optional[str] = None
    target_account: Optional[Recipient] = None
    template: Optional[TemplateRef] = None
    template_merge_context: Optional[str] = None
    reply_to: Optional[str] = None
    sender_display_name: Optional[str] = None
    suppress_activity_link: bool = False

    @property
    def first_recipient(self) -> Optional[Recipient]:
        return self.to[0] if self.to else None

    def addressed_to(self) -> Tuple[Recipient, ...]:
        """Primary recipients, with the target account in front unless already listed."""
        target = self.target_account
        if target is None or recipient_key(target) in {recipient_key(item) for item in self.to}:
            return self.to
        return (target, *self.to)


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    success: bool
    detail: Optional[str] = None
    message_id: Optional[str] = None

    @classmethod
    def failed(cls, detail: str) -> "DeliveryResult":
        return cls(success=False, detail=detail)
