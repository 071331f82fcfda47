"""Messaging package exposing the message builder and its value types."""

from .builder import MessageBuilder
from .classifier import RecipientClassifier, classify
from .models import (
    AccountRef,
    Attachment,
    DeliveryResult,
    Message,
    RecipientClassification,
    TemplateRef,
    TransportAttachment,
)

__all__ = [
    "AccountRef",
    "Attachment",
    "DeliveryResult",
    "Message",
    "MessageBuilder",
    "RecipientClassification",
    "RecipientClassifier",
    "TemplateRef",
    "TransportAttachment",
    "classify",
]
