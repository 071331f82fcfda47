from __future__ import annotations

import logging
import mimetypes
from typing import Iterable, List, Optional, Sequence, Union

from mailtrack.errors import ConfigurationError

from .classifier import RecipientClassifier
from .models import (
    Attachment,
    Message,
    Recipient,
    TemplateRef,
    TransportAttachment,
    recipient_key,
)
from .templates import TemplateLookup


logger = logging.getLogger("mailtrack.messaging.builder")

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


class MessageBuilder:
    """
    Fluent accumulator for a single outbound message.

    Every setter returns the builder so calls can be chained. Nothing is
    validated until ``build``. Setting the primary recipients or the target
    account re-evaluates ``suppress_activity_link``: activity linking is not
    accepted for internal accounts, so it is suppressed whenever the target
    account or the first primary recipient is one.
    """

    def __init__(
        self,
        classifier: Optional[RecipientClassifier] = None,
        templates: Optional[TemplateLookup] = None,
    ) -> None:
        self._classifier = classifier or RecipientClassifier()
        self._templates = templates
        self._subject: Optional[str] = None
        self._body: Optional[str] = None
        self._rich_body: Optional[str] = None
        self._to: List[Recipient] = []
        self._cc: List[Recipient] = []
        self._bcc: Optional[List[Recipient]] = None
        self._attachments: Optional[List[TransportAttachment]] = None
        self._related_record: Optional[str] = None
        self._target_account: Optional[Recipient] = None
        self._template: Optional[TemplateRef] = None
        self._template_merge_context: Optional[str] = None
        self._reply_to: Optional[str] = None
        self._sender_display_name: Optional[str] = None
        self._suppress_activity_link = False

    @property
    def suppress_activity_link(self) -> bool:
        return self._suppress_activity_link

    def set_primary_recipients(self, recipients: Optional[Iterable[Recipient]]) -> "MessageBuilder":
        self._to = list(recipients or [])
        self._refresh_activity_link()
        return self

    def set_copy_recipients(self, recipients: Optional[Iterable[Recipient]]) -> "MessageBuilder":
        self._cc = list(recipients or [])
        return self

    def set_blind_copy_recipients(self, recipients: Optional[Iterable[Recipient]]) -> "MessageBuilder":
        self._bcc = list(recipients) if recipients else None
        return self

    def set_subject(self, subject: Optional[str]) -> "MessageBuilder":
        self._subject = subject
        return self

    def set_body(self, body: Optional[str]) -> "MessageBuilder":
        self._body = body
        return self

    def set_rich_body(self, html: Optional[str]) -> "MessageBuilder":
        self._rich_body = html
        return self

    def set_reply_to(self, address: Optional[str]) -> "MessageBuilder":
        self._reply_to = address
        return self

    def set_sender_display_name(self, name: Optional[str]) -> "MessageBuilder":
        self._sender_display_name = name
        return self

    def set_target_account(self, reference: Optional[Recipient]) -> "MessageBuilder":
        self._target_account = reference
        self._refresh_activity_link()
        return self

    def relate_to(self, record_id: Optional[str]) -> "MessageBuilder":
        self._related_record = record_id
        return self

    def attach(self, attachments: Optional[Sequence[Attachment]]) -> "MessageBuilder":
        if not attachments:
            return self
        self._attachments = [self._to_transport_attachment(item) for item in attachments]
        return self

    def use_template(self, identifier: Union[str, TemplateRef, None]) -> "MessageBuilder":
        if isinstance(identifier, TemplateRef):
            self._template = identifier
            return self
        if identifier is None or not str(identifier).strip():
            return self

        identifier = str(identifier).strip()
        if self._classifier.is_template_id(identifier):
            self._template = TemplateRef(id=identifier)
            return self

        template = self._templates.find_by_name(identifier) if self._templates is not None else None
        if template is None:
            logger.warning("Template '%s' not found; message will be sent without it", identifier)
            return self
        self._template = template
        return self

    def use_template_merge_context(self, reference: Optional[str]) -> "MessageBuilder":
        self._template_merge_context = reference
        return self

    def build(self) -> Message:
        self._validate()
        return Message(
            subject=self._subject,
            body=self._body,
            rich_body=self._rich_body,
            to=tuple(self._to),
            cc=tuple(self._cc),
            bcc=tuple(self._bcc) if self._bcc is not None else None,
            attachments=tuple(self._attachments) if self._attachments is not None else None,
            related_record=self._related_record,
            target_account=self._target_account,
            template=self._template,
            template_merge_context=self._template_merge_context,
            reply_to=self._reply_to,
            sender_display_name=self._sender_display_name,
            suppress_activity_link=self._suppress_activity_link,
        )

    def _refresh_activity_link(self) -> None:
        self._suppress_activity_link = self._classifier.is_internal(
            self._target_account
        ) or self._classifier.is_internal(self._to[0] if self._to else None)

    def _validate(self) -> None:
        recipients = [*self._to, *self._cc, *(self._bcc or [])]
        if not recipients and self._target_account is None:
            raise ConfigurationError("message has no recipients and no target account")
        for recipient in recipients:
            if not recipient_key(recipient):
                raise ConfigurationError("recipient entries must not be blank")
        if self._target_account is not None and not recipient_key(self._target_account):
            raise ConfigurationError("target account reference must not be blank")

        if self._template is None:
            if not _has_text(self._subject):
                raise ConfigurationError("subject is required when no template is used")
            if not _has_text(self._body) and not _has_text(self._rich_body):
                raise ConfigurationError("a plain or rich body is required when no template is used")
        elif self._target_account is None:
            raise ConfigurationError("a target account is required when a template is used")

        if self._template_merge_context and self._template is None:
            raise ConfigurationError("a template merge context requires a template")

    @staticmethod
    def _to_transport_attachment(attachment: Attachment) -> TransportAttachment:
        content_type, _ = mimetypes.guess_type(attachment.name)
        return TransportAttachment(
            filename=attachment.name,
            content_type=content_type or _DEFAULT_CONTENT_TYPE,
            body=bytes(attachment.content),
        )


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())
