from __future__ import annotations

import base64
import binascii
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from mailtrack.config import MailtrackConfig
from mailtrack.data.db import get_session
from mailtrack.errors import ConfigurationError
from mailtrack.messaging.builder import MessageBuilder
from mailtrack.messaging.classifier import RecipientClassifier
from mailtrack.messaging.dispatcher import Dispatcher
from mailtrack.messaging.models import AccountRef, Attachment, DeliveryResult, Message
from mailtrack.messaging.templates import DatabaseTemplateSource, TemplateCache
from mailtrack.messaging.transports import Transport, build_transport
from mailtrack.schemas import SendMessageRequest
from mailtrack.tracking.models import Clock, StaticIdentity, TrackingKind, utc_now
from mailtrack.tracking.registry import TrackingPolicySelector, build_strategies
from mailtrack.tracking.store import PersistenceStore, SqlTrackingStore
from mailtrack.tracking.strategies.base import TrackingStrategy


logger = logging.getLogger("mailtrack.service")


class MessagingService:
    """
    Wires the builder, dispatcher and tracking strategies for one process.

    The service owns the template cache, so templates are loaded once per
    service instance and only reloaded through ``refresh_templates``.
    """

    def __init__(
        self,
        config: MailtrackConfig,
        *,
        transport: Optional[Transport] = None,
        store: Optional[PersistenceStore] = None,
        session_factory: Callable[[], Session] = get_session,
        clock: Clock = utc_now,
    ) -> None:
        self._config = config
        self._classifier = RecipientClassifier(
            account_prefix=config.classifier.account_prefix,
            template_prefix=config.classifier.template_prefix,
        )
        self._templates = TemplateCache(DatabaseTemplateSource(session_factory))
        self._transport = transport or build_transport(config.transport)
        identity = StaticIdentity(
            display_name=config.identity.display_name,
            email=config.identity.email,
        )
        self._strategies: Dict[TrackingKind, TrackingStrategy] = build_strategies(
            store or SqlTrackingStore(session_factory),
            identity,
            classifier=self._classifier,
            clock=clock,
        )
        self._dispatcher = Dispatcher(
            self._transport,
            TrackingPolicySelector(self._classifier),
            self._strategies,
        )

    @property
    def templates(self) -> TemplateCache:
        return self._templates

    def close(self) -> None:
        close_fn = getattr(self._transport, "close", None)
        if callable(close_fn):
            close_fn()

    def builder(self) -> MessageBuilder:
        return MessageBuilder(classifier=self._classifier, templates=self._templates)

    def send(self, message: Message) -> DeliveryResult:
        return self._dispatcher.send(message)

    def send_message(self, request: SendMessageRequest) -> DeliveryResult:
        message = self._apply_request(self.builder(), request).build()
        result = self.send(message)
        if result.success:
            logger.info("Sent message '%s' to %s recipients", message.subject, len(message.to))
        return result

    def refresh_templates(self) -> int:
        count = self._templates.refresh()
        logger.info("Template cache refreshed with %s templates", count)
        return count

    @staticmethod
    def _apply_request(builder: MessageBuilder, request: SendMessageRequest) -> MessageBuilder:
        attachments = []
        for item in request.attachments:
            try:
                content = base64.b64decode(item.content, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ConfigurationError(f"Attachment '{item.name}' is not valid base64") from exc
            attachments.append(Attachment(name=item.name, content=content))

        target = AccountRef(request.target_account) if request.target_account else None
        return (
            builder.set_target_account(target)
            .set_primary_recipients(request.to)
            .set_copy_recipients(request.cc)
            .set_blind_copy_recipients(request.bcc)
            .set_subject(request.subject)
            .set_body(request.body)
            .set_rich_body(request.rich_body)
            .set_reply_to(request.reply_to)
            .set_sender_display_name(request.sender_display_name)
            .relate_to(request.related_record)
            .attach(attachments)
            .use_template(request.template)
            .use_template_merge_context(request.template_merge_context)
        )
