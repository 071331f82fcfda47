from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from mailtrack.errors import TransportError

from ..models import AccountRef, DeliveryResult, Message, Recipient, recipient_key
from .base import Transport


logger = logging.getLogger("mailtrack.transports.smtp")


class SmtpTransport(Transport):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: float = 10.0,
        accounts: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address
        self._use_tls = use_tls
        self._timeout = timeout
        self._accounts: Dict[str, str] = dict(accounts or {})

    def close(self) -> None:
        return

    def deliver(self, message: Message) -> List[DeliveryResult]:
        to, unresolved_to = self._resolve_all(message.addressed_to())
        cc, unresolved_cc = self._resolve_all(message.cc)
        bcc, unresolved_bcc = self._resolve_all(message.bcc or ())
        unresolved = unresolved_to + unresolved_cc + unresolved_bcc
        if unresolved:
            return [DeliveryResult.failed(f"No address for recipients: {', '.join(unresolved)}")]

        envelope = to + cc + bcc
        if not envelope:
            return [DeliveryResult.failed("Message has no deliverable recipients")]

        email = self._compose(message, to, cc)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                if self._use_tls:
                    server.starttls()
                if self._username:
                    server.login(self._username, self._password)
                refused = server.send_message(email, from_addr=self._from_address, to_addrs=envelope)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"SMTP delivery failed: {exc}", transport=self.name) from exc

        if refused and len(refused) == len(envelope):
            return [DeliveryResult.failed(f"All recipients refused: {', '.join(sorted(refused))}")]
        detail = f"Refused: {', '.join(sorted(refused))}" if refused else None
        return [DeliveryResult(success=True, detail=detail, message_id=email["Message-ID"])]

    def _compose(self, message: Message, to: List[str], cc: List[str]) -> EmailMessage:
        template = message.template
        subject = message.subject if message.subject is not None else (template.subject if template else None)
        body = message.body if message.body is not None else (template.body if template else None)
        rich_body = message.rich_body if message.rich_body is not None else (template.rich_body if template else None)

        email = EmailMessage()
        email["From"] = (
            formataddr((message.sender_display_name, self._from_address))
            if message.sender_display_name
            else self._from_address
        )
        if to:
            email["To"] = ", ".join(to)
        if cc:
            email["Cc"] = ", ".join(cc)
        if message.reply_to:
            email["Reply-To"] = message.reply_to
        email["Subject"] = subject or ""
        email["Message-ID"] = make_msgid()

        email.set_content(body or "")
        if rich_body:
            email.add_alternative(rich_body, subtype="html")
        for attachment in message.attachments or ():
            maintype, _, subtype = attachment.content_type.partition("/")
            email.add_attachment(
                attachment.body,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return email

    def _resolve_all(self, recipients: Iterable[Recipient]) -> Tuple[List[str], List[str]]:
        resolved: List[str] = []
        unresolved: List[str] = []
        for recipient in recipients:
            address = self._resolve(recipient)
            if address is None:
                unresolved.append(recipient_key(recipient))
            else:
                resolved.append(address)
        return resolved, unresolved

    def _resolve(self, recipient: Recipient) -> Optional[str]:
        key = recipient_key(recipient)
        if key in self._accounts:
            return self._accounts[key]
        if isinstance(recipient, AccountRef) or "@" not in key:
            return None
        return key
