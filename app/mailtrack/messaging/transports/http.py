from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from mailtrack.errors import TransportError

from ..models import DeliveryResult, Message, recipient_key
from .base import Transport


logger = logging.getLogger("mailtrack.transports.http")


class HttpTransport(Transport):
    """Delivers messages through a JSON mail relay API.

    The relay answers ``POST /messages`` with one result object per message:
    ``[{"success": bool, "detail": str | null, "id": str | null}]``.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.Client(base_url=base_url, headers=headers, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def deliver(self, message: Message) -> List[DeliveryResult]:
        try:
            response = self._client.post("/messages", json=[self._payload(message)])
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise TransportError(f"Relay request failed: {exc}", transport=self.name) from exc
        except ValueError as exc:
            raise TransportError("Relay returned a non-JSON response", transport=self.name) from exc

        if not isinstance(data, list):
            raise TransportError("Relay response must be a list of results", transport=self.name)
        return [self._parse_result(entry) for entry in data if isinstance(entry, dict)]

    @staticmethod
    def _payload(message: Message) -> Dict[str, Any]:
        return {
            "subject": message.subject,
            "text_body": message.body,
            "html_body": message.rich_body,
            "to": [recipient_key(item) for item in message.to],
            "cc": [recipient_key(item) for item in message.cc],
            "bcc": [recipient_key(item) for item in message.bcc] if message.bcc is not None else None,
            "target_account": recipient_key(message.target_account) if message.target_account else None,
            "related_record": message.related_record,
            "template_id": message.template.id if message.template else None,
            "template_merge_context": message.template_merge_context,
            "reply_to": message.reply_to,
            "sender_display_name": message.sender_display_name,
            "save_as_activity": not message.suppress_activity_link,
            "attachments": [
                {
                    "filename": attachment.filename,
                    "content_type": attachment.content_type,
                    "content": base64.b64encode(attachment.body).decode("ascii"),
                }
                for attachment in message.attachments or ()
            ],
        }

    @staticmethod
    def _parse_result(entry: Dict[str, Any]) -> DeliveryResult:
        detail = entry.get("detail")
        errors = entry.get("errors")
        if detail is None and isinstance(errors, list) and errors:
            detail = "; ".join(str(error) for error in errors)
        message_id = entry.get("id")
        return DeliveryResult(
            success=bool(entry.get("success")),
            detail=str(detail) if detail is not None else None,
            message_id=str(message_id) if message_id is not None else None,
        )
