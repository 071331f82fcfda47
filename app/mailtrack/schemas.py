from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttachmentPayload(BaseModel):
    name: str = Field(..., min_length=1)
    content: str = Field(..., description="Base64 encoded file content")


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    to: List[str] = Field(default_factory=list)
    cc: List[str] = Field(default_factory=list)
    bcc: Optional[List[str]] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    rich_body: Optional[str] = None
    target_account: Optional[str] = Field(
        default=None, description="Account id the message is addressed to"
    )
    related_record: Optional[str] = None
    template: Optional[str] = Field(default=None, description="Template id or name")
    template_merge_context: Optional[str] = None
    reply_to: Optional[str] = None
    sender_display_name: Optional[str] = None
    attachments: List[AttachmentPayload] = Field(default_factory=list)


class DeliveryResponse(BaseModel):
    success: bool
    detail: Optional[str] = None
    message_id: Optional[str] = None


class TrackedMessage(BaseModel):
    id: int
    direction: str
    message_date: datetime
    from_name: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    cc_address: Optional[str] = None
    bcc_address: Optional[str] = None
    to_ids: List[str] = Field(default_factory=list)
    subject: Optional[str] = None
    text_body: Optional[str] = None
    html_body: Optional[str] = None
    related_to_id: Optional[str] = None
    template_id: Optional[str] = None
    status: str


class TrackedMessageList(BaseModel):
    total: int = Field(..., ge=0)
    messages: List[TrackedMessage]


class TemplateRefreshResponse(BaseModel):
    templates: int = Field(..., ge=0)
