from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)


metadata = MetaData()


tracked_messages = Table(
    "tracked_messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("incoming", Boolean, default=False, nullable=False),
    Column("message_date", DateTime(timezone=True), nullable=False),
    Column("from_name", String(255)),
    Column("from_address", String(320)),
    Column("to_address", Text),
    Column("cc_address", Text),
    Column("bcc_address", Text),
    Column("to_ids", JSON, default=list),
    Column("subject", String(998)),
    Column("text_body", Text),
    Column("html_body", Text),
    Column("related_to_id", String(64)),
    Column("template_id", String(64)),
    Column("status", String(8), nullable=False),
    Column("created_at", DateTime, default=datetime.utcnow, nullable=False),
)

Index("ix_tracked_messages_message_date", tracked_messages.c.message_date)
Index("ix_tracked_messages_related_to_id", tracked_messages.c.related_to_id)

email_templates = Table(
    "email_templates",
    metadata,
    Column("template_id", String(64), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("subject", String(998)),
    Column("body", Text),
    Column("rich_body", Text),
    Column("date_added", DateTime, default=datetime.utcnow, nullable=False),
    Column("date_updated", DateTime),
)

