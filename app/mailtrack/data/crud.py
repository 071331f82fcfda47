from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from mailtrack.errors import PersistenceError

from .tables import email_templates, tracked_messages


MAX_TRACKED_PAGE = 100


def insert_tracked_message(
    session: Session,
    *,
    incoming: bool,
    message_date: datetime,
    from_name: Optional[str],
    from_address: Optional[str],
    to_address: Optional[str],
    cc_address: Optional[str],
    bcc_address: Optional[str],
    to_ids: Sequence[str],
    subject: Optional[str],
    text_body: Optional[str],
    html_body: Optional[str],
    related_to_id: Optional[str],
    template_id: Optional[str],
    status: str,
) -> int:
    result = session.execute(
        insert(tracked_messages).values(
            incoming=incoming,
            message_date=message_date,
            from_name=from_name,
            from_address=from_address,
            to_address=to_address,
            cc_address=cc_address,
            bcc_address=bcc_address,
            to_ids=list(to_ids),
            subject=subject,
            text_body=text_body,
            html_body=html_body,
            related_to_id=related_to_id,
            template_id=template_id,
            status=status,
        )
    )
    record_id = result.inserted_primary_key[0] if result.inserted_primary_key else None
    if record_id is None:
        raise PersistenceError("Failed to create tracked message record")
    return int(record_id)


def list_tracked_messages(session: Session, limit: int = MAX_TRACKED_PAGE) -> List[Dict[str, Any]]:
    """Most recent tracked messages first, never more than MAX_TRACKED_PAGE."""
    bounded = max(1, min(int(limit), MAX_TRACKED_PAGE))
    rows = session.execute(
        select(tracked_messages)
        .order_by(tracked_messages.c.message_date.desc(), tracked_messages.c.id.desc())
        .limit(bounded)
    ).mappings().all()
    return [dict(row) for row in rows]


def get_tracked_message(session: Session, record_id: int) -> Optional[Dict[str, Any]]:
    result = session.execute(
        select(tracked_messages).where(tracked_messages.c.id == record_id)
    ).mappings().first()
    return dict(result) if result is not None else None


def list_templates(session: Session) -> List[Dict[str, Any]]:
    rows = session.execute(
        select(email_templates).order_by(email_templates.c.name)
    ).mappings().all()
    return [dict(row) for row in rows]


def upsert_template(session: Session, payload: Dict[str, Any]) -> None:
    if not payload.get("template_id") or not payload.get("name"):
        raise ValueError("payload requires 'template_id' and 'name'")

    template_id = payload["template_id"]
    existing = session.execute(
        select(email_templates.c.template_id).where(email_templates.c.template_id == template_id)
    ).scalar_one_or_none()

    values = {
        "name": payload["name"],
        "subject": payload.get("subject"),
        "body": payload.get("body"),
        "rich_body": payload.get("rich_body"),
    }
    if existing is not None:
        session.execute(
            update(email_templates)
            .where(email_templates.c.template_id == template_id)
            .values(date_updated=datetime.utcnow(), **values)
        )
    else:
        session.execute(insert(email_templates).values(template_id=template_id, **values))
