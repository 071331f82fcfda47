from __future__ import annotations

import logging
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailtrack.data import crud
from mailtrack.data.db import get_session
from mailtrack.errors import PersistenceError

from .models import TrackingRecord


logger = logging.getLogger("mailtrack.tracking.store")
debug_logger = logging.getLogger("mailtrack.debug.tracking")


class PersistenceStore(Protocol):
    def insert(self, record: TrackingRecord) -> int:
        ...


class SqlTrackingStore:
    def __init__(self, session_factory: Callable[[], Session] = get_session) -> None:
        self._session_factory = session_factory

    def insert(self, record: TrackingRecord) -> int:
        session = self._session_factory()
        try:
            record_id = crud.insert_tracked_message(
                session,
                incoming=record.incoming,
                message_date=record.message_date,
                from_name=record.from_name,
                from_address=record.from_address,
                to_address=record.to_address,
                cc_address=record.cc_address,
                bcc_address=record.bcc_address,
                to_ids=list(record.to_ids),
                subject=record.subject,
                text_body=record.text_body,
                html_body=record.html_body,
                related_to_id=record.related_to_id,
                template_id=record.template_id,
                status=record.status,
            )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to persist tracking record for %s", record.to_address)
            raise PersistenceError(f"Failed to persist tracking record: {exc}") from exc
        except PersistenceError:
            session.rollback()
            logger.exception("Failed to persist tracking record for %s", record.to_address)
            raise
        finally:
            session.close()

        debug_logger.debug(
            "tracking.record_inserted",
            extra={"record_id": record_id, "to_ids": list(record.to_ids)},
        )
        return record_id
