from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from sqlalchemy.orm import Session

from mailtrack.data import crud
from mailtrack.data.db import get_session

from .models import TemplateRef


logger = logging.getLogger("mailtrack.templates")


class TemplateSource(Protocol):
    def list_all(self) -> List[TemplateRef]:
        ...


class TemplateLookup(Protocol):
    def find_by_name(self, name: str) -> Optional[TemplateRef]:
        ...

    def list_all(self) -> List[TemplateRef]:
        ...


class StaticTemplateSource:
    def __init__(self, templates: Iterable[TemplateRef]) -> None:
        self._templates = list(templates)

    def list_all(self) -> List[TemplateRef]:
        return list(self._templates)


class DatabaseTemplateSource:
    def __init__(self, session_factory: Callable[[], Session] = get_session) -> None:
        self._session_factory = session_factory

    def list_all(self) -> List[TemplateRef]:
        session = self._session_factory()
        try:
            rows = crud.list_templates(session)
        finally:
            session.close()
        return [
            TemplateRef(
                id=row["template_id"],
                name=row["name"],
                subject=row.get("subject"),
                body=row.get("body"),
                rich_body=row.get("rich_body"),
            )
            for row in rows
        ]


class TemplateCache:
    """
    Read-through cache of templates keyed by name.

    Created once per service instance and populated in bulk from its source on
    the first lookup. Entries are never invalidated implicitly; call ``clear``
    or ``refresh`` after templates change. Population builds a new mapping and
    swaps it in, so readers never observe a partially filled cache.
    """

    def __init__(self, source: TemplateSource) -> None:
        self._source = source
        self._by_name: Optional[Dict[str, TemplateRef]] = None

    @property
    def populated(self) -> bool:
        return self._by_name is not None

    def find_by_name(self, name: str) -> Optional[TemplateRef]:
        key = (name or "").strip()
        if not key:
            return None
        return self._entries().get(key)

    def list_all(self) -> List[TemplateRef]:
        return list(self._entries().values())

    def clear(self) -> None:
        self._by_name = None

    def refresh(self) -> int:
        self._by_name = self._load()
        return len(self._by_name)

    def _entries(self) -> Dict[str, TemplateRef]:
        entries = self._by_name
        if entries is None:
            entries = self._load()
            self._by_name = entries
        return entries

    def _load(self) -> Dict[str, TemplateRef]:
        loaded = {
            template.name.strip(): template
            for template in self._source.list_all()
            if template.name and template.name.strip()
        }
        logger.debug("Loaded %s templates into cache", len(loaded))
        return loaded
