from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from mailtrack.config import AppConfig, TemplateConfig
from mailtrack.data import crud
from mailtrack.data.db import build_session_factory, init_engine
from mailtrack.errors import ConfigurationError


logger = logging.getLogger("mailtrack.setup")


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    stringified = str(value).strip()
    return stringified or None


def _resolve_path(raw_path: str | Path, base_dir: Path) -> Path:
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _sync_templates(session: Session, templates: List[TemplateConfig]) -> int:
    for template in templates:
        crud.upsert_template(
            session,
            {
                "template_id": template.template_id,
                "name": template.name,
                "subject": template.subject,
                "body": template.body,
                "rich_body": template.rich_body,
            },
        )
    return len(templates)


def initialize_environment(
    config_data: Dict[str, Any],
    base_dir: str | Path = ".",
) -> Tuple[AppConfig, Dict[str, Any]]:
    if not isinstance(config_data, dict):
        raise TypeError("config_data must be a dictionary")

    mailtrack_section = config_data.get("mailtrack")
    if not isinstance(mailtrack_section, dict):
        raise ConfigurationError("config_data missing 'mailtrack' section")

    base_dir_path = Path(base_dir).expanduser().resolve()

    database_section = dict(mailtrack_section.get("database") or {})
    if not database_section:
        raise ConfigurationError("mailtrack configuration missing database section")

    database_name = _clean_str(database_section.get("name")) or "mailtrack.db"
    database_dir_path = _resolve_path(database_section.get("path", "data"), base_dir_path)
    database_dir_path.mkdir(parents=True, exist_ok=True)

    normalized = dict(mailtrack_section)
    normalized["database"] = {
        "type": database_section.get("type") or database_section.get("engine") or "sqlite",
        "name": database_name,
        "path": str(database_dir_path),
    }

    app_config = AppConfig.from_dict({"mailtrack": normalized})

    engine = init_engine(app_config.mailtrack.database)
    session = build_session_factory(engine)()
    try:
        seeded = _sync_templates(session, app_config.mailtrack.templates)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    if seeded:
        logger.info("Synchronized %s templates", seeded)

    resources = {
        "base_dir": base_dir_path,
        "database_dir": database_dir_path,
        "database_file": database_dir_path / database_name,
        "templates_seeded": seeded,
    }
    return app_config, resources
