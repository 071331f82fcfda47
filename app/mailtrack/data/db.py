from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from mailtrack.config import DatabaseConfig
from mailtrack.errors import ConfigurationError

from .tables import metadata


_ENGINE: Optional[Engine] = None
_SESSION_FACTORY: Optional[sessionmaker] = None


def _database_file(config: DatabaseConfig) -> Path:
    database_dir = Path(config.path)
    database_dir.mkdir(parents=True, exist_ok=True)
    return database_dir / config.name


def _sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[override]
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def init_engine(config: DatabaseConfig, *, echo: bool = False) -> Engine:
    """Open the tracking database, creating missing tables. Repeat calls reuse the engine."""
    global _ENGINE, _SESSION_FACTORY

    if _ENGINE is not None:
        return _ENGINE

    if (config.engine or "sqlite").lower() != "sqlite":
        raise ConfigurationError(f"Unsupported database engine '{config.engine}'")

    engine = create_engine(
        f"sqlite:///{_database_file(config)}",
        echo=echo,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _sqlite_pragmas)
    metadata.create_all(engine)

    _SESSION_FACTORY = build_session_factory(engine)
    _ENGINE = engine
    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def dispose_engine() -> None:
    global _ENGINE, _SESSION_FACTORY

    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_FACTORY = None


def get_session() -> Session:
    if _SESSION_FACTORY is None:
        raise RuntimeError("Session factory is not initialized")
    return _SESSION_FACTORY()
