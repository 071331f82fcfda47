from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool


PROJECT_ROOT = Path(__file__).resolve().parents[1]
APP_DIR = PROJECT_ROOT / "app"

for path in (PROJECT_ROOT, APP_DIR):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


FIXED_NOW = datetime(2024, 5, 17, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    from mailtrack.data.db import build_session_factory
    from mailtrack.data.tables import metadata

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
