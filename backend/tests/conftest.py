from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from academy.config import get_settings
from academy.db import models  # noqa: F401
from academy.db.base import Base
from academy.db.session import dispose_engine, get_engine
from academy.telemetry import TelemetryEvent, clear_listeners, register_listener


@pytest.fixture
def academy_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the record store at a fresh SQLite file for one test."""
    db_path = tmp_path / "academy.db"
    monkeypatch.setenv("ACADEMY_DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("ACADEMY_ATOMIC_CASCADES", "false")
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield db_path
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture
def atomic_cascades(academy_db: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("ACADEMY_ATOMIC_CASCADES", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def telemetry_events() -> Iterator[list[TelemetryEvent]]:
    events: list[TelemetryEvent] = []
    register_listener(events.append)
    yield events
    clear_listeners()
