"""Readiness check for the record store, served by ``/api/health/database``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .models import AccountModel, ProgressModel, ResultModel, StrikeModel

logger = logging.getLogger(__name__)

REQUIRED_TABLES = tuple(
    model.__tablename__ for model in (AccountModel, ProgressModel, ResultModel, StrikeModel)
)


@dataclass
class StoreHealth:
    reachable: bool
    pool: str
    missing_tables: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.reachable and not self.missing_tables


def check_store(engine: Engine) -> StoreHealth:
    """Probe connectivity and report which of the four record tables are absent."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            existing = set(inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        logger.warning("Record store health probe failed: %s", exc)
        return StoreHealth(
            reachable=False,
            pool=_pool_status(engine),
            missing_tables=list(REQUIRED_TABLES),
            error=exc.__class__.__name__,
        )
    missing = [name for name in REQUIRED_TABLES if name not in existing]
    if missing:
        logger.warning("Record store is missing tables: %s", ", ".join(missing))
    return StoreHealth(reachable=True, pool=_pool_status(engine), missing_tables=missing)


def _pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()
    except (AttributeError, NotImplementedError):  # pragma: no cover
        return "unavailable"


__all__ = ["REQUIRED_TABLES", "StoreHealth", "check_store"]
