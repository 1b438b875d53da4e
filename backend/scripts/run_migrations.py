"""Bring the record store schema up to date before the API starts serving.

The API can also create its tables on startup (``ACADEMY_AUTO_CREATE_SCHEMA``).
A database built that way has the tables but no ``alembic_version`` row, so
instead of replaying the initial revision against it we stamp it first.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from academy.db.health import REQUIRED_TABLES

LOGGER = logging.getLogger("academy.migrations")
DEFAULT_TIMEOUT = int(os.getenv("ACADEMY_DB_MIGRATION_TIMEOUT", "60"))
DEFAULT_POLL_INTERVAL = float(os.getenv("ACADEMY_DB_MIGRATION_POLL_INTERVAL", "3"))
BASELINE_REVISION = "20250101_01_academy_schema"
BASELINE_TABLES = frozenset(REQUIRED_TABLES)
BACKEND_ROOT = Path(__file__).resolve().parent.parent


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upgrade the academy record store schema.")
    parser.add_argument("--revision", default=os.getenv("ACADEMY_DB_MIGRATION_REVISION", "head"))
    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT)
    parser.add_argument("--poll-interval", type=float, default=DEFAULT_POLL_INTERVAL)
    parser.add_argument("--config", default=str(BACKEND_ROOT / "alembic.ini"))
    parser.add_argument(
        "--no-stamp",
        action="store_true",
        help="Fail instead of stamping a schema that was created without Alembic.",
    )
    return parser.parse_args(argv)


def get_alembic_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url and url != "%(ACADEMY_DATABASE_URL)s":
        return url
    env_url = os.getenv("ACADEMY_DATABASE_URL")
    if not env_url:
        raise RuntimeError("ACADEMY_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    """Poll until ``SELECT 1`` succeeds; give up on non-transient errors or at the deadline."""
    deadline = time.time() + timeout
    engine: Optional[Engine] = None
    last_error: Optional[Exception] = None

    try:
        engine = create_engine(database_url, future=True, pool_pre_ping=True)
        while time.time() < deadline:
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Record store is reachable.")
                return
            except OperationalError as exc:
                last_error = exc
                LOGGER.warning("Record store not ready yet: %s", exc)
            except SQLAlchemyError as exc:
                last_error = exc
                LOGGER.error("Readiness probe failed: %s", exc)
                break
            time.sleep(poll_interval)
    finally:
        if engine is not None:
            engine.dispose()

    raise RuntimeError("Record store did not become ready in time.") from last_error


def is_unversioned_schema(database_url: str) -> bool:
    """True when every baseline table exists but Alembic has never recorded a revision."""
    engine = create_engine(database_url, future=True)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    return BASELINE_TABLES.issubset(tables) and "alembic_version" not in tables


def run_migrations(
    revision: str,
    *,
    timeout: int,
    poll_interval: float,
    config: Optional[Config] = None,
    stamp_existing: bool = True,
) -> None:
    config = config or get_alembic_config(str(BACKEND_ROOT / "alembic.ini"))
    database_url = resolve_database_url(config)
    LOGGER.info("Upgrading record store to %s", revision)
    wait_for_database(database_url, timeout=timeout, poll_interval=poll_interval)

    if is_unversioned_schema(database_url):
        if not stamp_existing:
            raise RuntimeError("Schema exists without an Alembic revision; rerun without --no-stamp.")
        LOGGER.info("Stamping existing schema at %s", BASELINE_REVISION)
        command.stamp(config, BASELINE_REVISION)

    command.upgrade(config, revision)
    LOGGER.info("Migrations complete.")


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("ACADEMY_DB_MIGRATION_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        run_migrations(
            args.revision,
            timeout=args.timeout,
            poll_interval=args.poll_interval,
            config=get_alembic_config(args.config),
            stamp_existing=not args.no_stamp,
        )
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
