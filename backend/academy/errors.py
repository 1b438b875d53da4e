"""Typed failures raised by the record store.

The request layer maps these onto wire responses; nothing in here knows
about HTTP beyond the suggested ``status_code``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AcademyError(Exception):
    """Base class for every failure surfaced to callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AcademyError):
    """Malformed or missing required input."""

    status_code = 400


class ConflictError(AcademyError):
    """The learner identifier is already taken."""

    status_code = 409


class AuthError(AcademyError):
    """Credential mismatch. Unknown users and wrong passwords look identical."""

    status_code = 401


class NotFoundError(AcademyError):
    status_code = 404


class StoreError(AcademyError):
    """The persistence engine failed; engine details stay in the logs."""

    status_code = 500


class PartialFailureError(StoreError):
    """A multi-step write stopped after some of its steps had committed.

    ``completed_steps`` names the steps that are durable, ``failed_step`` the
    one that raised. Operators can re-run the operation: every step is safe
    to repeat.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        uid: Optional[str] = None,
        completed_steps: Sequence[str] = (),
        failed_step: Optional[str] = None,
        committed: int = 0,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.uid = uid
        self.completed_steps = list(completed_steps)
        self.failed_step = failed_step
        self.committed = committed

    def __str__(self) -> str:
        return (
            f"{self.message} (operation={self.operation}, uid={self.uid}, "
            f"completed={self.completed_steps}, failed={self.failed_step}, committed={self.committed})"
        )


@contextmanager
def translate_store_errors(message: str) -> Generator[None, None, None]:
    """Convert engine failures raised inside the block into ``StoreError(message)``."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("%s Engine error: %s", message, exc)
        raise StoreError(message) from exc


__all__ = [
    "AcademyError",
    "AuthError",
    "ConflictError",
    "NotFoundError",
    "PartialFailureError",
    "StoreError",
    "ValidationError",
    "translate_store_errors",
]
