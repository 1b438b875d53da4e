"""Per-learner progress documents.

The document is opaque: any JSON value is stored as given, and a save always
replaces the whole value. Falsy values (null, an empty list, 0, "") are stored
as the empty object.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from .db.session import session_scope
from .errors import NotFoundError, translate_store_errors
from .identity import require_uid
from .repositories.accounts import accounts
from .repositories.progress import progress_rows

logger = logging.getLogger(__name__)

# Usually a JSON object, but any JSON value round-trips.
ProgressDocument = Any


def empty_document() -> Dict[str, Any]:
    return {}


def coerce_document(document: Any) -> ProgressDocument:
    if not document:
        return empty_document()
    return copy.deepcopy(document)


def _stored_document(value: Any) -> ProgressDocument:
    return empty_document() if value is None else value


class ProgressStore:
    def get_progress(self, uid: Optional[str]) -> ProgressDocument:
        """Return the stored document, or an empty one when absent or unreadable."""
        normalized = require_uid(uid)
        try:
            with session_scope(commit=False) as session:
                model = progress_rows.get(session, normalized)
                return _stored_document(model.data) if model else empty_document()
        except SQLAlchemyError as exc:
            logger.error("Failed to load progress for %s: %s", normalized, exc)
            return empty_document()

    def save_progress(self, uid: Optional[str], document: Any) -> ProgressDocument:
        """Replace the learner's document. Only existing accounts can hold one."""
        normalized = require_uid(uid)
        payload = coerce_document(document)
        with translate_store_errors("Failed to save progress."):
            with session_scope() as session:
                if not accounts.exists(session, normalized):
                    raise NotFoundError(f"No learner account for '{normalized}'.")
                progress_rows.upsert(session, normalized, payload)
        return payload

    def reset_progress(self, uid: Optional[str]) -> None:
        """Overwrite the document with the empty value. The row itself stays."""
        normalized = require_uid(uid)
        with translate_store_errors("Failed to reset progress."):
            with session_scope() as session:
                if not accounts.exists(session, normalized):
                    raise NotFoundError(f"No learner account for '{normalized}'.")
                progress_rows.upsert(session, normalized, empty_document())

    def ensure_progress(self, uid: Optional[str]) -> ProgressDocument:
        """Create the empty document if the learner has none yet and return what is stored."""
        normalized = require_uid(uid)
        with translate_store_errors("Failed to initialise progress."):
            with session_scope() as session:
                stored = progress_rows.insert_if_absent(session, normalized, empty_document())
        return _stored_document(stored)


progress_store = ProgressStore()

__all__ = [
    "ProgressDocument",
    "ProgressStore",
    "coerce_document",
    "empty_document",
    "progress_store",
]
