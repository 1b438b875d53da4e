"""Disciplinary strikes: append-only with reversible removal and summaries.

A strike is active while ``removed_at`` is unset. Removal never deletes the
row; only the account cascade does that.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .constants import DEFAULT_REMOVAL_REASON, DEFAULT_STRIKE_REASON
from .db.base import as_utc, utcnow
from .db.models import StrikeModel
from .db.session import session_scope
from .errors import NotFoundError, PartialFailureError, StoreError, ValidationError, translate_store_errors
from .identity import normalize_uid, require_uid
from .repositories.accounts import accounts
from .repositories.strikes import strike_rows
from .telemetry import emit_event

logger = logging.getLogger(__name__)


class StrikeEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uid: Optional[str] = None
    reason: Optional[str] = None


class StrikeRecord(BaseModel):
    id: int
    uid: str
    reason: Optional[str] = None
    date: datetime
    removed_at: Optional[datetime] = None
    removed_reason: Optional[str] = None
    name: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.removed_at is None


class StrikeSummary(BaseModel):
    uid: str
    name: str
    strike_count: int
    last_strike: datetime


def _record_from_model(model: StrikeModel, name: Optional[str] = None) -> StrikeRecord:
    return StrikeRecord(
        id=model.id,
        uid=model.uid,
        reason=model.reason,
        date=as_utc(model.date),
        removed_at=as_utc(model.removed_at),
        removed_reason=model.removed_reason,
        name=name,
    )


def _parse_entries(entries: Any) -> List[StrikeEntry]:
    if not isinstance(entries, (list, tuple)) or not entries:
        raise ValidationError("No users provided.")
    parsed: List[StrikeEntry] = []
    for position, raw in enumerate(entries):
        if isinstance(raw, StrikeEntry):
            entry = raw
        elif isinstance(raw, Mapping):
            try:
                entry = StrikeEntry.model_validate(dict(raw))
            except PydanticValidationError as exc:
                raise ValidationError(f"Entry {position} is not a valid strike entry.") from exc
        elif isinstance(raw, str):
            entry = StrikeEntry(uid=raw)
        else:
            raise ValidationError(f"Entry {position} is not a valid strike entry.")
        uid = normalize_uid(entry.uid)
        if not uid:
            raise ValidationError(f"Entry {position} is missing a user ID.")
        parsed.append(StrikeEntry(uid=uid, reason=entry.reason))
    return parsed


class StrikeLedger:
    def add_strike(self, uid: Optional[str], reason: Optional[str] = None) -> StrikeRecord:
        normalized = require_uid(uid)
        with translate_store_errors("Failed to add strike."):
            with session_scope() as session:
                if not accounts.exists(session, normalized):
                    raise NotFoundError(f"No learner account for '{normalized}'.")
                model = strike_rows.insert(session, normalized, reason or DEFAULT_STRIKE_REASON, utcnow())
                record = _record_from_model(model)
        logger.info("Strike %s issued to %s", record.id, normalized)
        return record

    def add_strikes_bulk(
        self,
        entries: Sequence[Union[StrikeEntry, Mapping[str, Any], str]],
        default_reason: Optional[str] = None,
    ) -> List[StrikeRecord]:
        """Issue one strike per entry, all stamped with a single timestamp.

        Every entry is validated and every uid checked before the first row is
        written. Rows are then inserted one statement at a time; when a later
        insert fails the earlier ones stay committed and ``PartialFailureError``
        reports how many landed.
        """
        parsed = _parse_entries(entries)
        stamp = utcnow()
        fallback = default_reason or DEFAULT_STRIKE_REASON

        with translate_store_errors("Failed to add strikes."):
            with session_scope(commit=False) as session:
                missing = accounts.missing(session, [entry.uid for entry in parsed if entry.uid])
        if missing:
            raise NotFoundError(f"No learner account for: {', '.join(sorted(missing))}.")

        if get_settings().atomic_cascades:
            with translate_store_errors("Failed to add strikes."):
                with session_scope() as session:
                    records = [
                        _record_from_model(strike_rows.insert(session, entry.uid or "", entry.reason or fallback, stamp))
                        for entry in parsed
                    ]
        else:
            records = self._insert_sequentially(parsed, fallback, stamp)

        emit_event("strikes_bulk_recorded", count=len(records), date=stamp)
        return records

    def _insert_sequentially(
        self,
        entries: List[StrikeEntry],
        fallback: str,
        stamp: datetime,
    ) -> List[StrikeRecord]:
        records: List[StrikeRecord] = []
        for entry in entries:
            try:
                with session_scope() as session:
                    model = strike_rows.insert(session, entry.uid or "", entry.reason or fallback, stamp)
                    records.append(_record_from_model(model))
            except SQLAlchemyError as exc:
                if not records:
                    logger.error("Bulk strike insert failed before any row landed: %s", exc)
                    raise StoreError("Failed to add strikes.") from exc
                logger.error(
                    "Bulk strike insert stopped after %d of %d rows at uid=%s: %s",
                    len(records),
                    len(entries),
                    entry.uid,
                    exc,
                )
                emit_event(
                    "cascade_partial_failure",
                    operation="add_strikes_bulk",
                    uid=entry.uid,
                    committed=len(records),
                    requested=len(entries),
                )
                raise PartialFailureError(
                    "Failed to add strikes.",
                    operation="add_strikes_bulk",
                    uid=entry.uid,
                    completed_steps=[record.uid for record in records],
                    failed_step=entry.uid,
                    committed=len(records),
                ) from exc
        return records

    def remove_strike(self, strike_id: Any, reason: Optional[str] = None) -> bool:
        """Soft-delete a strike.

        Repeating the call on an already-removed strike overwrites the removal
        timestamp and reason. Returns ``False`` when no strike has that id.
        """
        try:
            identifier = int(strike_id)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Strike ID must be an integer.") from exc
        removed_at = utcnow()
        with translate_store_errors("Failed to remove strike."):
            with session_scope() as session:
                matched = strike_rows.mark_removed(session, identifier, removed_at, reason or DEFAULT_REMOVAL_REASON)
        if not matched:
            logger.warning("Strike %s not found; nothing removed", identifier)
            return False
        emit_event("strike_removed", strike_id=identifier, removed_at=removed_at)
        return True

    def list_active_strikes(self, uid: Optional[str] = None) -> List[StrikeRecord]:
        return self._list(uid, active_only=True)

    def list_all_strikes(self, uid: Optional[str] = None) -> List[StrikeRecord]:
        return self._list(uid, active_only=False)

    def active_count(self, uid: Optional[str]) -> int:
        normalized = normalize_uid(uid)
        if not normalized:
            return 0
        try:
            with session_scope(commit=False) as session:
                return strike_rows.active_count(session, normalized)
        except SQLAlchemyError as exc:
            logger.error("Failed to count strikes for %s: %s", normalized, exc)
            return 0

    def summarize(self) -> List[StrikeSummary]:
        """Learners with active strikes, most strikes first, then most recent."""
        try:
            with session_scope(commit=False) as session:
                rows = strike_rows.summary(session)
                return [
                    StrikeSummary(
                        uid=row.uid,
                        name=row.name,
                        strike_count=int(row.strike_count),
                        last_strike=as_utc(row.last_strike),
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            logger.error("Strike summary failed: %s", exc)
            return []

    def _list(self, uid: Optional[str], *, active_only: bool) -> List[StrikeRecord]:
        try:
            with session_scope(commit=False) as session:
                if uid is not None:
                    normalized = normalize_uid(uid)
                    if not normalized:
                        return []
                    rows = strike_rows.list_for_uid(session, normalized, active_only=active_only)
                    return [_record_from_model(row) for row in rows]
                return [
                    _record_from_model(row, name)
                    for row, name in strike_rows.list_with_names(session, active_only=active_only)
                ]
        except SQLAlchemyError as exc:
            logger.error("Failed to list strikes (uid=%s): %s", uid, exc)
            return []


strike_ledger = StrikeLedger()

__all__ = [
    "StrikeEntry",
    "StrikeLedger",
    "StrikeRecord",
    "StrikeSummary",
    "strike_ledger",
]
