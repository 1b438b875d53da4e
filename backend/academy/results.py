"""Append-only quiz attempt history."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db.base import as_utc, utcnow
from .db.models import ResultModel
from .db.session import session_scope
from .errors import NotFoundError, ValidationError, translate_store_errors
from .identity import normalize_uid
from .repositories.accounts import accounts
from .repositories.results import results_rows

logger = logging.getLogger(__name__)


class QuizResultEntry(BaseModel):
    """A quiz attempt as submitted by a learner client."""

    model_config = ConfigDict(extra="ignore")

    uid: str
    qid: str
    qname: Optional[str] = None
    score: Optional[int] = None
    total: Optional[int] = None
    pct: Optional[int] = None
    time: Optional[int] = None
    passed: bool = False
    date: Optional[datetime] = None
    num: Optional[int] = None

    @field_validator("score", "total", "pct", "time", "num", mode="before")
    @classmethod
    def _round_numbers(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("passed", mode="before")
    @classmethod
    def _truthy_passed(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("uid", "qid", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class ResultRecord(BaseModel):
    id: int
    uid: str
    qid: str
    qname: Optional[str] = None
    score: Optional[int] = None
    total: Optional[int] = None
    pct: Optional[int] = None
    time: Optional[int] = None
    passed: bool
    date: datetime
    num: Optional[int] = None
    name: Optional[str] = None


def _record_from_model(model: ResultModel, name: Optional[str] = None) -> ResultRecord:
    return ResultRecord(
        id=model.id,
        uid=model.uid,
        qid=model.qid,
        qname=model.qname,
        score=model.score,
        total=model.total,
        pct=model.pct,
        time=model.time,
        passed=bool(model.passed),
        date=as_utc(model.date),
        num=model.num,
        name=name,
    )


def _parse_entry(entry: Union[QuizResultEntry, Mapping[str, Any]]) -> QuizResultEntry:
    if isinstance(entry, QuizResultEntry):
        return entry
    if not isinstance(entry, Mapping):
        raise ValidationError("Result payload must be an object.")
    if not normalize_uid(entry.get("uid")):
        raise ValidationError("User ID required.")
    if entry.get("qid") in (None, ""):
        raise ValidationError("Quiz ID required.")
    try:
        return QuizResultEntry.model_validate(dict(entry))
    except PydanticValidationError as exc:
        fields = ", ".join(str(error["loc"][0]) for error in exc.errors() if error.get("loc"))
        raise ValidationError(f"Invalid result fields: {fields}.") from exc


class ResultsLedger:
    def record_result(self, entry: Union[QuizResultEntry, Mapping[str, Any]]) -> ResultRecord:
        parsed = _parse_entry(entry)
        uid = normalize_uid(parsed.uid)
        if not uid:
            raise ValidationError("User ID required.")
        date = as_utc(parsed.date) or utcnow()
        with translate_store_errors("Failed to save result."):
            with session_scope() as session:
                if not accounts.exists(session, uid):
                    raise NotFoundError(f"No learner account for '{uid}'.")
                model = results_rows.insert(
                    session,
                    uid=uid,
                    qid=parsed.qid,
                    qname=parsed.qname,
                    score=parsed.score,
                    total=parsed.total,
                    pct=parsed.pct,
                    time=parsed.time,
                    passed=parsed.passed,
                    date=date,
                    num=parsed.num,
                )
                record = _record_from_model(model)
        logger.info("Recorded result %s for %s (qid=%s passed=%s)", record.id, uid, record.qid, record.passed)
        return record

    def list_results(self, limit: Optional[int] = None, uid: Optional[str] = None) -> List[ResultRecord]:
        """Newest first. Without ``uid`` the listing spans every learner and is capped."""
        if limit is not None and limit <= 0:
            return []
        try:
            with session_scope(commit=False) as session:
                if uid is not None:
                    normalized = normalize_uid(uid)
                    if not normalized:
                        return []
                    rows = results_rows.list_for_uid(session, normalized, limit)
                    return [_record_from_model(row) for row in rows]
                cap = get_settings().results_listing_cap
                effective = cap if limit is None else min(limit, cap)
                return [
                    _record_from_model(row, name)
                    for row, name in results_rows.list_recent_with_names(session, effective)
                ]
        except SQLAlchemyError as exc:
            logger.error("Failed to list results (uid=%s): %s", uid, exc)
            return []


results_ledger = ResultsLedger()

__all__ = [
    "QuizResultEntry",
    "ResultRecord",
    "ResultsLedger",
    "results_ledger",
]
