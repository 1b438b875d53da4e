"""Wire models for the JSON API consumed by the learner and manager clients."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .coordinator import CascadeReport, EnrichedAccount, SignInResult
from .identity import Account
from .results import ResultRecord
from .strikes import StrikeRecord, StrikeSummary


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OkPayload(CamelModel):
    ok: bool = True


class ErrorPayload(CamelModel):
    ok: bool = False
    error: str


class LoginRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None


class AdminLoginRequest(CamelModel):
    password: Optional[str] = None


class LoginPayload(CamelModel):
    ok: bool = True
    uid: str
    display_name: str
    user_data: Any = Field(default_factory=dict)


class ProgressPayload(CamelModel):
    data: Any = Field(default_factory=dict)


class SaveProgressRequest(CamelModel):
    data: Optional[Any] = None


class ResultPayload(CamelModel):
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


class RecordedResultPayload(CamelModel):
    ok: bool = True
    id: int


class AddStrikeRequest(CamelModel):
    uid: Optional[str] = None
    reason: Optional[str] = None


class BulkStrikeRequest(CamelModel):
    users: Optional[Any] = None
    reason: Optional[str] = None


class RemoveStrikeRequest(CamelModel):
    reason: Optional[str] = None


class StrikePayload(CamelModel):
    id: int
    uid: str
    reason: Optional[str] = None
    date: datetime
    removed_at: Optional[datetime] = None
    removed_reason: Optional[str] = None
    name: Optional[str] = None


class StrikeSummaryPayload(CamelModel):
    uid: str
    name: str
    strike_count: int
    last_strike: datetime


class BulkStrikePayload(CamelModel):
    ok: bool = True
    count: int


class CreateAccountRequest(CamelModel):
    username: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = None


class CreatedAccountPayload(CamelModel):
    ok: bool = True
    uid: str
    display_name: str


class AccountPayload(CamelModel):
    uid: str
    display_name: str
    created: Optional[datetime] = None
    user_data: Any = Field(default_factory=dict)
    strike_count: int = 0


class CascadePayload(CamelModel):
    ok: bool = True
    rows: Dict[str, int] = Field(default_factory=dict)


def login_payload(result: SignInResult) -> LoginPayload:
    return LoginPayload(
        uid=result.account.uid,
        display_name=result.account.display_name,
        user_data=result.user_data,
    )


def result_payload(record: ResultRecord) -> ResultPayload:
    return ResultPayload(**record.model_dump())


def strike_payload(record: StrikeRecord) -> StrikePayload:
    return StrikePayload(**record.model_dump())


def strike_summary_payload(summary: StrikeSummary) -> StrikeSummaryPayload:
    return StrikeSummaryPayload(**summary.model_dump())


def created_account_payload(account: Account) -> CreatedAccountPayload:
    return CreatedAccountPayload(uid=account.uid, display_name=account.display_name)


def account_payloads(entries: List[EnrichedAccount]) -> List[AccountPayload]:
    return [AccountPayload(**entry.model_dump()) for entry in entries]


def cascade_payload(report: CascadeReport) -> CascadePayload:
    return CascadePayload(rows={step.name: step.rows for step in report.steps})


__all__ = [
    "AccountPayload",
    "AddStrikeRequest",
    "AdminLoginRequest",
    "BulkStrikePayload",
    "BulkStrikeRequest",
    "CascadePayload",
    "CreateAccountRequest",
    "CreatedAccountPayload",
    "ErrorPayload",
    "LoginPayload",
    "LoginRequest",
    "OkPayload",
    "ProgressPayload",
    "RecordedResultPayload",
    "RemoveStrikeRequest",
    "ResultPayload",
    "SaveProgressRequest",
    "StrikePayload",
    "StrikeSummaryPayload",
    "account_payloads",
    "cascade_payload",
    "created_account_payload",
    "login_payload",
    "result_payload",
    "strike_payload",
    "strike_summary_payload",
]
