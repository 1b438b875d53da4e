"""Strike endpoints for the manager dashboard and the daily check job."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Query

from .payloads import (
    AddStrikeRequest,
    BulkStrikePayload,
    BulkStrikeRequest,
    OkPayload,
    RemoveStrikeRequest,
    StrikePayload,
    StrikeSummaryPayload,
    strike_payload,
    strike_summary_payload,
)
from .strikes import strike_ledger

router = APIRouter(prefix="/api/strikes", tags=["strikes"])


@router.get("", response_model=List[StrikePayload])
def list_strikes(include_removed: bool = Query(default=False, alias="all")) -> List[StrikePayload]:
    if include_removed:
        records = strike_ledger.list_all_strikes()
    else:
        records = strike_ledger.list_active_strikes()
    return [strike_payload(record) for record in records]


@router.get("/summary/all", response_model=List[StrikeSummaryPayload])
def strike_summary() -> List[StrikeSummaryPayload]:
    return [strike_summary_payload(entry) for entry in strike_ledger.summarize()]


@router.get("/{uid}", response_model=List[StrikePayload])
def list_learner_strikes(uid: str) -> List[StrikePayload]:
    return [strike_payload(record) for record in strike_ledger.list_active_strikes(uid)]


@router.post("", response_model=OkPayload)
def add_strike(payload: AddStrikeRequest) -> OkPayload:
    strike_ledger.add_strike(payload.uid, payload.reason)
    return OkPayload()


@router.post("/bulk", response_model=BulkStrikePayload)
def add_strikes_bulk(payload: BulkStrikeRequest) -> BulkStrikePayload:
    records = strike_ledger.add_strikes_bulk(payload.users, payload.reason)
    return BulkStrikePayload(count=len(records))


@router.delete("/{strike_id}", response_model=OkPayload)
def remove_strike(strike_id: int, payload: Optional[RemoveStrikeRequest] = Body(default=None)) -> OkPayload:
    strike_ledger.remove_strike(strike_id, payload.reason if payload else None)
    return OkPayload()
