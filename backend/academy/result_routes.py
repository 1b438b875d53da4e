"""Quiz result endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Query

from .payloads import RecordedResultPayload, ResultPayload, result_payload
from .results import results_ledger

router = APIRouter(prefix="/api/results", tags=["results"])


@router.post("", response_model=RecordedResultPayload)
def record_result(payload: Dict[str, Any] = Body(...)) -> RecordedResultPayload:
    record = results_ledger.record_result(payload)
    return RecordedResultPayload(id=record.id)


@router.get("", response_model=List[ResultPayload])
def list_results(limit: Optional[int] = Query(default=None, ge=1)) -> List[ResultPayload]:
    return [result_payload(record) for record in results_ledger.list_results(limit=limit)]


@router.get("/{uid}", response_model=List[ResultPayload])
def list_learner_results(uid: str, limit: Optional[int] = Query(default=None, ge=1)) -> List[ResultPayload]:
    return [result_payload(record) for record in results_ledger.list_results(limit=limit, uid=uid)]
