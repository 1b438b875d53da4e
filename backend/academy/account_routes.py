"""Manager endpoints for learner accounts."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter

from .coordinator import coordinator
from .payloads import (
    AccountPayload,
    CascadePayload,
    CreateAccountRequest,
    CreatedAccountPayload,
    account_payloads,
    cascade_payload,
    created_account_payload,
)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("", response_model=List[AccountPayload])
def list_accounts() -> List[AccountPayload]:
    return account_payloads(coordinator.list_enriched_accounts())


@router.post("", response_model=CreatedAccountPayload)
def create_account(payload: CreateAccountRequest) -> CreatedAccountPayload:
    account = coordinator.create_learner(payload.username, payload.password, payload.display_name)
    return created_account_payload(account)


@router.delete("/{uid}", response_model=CascadePayload)
def delete_account(uid: str) -> CascadePayload:
    return cascade_payload(coordinator.delete_learner(uid))


@router.post("/{uid}/reset", response_model=CascadePayload)
def reset_account(uid: str) -> CascadePayload:
    return cascade_payload(coordinator.reset_learner(uid))
