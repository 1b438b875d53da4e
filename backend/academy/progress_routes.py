"""Progress document endpoints used by the learner client."""

from __future__ import annotations

from fastapi import APIRouter

from .payloads import OkPayload, ProgressPayload, SaveProgressRequest
from .progress import progress_store

router = APIRouter(prefix="/api/user", tags=["progress"])


@router.get("/{uid}", response_model=ProgressPayload)
def get_progress(uid: str) -> ProgressPayload:
    return ProgressPayload(data=progress_store.get_progress(uid))


@router.post("/{uid}", response_model=OkPayload)
def save_progress(uid: str, payload: SaveProgressRequest) -> OkPayload:
    progress_store.save_progress(uid, payload.data)
    return OkPayload()
