"""Learner and manager sign-in endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from .coordinator import coordinator
from .identity import identity_directory
from .payloads import AdminLoginRequest, LoginPayload, LoginRequest, OkPayload, login_payload

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=LoginPayload)
def login(payload: LoginRequest) -> LoginPayload:
    result = coordinator.sign_in(payload.username, payload.password)
    return login_payload(result)


@router.post("/admin/login", response_model=OkPayload)
def admin_login(payload: AdminLoginRequest) -> OkPayload:
    identity_directory.verify_admin_password(payload.password)
    return OkPayload()
