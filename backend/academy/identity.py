"""Learner accounts: identifier normalisation, creation, credential checks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterator, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .constants import MIN_PASSWORD_LENGTH, MIN_UID_LENGTH
from .db.base import as_utc
from .db.models import AccountModel
from .db.session import session_scope
from .errors import AuthError, ConflictError, ValidationError, translate_store_errors
from .repositories.accounts import accounts

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password. Check your credentials."


class Account(BaseModel):
    uid: str
    display_name: str
    created: Optional[datetime] = None


def normalize_uid(value: Optional[str]) -> str:
    """Lowercase and trim a learner identifier. Applying it twice changes nothing."""
    return (value or "").strip().lower()


def require_uid(value: Optional[str], message: str = "User ID required.") -> str:
    uid = normalize_uid(value)
    if not uid:
        raise ValidationError(message)
    return uid


def validate_new_account(username: Optional[str], password: Optional[str]) -> str:
    """Return the normalised uid for a prospective account or raise ``ValidationError``."""
    uid = normalize_uid(username)
    if len(uid) < MIN_UID_LENGTH:
        raise ValidationError(f"Username must be at least {MIN_UID_LENGTH} characters.")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return uid


def account_from_model(model: AccountModel) -> Account:
    return Account(uid=model.uid, display_name=model.display_name, created=as_utc(model.created))


class IdentityDirectory:
    """Owns account rows. Every lookup normalises the identifier first."""

    def create_account(
        self,
        username: Optional[str],
        password: Optional[str],
        display_name: Optional[str] = None,
    ) -> Account:
        uid = validate_new_account(username, password)
        name = display_name or (username or "").strip() or uid
        with translate_store_errors("Server error creating account."):
            if self.account_exists(uid):
                raise ConflictError("Username already exists. Choose a different one.")
            with session_scope() as session:
                account = self.insert_account(session, uid, password or "", name)
        logger.info("Created account %s", uid)
        return account

    def insert_account(self, session: Session, uid: str, password: str, display_name: str) -> Account:
        """Write an already-validated account row inside the caller's session."""
        try:
            model = accounts.insert(session, uid, password, display_name)
        except IntegrityError as exc:
            # Lost a race with a concurrent create for the same uid.
            raise ConflictError("Username already exists. Choose a different one.") from exc
        return account_from_model(model)

    def verify_credentials(self, username: Optional[str], password: Optional[str]) -> Account:
        uid = normalize_uid(username)
        if not uid or not password:
            raise AuthError(INVALID_CREDENTIALS)
        with translate_store_errors("Server error. Please try again later."):
            with session_scope(commit=False) as session:
                model = accounts.find_by_credentials(session, uid, password)
                if model is None:
                    raise AuthError(INVALID_CREDENTIALS)
                return account_from_model(model)

    def get_account(self, uid: Optional[str]) -> Account | None:
        normalized = normalize_uid(uid)
        if not normalized:
            return None
        with translate_store_errors("Failed to load account."):
            with session_scope(commit=False) as session:
                model = accounts.get(session, normalized)
                return account_from_model(model) if model else None

    def account_exists(self, uid: Optional[str]) -> bool:
        normalized = normalize_uid(uid)
        if not normalized:
            return False
        with session_scope(commit=False) as session:
            return accounts.exists(session, normalized)

    def list_accounts(self) -> Iterator[Account]:
        """Yield every account lazily. Order is whatever the store returns."""
        try:
            with session_scope(commit=False) as session:
                for model in accounts.stream(session):
                    yield account_from_model(model)
        except SQLAlchemyError as exc:
            logger.error("Failed to list accounts: %s", exc)

    def delete_account(self, uid: Optional[str]) -> bool:
        """Remove the account row only. Dependent rows must already be gone."""
        normalized = require_uid(uid)
        with translate_store_errors("Failed to delete account."):
            with session_scope() as session:
                removed = accounts.delete(session, normalized)
        return removed > 0

    def verify_admin_password(self, password: Optional[str]) -> None:
        if not password:
            raise ValidationError("Please enter the manager password.")
        if password != get_settings().admin_password:
            raise AuthError("Incorrect manager password.")


identity_directory = IdentityDirectory()

__all__ = [
    "Account",
    "IdentityDirectory",
    "account_from_model",
    "identity_directory",
    "normalize_uid",
    "require_uid",
    "validate_new_account",
]
