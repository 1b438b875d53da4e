"""Operations that span more than one table.

Each multi-table write is an ordered list of ``CascadeStep``s. By default
every step commits on its own, so a failure part-way through leaves the
earlier steps applied and raises ``PartialFailureError`` naming them. With
``ACADEMY_ATOMIC_CASCADES`` enabled the steps share one transaction and a
failure rolls all of them back.

Deletion removes the account row last: an interrupted delete leaves a
learner with missing history, never history with no learner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.session import session_scope
from .errors import (
    ConflictError,
    NotFoundError,
    PartialFailureError,
    StoreError,
    ValidationError,
    translate_store_errors,
)
from .identity import (
    Account,
    IdentityDirectory,
    identity_directory,
    require_uid,
    validate_new_account,
)
from .progress import ProgressDocument, ProgressStore, empty_document, progress_store
from .repositories.accounts import accounts
from .repositories.progress import progress_rows
from .repositories.results import results_rows
from .repositories.strikes import strike_rows
from .strikes import StrikeLedger, strike_ledger
from .telemetry import emit_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CascadeStep:
    name: str
    apply: Callable[[Session], int]


@dataclass
class StepOutcome:
    name: str
    rows: int


@dataclass
class CascadeReport:
    operation: str
    uid: str
    steps: List[StepOutcome] = field(default_factory=list)

    @property
    def completed_steps(self) -> List[str]:
        return [step.name for step in self.steps]

    def rows_for(self, name: str) -> int:
        for step in self.steps:
            if step.name == name:
                return step.rows
        return 0


class EnrichedAccount(BaseModel):
    uid: str
    display_name: str
    created: Optional[datetime] = None
    user_data: ProgressDocument = Field(default_factory=dict)
    strike_count: int = 0


class SignInResult(BaseModel):
    account: Account
    user_data: ProgressDocument = Field(default_factory=dict)


class ConsistencyCoordinator:
    def __init__(
        self,
        directory: IdentityDirectory | None = None,
        progress: ProgressStore | None = None,
        strikes: StrikeLedger | None = None,
    ) -> None:
        self._directory = directory or identity_directory
        self._progress = progress or progress_store
        self._strikes = strikes or strike_ledger

    # ------------------------------------------------------------------
    # Learner lifecycle
    # ------------------------------------------------------------------

    def create_learner(
        self,
        username: Optional[str],
        password: Optional[str],
        display_name: Optional[str] = None,
    ) -> Account:
        """Create the account and its empty progress document.

        If the progress step fails after the account committed, the account is
        kept and the document is created lazily on the learner's next sign-in.
        """
        uid = validate_new_account(username, password)
        name = display_name or (username or "").strip() or uid
        with translate_store_errors("Server error creating account."):
            if self._directory.account_exists(uid):
                raise ConflictError("Username already exists. Choose a different one.")

        created: List[Account] = []

        def insert_account(session: Session) -> int:
            created.append(self._directory.insert_account(session, uid, password or "", name))
            return 1

        def init_progress(session: Session) -> int:
            progress_rows.upsert(session, uid, empty_document())
            return 1

        steps = [CascadeStep("account", insert_account), CascadeStep("progress", init_progress)]
        try:
            self._run_steps("create_learner", uid, steps, "Server error creating account.")
        except PartialFailureError:
            if not created:
                raise
            logger.warning(
                "Account %s created but progress initialisation failed; it will be created on first sign-in",
                uid,
            )
        account = created[-1]
        emit_event("learner_created", uid=uid)
        return account

    def delete_learner(self, uid: Optional[str]) -> CascadeReport:
        """Remove strikes, results, progress and finally the account for ``uid``."""
        normalized = require_uid(uid)
        steps = [
            CascadeStep("strikes", lambda session: strike_rows.delete_for_uid(session, normalized)),
            CascadeStep("results", lambda session: results_rows.delete_for_uid(session, normalized)),
            CascadeStep("progress", lambda session: progress_rows.delete(session, normalized)),
            CascadeStep("account", lambda session: accounts.delete(session, normalized)),
        ]
        report = self._run_steps("delete_learner", normalized, steps, "Failed to delete account.")
        emit_event(
            "learner_deleted",
            uid=normalized,
            rows={step.name: step.rows for step in report.steps},
        )
        return report

    def reset_learner(self, uid: Optional[str]) -> CascadeReport:
        """Clear results and strikes and empty the progress document; keep the account."""
        normalized = require_uid(uid)
        with translate_store_errors("Failed to reset progress."):
            if not self._directory.account_exists(normalized):
                raise NotFoundError(f"No learner account for '{normalized}'.")
        steps = [
            CascadeStep("results", lambda session: results_rows.delete_for_uid(session, normalized)),
            CascadeStep("strikes", lambda session: strike_rows.delete_for_uid(session, normalized)),
            CascadeStep("progress", lambda session: progress_rows.upsert(session, normalized, empty_document())),
        ]
        report = self._run_steps("reset_learner", normalized, steps, "Failed to reset progress.")
        emit_event(
            "learner_reset",
            uid=normalized,
            rows={step.name: step.rows for step in report.steps},
        )
        return report

    def sign_in(self, username: Optional[str], password: Optional[str]) -> SignInResult:
        if not username or not password:
            raise ValidationError("Please enter username and password.")
        account = self._directory.verify_credentials(username, password)
        try:
            user_data = self._progress.ensure_progress(account.uid)
        except StoreError:
            logger.warning("Progress unavailable for %s during sign-in; returning empty document", account.uid)
            user_data = empty_document()
        return SignInResult(account=account, user_data=user_data)

    # ------------------------------------------------------------------
    # Dashboards
    # ------------------------------------------------------------------

    def list_enriched_accounts(self) -> List[EnrichedAccount]:
        """Every account with its progress document and active strike count."""
        enriched: List[EnrichedAccount] = []
        for account in self._directory.list_accounts():
            enriched.append(
                EnrichedAccount(
                    uid=account.uid,
                    display_name=account.display_name,
                    created=account.created,
                    user_data=self._progress.get_progress(account.uid),
                    strike_count=self._strikes.active_count(account.uid),
                )
            )
        return enriched

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_steps(
        self,
        operation: str,
        uid: str,
        steps: List[CascadeStep],
        failure_message: str,
    ) -> CascadeReport:
        if get_settings().atomic_cascades:
            return self._run_atomic(operation, uid, steps, failure_message)
        return self._run_sequential(operation, uid, steps, failure_message)

    def _run_atomic(
        self,
        operation: str,
        uid: str,
        steps: List[CascadeStep],
        failure_message: str,
    ) -> CascadeReport:
        report = CascadeReport(operation=operation, uid=uid)
        current: Optional[str] = None
        try:
            with session_scope() as session:
                for step in steps:
                    current = step.name
                    report.steps.append(StepOutcome(step.name, step.apply(session)))
        except SQLAlchemyError as exc:
            logger.error("%s for %s rolled back at step %s: %s", operation, uid, current, exc)
            raise StoreError(failure_message) from exc
        return report

    def _run_sequential(
        self,
        operation: str,
        uid: str,
        steps: List[CascadeStep],
        failure_message: str,
    ) -> CascadeReport:
        report = CascadeReport(operation=operation, uid=uid)
        for step in steps:
            try:
                with session_scope() as session:
                    rows = step.apply(session)
            except SQLAlchemyError as exc:
                if not report.steps:
                    logger.error("%s for %s failed at step %s: %s", operation, uid, step.name, exc)
                    raise StoreError(failure_message) from exc
                logger.error(
                    "%s for %s stopped at step %s after committing %s: %s",
                    operation,
                    uid,
                    step.name,
                    report.completed_steps,
                    exc,
                )
                emit_event(
                    "cascade_partial_failure",
                    operation=operation,
                    uid=uid,
                    completed_steps=report.completed_steps,
                    failed_step=step.name,
                )
                raise PartialFailureError(
                    failure_message,
                    operation=operation,
                    uid=uid,
                    completed_steps=report.completed_steps,
                    failed_step=step.name,
                ) from exc
            report.steps.append(StepOutcome(step.name, rows))
        return report


coordinator = ConsistencyCoordinator()

__all__ = [
    "CascadeReport",
    "CascadeStep",
    "ConsistencyCoordinator",
    "EnrichedAccount",
    "SignInResult",
    "StepOutcome",
    "coordinator",
]
