from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from academy.coordinator import ConsistencyCoordinator
from academy.db.models import AccountModel, ProgressModel, ResultModel, StrikeModel
from academy.db.session import session_scope
from academy.errors import AuthError, ConflictError, NotFoundError, PartialFailureError, StoreError, ValidationError
from academy.identity import IdentityDirectory
from academy.progress import ProgressStore
from academy.repositories.accounts import accounts
from academy.repositories.progress import progress_rows
from academy.results import ResultsLedger
from academy.strikes import StrikeLedger


def _row_counts(uid: str) -> dict[str, int]:
    counts = {}
    with session_scope(commit=False) as session:
        for name, model in (
            ("accounts", AccountModel),
            ("user_data", ProgressModel),
            ("results", ResultModel),
            ("strikes", StrikeModel),
        ):
            stmt = select(func.count()).select_from(model).where(model.uid == uid)
            counts[name] = session.execute(stmt).scalar_one()
    return counts


def _populated_learner(coordinator: ConsistencyCoordinator, uid: str = "alice") -> None:
    coordinator.create_learner(uid, "secret", uid.title())
    ProgressStore().save_progress(uid, {"xp": 40, "completed": ["intro"]})
    ResultsLedger().record_result({"uid": uid, "qid": "q1", "pct": 90, "passed": True})
    ResultsLedger().record_result({"uid": uid, "qid": "q2", "pct": 40, "passed": False})
    StrikeLedger().add_strike(uid, "late")


def test_create_learner_writes_account_and_empty_progress(academy_db, telemetry_events) -> None:
    account = ConsistencyCoordinator().create_learner("  Alice ", "secret", "Alice A.")
    assert account.uid == "alice"
    assert _row_counts("alice") == {"accounts": 1, "user_data": 1, "results": 0, "strikes": 0}
    assert ProgressStore().get_progress("alice") == {}
    assert [event.payload["uid"] for event in telemetry_events if event.name == "learner_created"] == ["alice"]


def test_create_learner_conflict_leaves_original_untouched(academy_db) -> None:
    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("bob", "secret", "Bob")
    ProgressStore().save_progress("bob", {"xp": 5})

    with pytest.raises(ConflictError):
        coordinator.create_learner("BOB", "other", "Impostor")

    assert IdentityDirectory().verify_credentials("bob", "secret").display_name == "Bob"
    assert ProgressStore().get_progress("bob") == {"xp": 5}


def test_create_learner_starts_with_empty_progress_over_leftover_row(academy_db) -> None:
    with pytest.raises(NotFoundError):
        ProgressStore().save_progress("zoe", {"xp": 999, "completed": ["everything"]})

    # A row left behind by an interrupted delete.
    with session_scope() as session:
        progress_rows.upsert(session, "zoe", {"xp": 999, "completed": ["everything"]})

    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("zoe", "secret", "Zoe")
    assert coordinator.sign_in("zoe", "secret").user_data == {}
    assert _row_counts("zoe")["user_data"] == 1


def test_create_learner_keeps_account_when_progress_step_fails(academy_db, monkeypatch) -> None:
    def broken(*_args, **_kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(progress_rows, "upsert", broken)
    account = ConsistencyCoordinator().create_learner("carol", "secret")
    assert account.uid == "carol"
    assert _row_counts("carol")["accounts"] == 1
    assert _row_counts("carol")["user_data"] == 0


def test_create_learner_rolls_back_account_when_atomic(academy_db, atomic_cascades, monkeypatch) -> None:
    def broken(*_args, **_kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(progress_rows, "upsert", broken)
    with pytest.raises(StoreError):
        ConsistencyCoordinator().create_learner("dave", "secret")
    assert _row_counts("dave")["accounts"] == 0


def test_delete_learner_removes_every_row(academy_db, telemetry_events) -> None:
    coordinator = ConsistencyCoordinator()
    _populated_learner(coordinator, "erin")
    _populated_learner(coordinator, "frank")

    report = coordinator.delete_learner("ERIN")

    assert report.completed_steps == ["strikes", "results", "progress", "account"]
    assert report.rows_for("results") == 2
    assert report.rows_for("account") == 1
    assert _row_counts("erin") == {"accounts": 0, "user_data": 0, "results": 0, "strikes": 0}
    assert _row_counts("frank") == {"accounts": 1, "user_data": 1, "results": 2, "strikes": 1}
    deleted = [event.payload for event in telemetry_events if event.name == "learner_deleted"]
    assert deleted[0]["rows"]["strikes"] == 1


def test_delete_learner_is_repeatable(academy_db) -> None:
    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("gina", "secret")
    coordinator.delete_learner("gina")
    report = coordinator.delete_learner("gina")
    assert report.rows_for("account") == 0


def test_delete_learner_partial_failure_keeps_account(academy_db, monkeypatch, telemetry_events) -> None:
    coordinator = ConsistencyCoordinator()
    _populated_learner(coordinator, "hank")

    original_delete = progress_rows.delete

    def broken(*_args, **_kwargs):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(progress_rows, "delete", broken)
    with pytest.raises(PartialFailureError) as excinfo:
        coordinator.delete_learner("hank")

    assert excinfo.value.completed_steps == ["strikes", "results"]
    assert excinfo.value.failed_step == "progress"
    assert _row_counts("hank") == {"accounts": 1, "user_data": 1, "results": 0, "strikes": 0}
    assert any(event.name == "cascade_partial_failure" for event in telemetry_events)

    monkeypatch.setattr(progress_rows, "delete", original_delete)
    coordinator.delete_learner("hank")
    assert _row_counts("hank")["accounts"] == 0


def test_delete_learner_first_step_failure_is_plain_store_error(academy_db, monkeypatch) -> None:
    from academy.repositories.strikes import strike_rows

    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("ivan", "secret")

    def broken(*_args, **_kwargs):
        raise OperationalError("DELETE", {}, Exception("disk I/O error"))

    monkeypatch.setattr(strike_rows, "delete_for_uid", broken)
    with pytest.raises(StoreError) as excinfo:
        coordinator.delete_learner("ivan")
    assert not isinstance(excinfo.value, PartialFailureError)
    assert excinfo.value.message == "Failed to delete account."


def test_delete_learner_is_all_or_nothing_when_atomic(academy_db, atomic_cascades, monkeypatch) -> None:
    coordinator = ConsistencyCoordinator()
    _populated_learner(coordinator, "jane")

    def broken(*_args, **_kwargs):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(accounts, "delete", broken)
    with pytest.raises(StoreError):
        coordinator.delete_learner("jane")
    assert _row_counts("jane") == {"accounts": 1, "user_data": 1, "results": 2, "strikes": 1}


def test_reset_learner_clears_history_but_keeps_account(academy_db, telemetry_events) -> None:
    coordinator = ConsistencyCoordinator()
    _populated_learner(coordinator, "karl")

    report = coordinator.reset_learner("karl")

    assert report.completed_steps == ["results", "strikes", "progress"]
    assert _row_counts("karl") == {"accounts": 1, "user_data": 1, "results": 0, "strikes": 0}
    assert ProgressStore().get_progress("karl") == {}
    assert coordinator.sign_in("karl", "secret").account.uid == "karl"
    assert any(event.name == "learner_reset" for event in telemetry_events)


def test_reset_unknown_learner(academy_db) -> None:
    with pytest.raises(NotFoundError):
        ConsistencyCoordinator().reset_learner("ghost")


def test_sign_in_returns_progress(academy_db) -> None:
    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("Lena", "secret", "Lena L.")
    ProgressStore().save_progress("lena", {"xp": 12})

    result = coordinator.sign_in("LENA", "secret")
    assert result.account.display_name == "Lena L."
    assert result.user_data == {"xp": 12}


def test_sign_in_creates_missing_progress_document(academy_db) -> None:
    IdentityDirectory().create_account("mona", "secret")
    assert _row_counts("mona")["user_data"] == 0
    assert ConsistencyCoordinator().sign_in("mona", "secret").user_data == {}
    assert _row_counts("mona")["user_data"] == 1


def test_sign_in_rejects_bad_input(academy_db) -> None:
    coordinator = ConsistencyCoordinator()
    coordinator.create_learner("nina", "secret")
    with pytest.raises(ValidationError):
        coordinator.sign_in("", "secret")
    with pytest.raises(AuthError):
        coordinator.sign_in("nina", "wrong")


def test_list_enriched_accounts(academy_db) -> None:
    coordinator = ConsistencyCoordinator()
    _populated_learner(coordinator, "omar")
    coordinator.create_learner("paul", "secret", "Paul")
    strike = StrikeLedger().add_strike("omar", "absent")
    StrikeLedger().remove_strike(strike.id)

    enriched = {entry.uid: entry for entry in coordinator.list_enriched_accounts()}
    assert enriched["omar"].strike_count == 1
    assert enriched["omar"].user_data == {"xp": 40, "completed": ["intro"]}
    assert enriched["paul"].strike_count == 0
    assert enriched["paul"].user_data == {}
