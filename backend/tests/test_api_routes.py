from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from academy.config import get_settings
from academy.main import app
from academy.repositories.progress import progress_rows


@pytest.fixture
def client(academy_db) -> TestClient:
    return TestClient(app)


def _create(client: TestClient, username: str, display_name: str | None = None) -> None:
    response = client.post(
        "/api/accounts",
        json={"username": username, "password": "secret", "displayName": display_name or username},
    )
    assert response.status_code == 200, response.text


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert isinstance(payload["timestamp"], int)


def test_create_account_response_omits_password(client: TestClient) -> None:
    response = client.post(
        "/api/accounts",
        json={"username": " Alice ", "password": "secret", "displayName": "Alice A."},
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True, "uid": "alice", "displayName": "Alice A."}


def test_create_account_errors_use_envelope(client: TestClient) -> None:
    _create(client, "bob")
    duplicate = client.post("/api/accounts", json={"username": "BOB", "password": "secret"})
    assert duplicate.status_code == 409
    assert duplicate.json() == {"ok": False, "error": "Username already exists. Choose a different one."}

    short = client.post("/api/accounts", json={"username": "x", "password": "secret"})
    assert short.status_code == 400
    assert short.json()["ok"] is False


def test_login_flow(client: TestClient) -> None:
    _create(client, "carol", "Carol C.")
    client.post("/api/user/carol", json={"data": {"xp": 7}})

    response = client.post("/api/login", json={"username": "CAROL", "password": "secret"})
    assert response.status_code == 200
    assert response.json() == {"ok": True, "uid": "carol", "displayName": "Carol C.", "userData": {"xp": 7}}

    wrong = client.post("/api/login", json={"username": "carol", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "Invalid username or password. Check your credentials."

    empty = client.post("/api/login", json={})
    assert empty.status_code == 400


def test_admin_login(client: TestClient, monkeypatch) -> None:
    monkeypatch.setenv("ACADEMY_ADMIN_PASSWORD", "manager-pass")
    get_settings.cache_clear()

    assert client.post("/api/admin/login", json={"password": "manager-pass"}).json() == {"ok": True}
    assert client.post("/api/admin/login", json={"password": "admin123"}).status_code == 401
    assert client.post("/api/admin/login", json={}).status_code == 400


def test_progress_round_trip(client: TestClient) -> None:
    _create(client, "dave")
    assert client.get("/api/user/dave").json() == {"data": {}}
    assert client.post("/api/user/Dave", json={"data": {"xp": 3, "badges": ["first"]}}).json() == {"ok": True}
    assert client.get("/api/user/DAVE").json() == {"data": {"xp": 3, "badges": ["first"]}}


def test_progress_accepts_any_json_value(client: TestClient) -> None:
    _create(client, "erin")
    assert client.post("/api/user/erin", json={"data": [1, 2, 3]}).json() == {"ok": True}
    assert client.get("/api/user/erin").json() == {"data": [1, 2, 3]}
    client.post("/api/user/erin", json={"data": None})
    assert client.get("/api/user/erin").json() == {"data": {}}


def test_progress_for_unknown_learner_is_not_stored(client: TestClient) -> None:
    response = client.post("/api/user/ghost", json={"data": {"xp": 999}})
    assert response.status_code == 404
    assert response.json()["ok"] is False
    assert client.get("/api/user/ghost").json() == {"data": {}}


def test_progress_store_failure_hides_engine_detail(client: TestClient, monkeypatch) -> None:
    _create(client, "frank")

    def boom(*_args, **_kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(progress_rows, "upsert", boom)
    response = client.post("/api/user/frank", json={"data": {"xp": 1}})
    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "Failed to save progress."}


def test_results_endpoints(client: TestClient) -> None:
    _create(client, "gina", "Gina")
    first = client.post(
        "/api/results",
        json={"uid": "gina", "qid": "q1", "qname": "Cold calls", "pct": 80, "passed": True,
              "date": "2025-03-01T09:00:00Z"},
    )
    assert first.status_code == 200
    assert first.json()["ok"] is True
    client.post("/api/results", json={"uid": "gina", "qid": "q2", "passed": False, "date": "2025-03-02T09:00:00Z"})

    mine = client.get("/api/results/GINA").json()
    assert [row["qid"] for row in mine] == ["q2", "q1"]
    assert mine[1]["qname"] == "Cold calls"

    everyone = client.get("/api/results", params={"limit": 1}).json()
    assert len(everyone) == 1
    assert everyone[0]["name"] == "Gina"

    missing = client.post("/api/results", json={"uid": "gina"})
    assert missing.status_code == 400
    assert missing.json()["error"] == "Quiz ID required."


def test_strike_endpoints(client: TestClient) -> None:
    _create(client, "hank", "Hank")
    _create(client, "ivan", "Ivan")

    assert client.post("/api/strikes", json={"uid": "hank", "reason": "late"}).json() == {"ok": True}
    bulk = client.post(
        "/api/strikes/bulk",
        json={"users": [{"uid": "hank"}, {"uid": "ivan", "reason": "no call log"}], "reason": "missed standup"},
    )
    assert bulk.json() == {"ok": True, "count": 2}

    active = client.get("/api/strikes").json()
    assert len(active) == 3
    assert {row["name"] for row in active} == {"Hank", "Ivan"}

    summary = client.get("/api/strikes/summary/all").json()
    assert summary[0]["uid"] == "hank"
    assert summary[0]["strikeCount"] == 2
    assert "lastStrike" in summary[0]

    strike_id = client.get("/api/strikes/ivan").json()[0]["id"]
    removed = client.request("DELETE", f"/api/strikes/{strike_id}", json={"reason": "appeal upheld"})
    assert removed.json() == {"ok": True}
    assert client.get("/api/strikes/ivan").json() == []

    history = client.get("/api/strikes", params={"all": "true"}).json()
    ivan = [row for row in history if row["uid"] == "ivan"][0]
    assert ivan["removedReason"] == "appeal upheld"
    assert ivan["removedAt"] is not None


def test_bulk_strikes_require_users(client: TestClient) -> None:
    response = client.post("/api/strikes/bulk", json={"users": []})
    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "No users provided."}


def test_account_listing_reset_and_delete(client: TestClient) -> None:
    _create(client, "jane", "Jane")
    client.post("/api/user/jane", json={"data": {"xp": 9}})
    client.post("/api/strikes", json={"uid": "jane"})
    client.post("/api/results", json={"uid": "jane", "qid": "q1", "passed": True})

    [listed] = client.get("/api/accounts").json()
    assert listed["uid"] == "jane"
    assert listed["displayName"] == "Jane"
    assert listed["strikeCount"] == 1
    assert listed["userData"] == {"xp": 9}
    assert "password" not in listed

    reset = client.post("/api/accounts/jane/reset").json()
    assert reset["ok"] is True
    assert reset["rows"]["results"] == 1
    assert client.get("/api/user/jane").json() == {"data": {}}
    assert client.get("/api/results/jane").json() == []

    deleted = client.delete("/api/accounts/JANE").json()
    assert deleted["ok"] is True
    assert deleted["rows"]["account"] == 1
    assert client.get("/api/accounts").json() == []

    assert client.post("/api/accounts/jane/reset").status_code == 404


def test_unknown_api_path_is_not_served_as_client(client: TestClient) -> None:
    assert client.get("/api/does-not-exist").status_code == 404


def test_static_client_fallback(client: TestClient, tmp_path: Path, monkeypatch) -> None:
    static_root = tmp_path / "site"
    (static_root / "public").mkdir(parents=True)
    (static_root / "public" / "index.html").write_text("<html>academy</html>")
    (static_root / "app.js").write_text("console.log('academy');")
    monkeypatch.setenv("ACADEMY_STATIC_DIR", str(static_root))
    get_settings.cache_clear()

    assert client.get("/app.js").text == "console.log('academy');"
    assert "academy" in client.get("/manager/dashboard").text


def test_request_validation_errors_use_envelope(client: TestClient) -> None:
    bad_id = client.delete("/api/strikes/abc")
    assert bad_id.status_code == 400
    assert bad_id.json()["ok"] is False
    assert "strike_id" in bad_id.json()["error"]

    not_an_object = client.post("/api/results", json=[1, 2, 3])
    assert not_an_object.status_code == 400
    assert not_an_object.json()["ok"] is False

    bad_limit = client.get("/api/results", params={"limit": 0})
    assert bad_limit.status_code == 400
    assert set(bad_limit.json()) == {"ok", "error"}
