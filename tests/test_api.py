import asyncio

import pytest
from conftest import descriptor
from fastapi.testclient import TestClient

from hostcare.core.config import settings
from hostcare.main import app
from hostcare.orchestration.coordinator import run_session
from hostcare.session.manifest import get_marker_path


@pytest.fixture
def client():
    with TestClient(app) as c:
        c.headers["Authorization"] = f"Bearer {settings.APP_AUTH_KEY}"
        yield c


@pytest.fixture
def finished_session(paths, fake_tasks):
    catalog = [
        descriptor("first", fake_tasks.detector("det.first", items=2), fake_tasks.actor("act.first")),
        descriptor("second", fake_tasks.detector("det.second", raises=RuntimeError("nope"))),
    ]
    return asyncio.run(run_session(catalog, dry_run=False, paths=paths))


def test_health_needs_no_token(paths):
    with TestClient(app) as c:
        response = c.get("/health")
    assert response.status_code == 200
    assert response.json()["exec_id"] == paths.exec_id


def test_token_required(client):
    assert client.get("/v1/sessions", headers={"Authorization": "Bearer wrong"}).status_code == 401
    client.headers.pop("Authorization")
    assert client.get("/v1/sessions").status_code in (401, 403)


def test_list_and_get_session(client, finished_session):
    listing = client.get("/v1/sessions").json()
    assert [s["session_id"] for s in listing] == [finished_session.session_id]

    response = client.get(f"/v1/sessions/{finished_session.session_id}")
    assert response.status_code == 200
    assert [r["task_name"] for r in response.json()["task_results"]] == ["first", "second"]


def test_report(client, finished_session):
    response = client.get(f"/v1/sessions/{finished_session.session_id}/report")
    assert response.status_code == 200
    body = response.json()
    assert [m["status"] for m in body["modules"]] == ["success", "degraded"]
    assert body["totals"]["items_processed"] == 2


def test_unknown_and_incomplete_sessions(client, paths, finished_session):
    assert client.get("/v1/sessions/01ARZ3NDEKTSV4RRFFQ69G5FAV").status_code == 404

    get_marker_path(paths, finished_session.session_id).unlink()
    assert client.get(f"/v1/sessions/{finished_session.session_id}").status_code == 409
    assert client.post(f"/v1/sessions/{finished_session.session_id}/undo").status_code == 409


def test_undo_endpoint(client, finished_session):
    response = client.post(f"/v1/sessions/{finished_session.session_id}/undo")
    assert response.status_code == 200
    assert response.json() == {
        "session_id": finished_session.session_id,
        "succeeded": 0,
        "failed": 0,
        "skipped": 0,
        "outcomes": [],
    }
