from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from ai_note.inference import InferenceCandidate, RateLimitedError, SemanticScanner
from ai_note.server.app import create_app, get_todo_service
from ai_note.service import TodoService
from ai_note.todo import Confidence, MemoryStateBackend, TodoExtractor, TodoRepository


@pytest.fixture
def scanner():
    return MagicMock(spec=SemanticScanner)


@pytest.fixture
def service(scanner):
    return TodoService(
        TodoRepository(MemoryStateBackend(), clock=lambda: 5000),
        extractor=TodoExtractor(clock=lambda: 1000),
        scanner=scanner,
    )


@pytest.fixture
def client(service):
    app = create_app()
    app.dependency_overrides[get_todo_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def note(tmp_path):
    path = tmp_path / "plan.md"
    path.write_text("- [ ] write report\nTODO: call bank\n", encoding="utf-8")
    return path


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_todo_api_flow(client, note):
    resp = client.get("/api/todos")
    assert resp.status_code == 200
    assert resp.json() == []

    resp = client.post("/api/files/refresh", json={"path": str(note)})
    assert resp.status_code == 200
    assert resp.json() == {"filePath": str(note), "count": 2}

    resp = client.get("/api/todos")
    groups = resp.json()
    assert len(groups) == 1
    assert groups[0]["displayName"] == "plan.md"
    records = groups[0]["records"]
    assert [r["text"] for r in records] == ["write report", "call bank"]
    assert records[0]["lineNumber"] == 1
    assert records[0]["status"] == "pending"
    assert records[0]["origin"] == "marker"
    identity = records[0]["identity"]

    resp = client.patch(f"/api/todos/{identity}", json={"status": "completed"})
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["status"] == "completed"
    assert updated["updatedAt"] == 5000

    resp = client.get(f"/api/todos/{identity}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"

    resp = client.delete(f"/api/todos/{identity}")
    assert resp.status_code == 200
    assert resp.json() == {"deleted": True}

    resp = client.delete(f"/api/todos/{identity}")
    assert resp.status_code == 404

    resp = client.delete("/api/todos")
    assert resp.json() == {"cleared": True}
    assert client.get("/api/todos").json() == []


def test_update_missing_todo(client):
    resp = client.patch("/api/todos/nope", json={"status": "completed"})
    assert resp.status_code == 404

    resp = client.patch("/api/todos/nope", json={"status": "finished"})
    assert resp.status_code == 422


def test_refresh_missing_file(client, tmp_path):
    resp = client.post("/api/files/refresh", json={"path": str(tmp_path / "gone.md")})
    assert resp.status_code == 404


def test_semantic_scan_endpoint(client, scanner, note):
    client.post("/api/files/refresh", json={"path": str(note)})
    scanner.scan.return_value = [
        InferenceCandidate("Call  Bank", 30, Confidence.HIGH),
        InferenceCandidate("renew passport", 8, Confidence.LOW),
    ]

    resp = client.post("/api/files/semantic-scan", json={"path": str(note)})

    assert resp.status_code == 200
    assert resp.json() == {"filePath": str(note), "found": 2, "added": 1, "skipped": 1}
    records = client.get("/api/todos").json()[0]["records"]
    inferred = [r for r in records if r["origin"] == "inferred"]
    assert inferred[0]["text"] == "renew passport"
    assert inferred[0]["confidence"] == "low"


def test_semantic_scan_error_mapping(client, scanner, note):
    scanner.scan.side_effect = RateLimitedError("Rate limit exceeded", 429)

    resp = client.post("/api/files/semantic-scan", json={"path": str(note)})

    assert resp.status_code == 429
    assert resp.json()["detail"]["kind"] == "rate_limited"
