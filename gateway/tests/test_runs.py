"""Tests for the run trigger and status routes."""

import pytest
from fastapi.testclient import TestClient

from gateway.src.main import app
from gateway.src.routes import runs

@pytest.fixture
def queue(monkeypatch):
    state = {"jobs": [], "status": {}, "events": {}}

    async def fake_enqueue(run_id, config):
        state["jobs"].append((run_id, config))
        state["status"][run_id] = "queued"

    async def fake_status(run_id):
        return state["status"].get(run_id)

    async def fake_events(run_id):
        return state["events"].get(run_id, [])

    monkeypatch.setattr(runs, "enqueue_pipeline_run", fake_enqueue)
    monkeypatch.setattr(runs, "get_run_status", fake_status)
    monkeypatch.setattr(runs, "get_run_events", fake_events)
    return state

@pytest.fixture
def client():
    return TestClient(app)

CONFIG = {
    "name": "demo",
    "image": "demo:1.0",
    "build": {"context": "."},
    "deploy": {"host": "3.120.1.1", "key_env": "EC2_SSH_KEY", "port": 5000},
}

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

def test_trigger_queues_validated_config(client, queue):
    response = client.post("/api/runs", json={"config": CONFIG})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "queued"
    assert body["stages"] == ["build", "deploy"]

    run_id, config = queue["jobs"][0]
    assert run_id == body["run_id"]
    assert config["deploy"]["port"] == "5000:5000"

def test_trigger_accepts_yaml(client, queue):
    yaml_text = "image: demo:1.0\nbuild:\n  context: .\n"

    response = client.post("/api/runs", json={"yaml": yaml_text})

    assert response.status_code == 202
    assert queue["jobs"][0][1]["stages"] == ["build"]

def test_trigger_rejects_invalid_config(client, queue):
    response = client.post("/api/runs", json={"config": {"name": "no image", "build": {}}})

    assert response.status_code == 400
    assert "image" in response.json()["detail"]
    assert queue["jobs"] == []

def test_trigger_requires_body(client, queue):
    response = client.post("/api/runs", json={})
    assert response.status_code == 400

def test_run_status_with_events(client, queue):
    queue["status"]["r1"] = "failed"
    queue["events"]["r1"] = [
        {"run_id": "r1", "event": "run_started", "status": "running"},
        {"run_id": "r1", "event": "stage_transition", "stage": "build", "status": "running"},
        {"run_id": "r1", "event": "stage_transition", "stage": "build", "status": "failed",
         "error_kind": "BackendFailed", "error": "exit 1"},
        {"run_id": "r1", "event": "stage_transition", "stage": "deploy", "status": "skipped"},
        {"run_id": "r1", "event": "run_finished", "stage": "build", "status": "failed"},
    ]

    response = client.get("/api/runs/r1")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "failed"
    assert body["stages"] == {"build": "failed", "deploy": "skipped"}
    assert body["failed_stage"] == "build"

def test_unknown_run(client, queue):
    response = client.get("/api/runs/missing")
    assert response.status_code == 404

def test_trigger_rejects_deploy_without_build(client, queue):
    config = {key: value for key, value in CONFIG.items() if key != "build"}

    response = client.post("/api/runs", json={"config": config})

    assert response.status_code == 400
    assert "needs a 'build' stage" in response.json()["detail"]
    assert queue["jobs"] == []
