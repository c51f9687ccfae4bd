"""Tests for health check endpoints"""
import pytest
from fastapi.testclient import TestClient


def test_health(client: TestClient):
    """Test basic health check"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_liveness(client: TestClient):
    """Test liveness probe"""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


def test_readiness(client: TestClient):
    """Test readiness probe checks both storage media"""
    response = client.get("/health/ready")
    assert response.status_code == 200
    checks = response.json()["checks"]
    assert checks["anchor_database"] is True
    assert checks["log_store"] is True


def test_readiness_unreadable_log(client: TestClient, log_path):
    """Test readiness fails when the log cannot be read"""
    log_path.unlink()
    log_path.mkdir()
    response = client.get("/health/ready")
    assert response.status_code == 503
    assert response.json()["checks"]["log_store"] is False


def test_stats(client: TestClient, admin_headers: dict):
    """Test chain statistics"""
    entry_hash = client.post(
        "/chain", json={"value": "20.0", "timestamp": "2024-01-01 00:00:00"}, headers=admin_headers
    ).json()["entry_hash"]

    response = client.get("/health/stats")
    assert response.status_code == 200
    chain = response.json()["chain"]
    assert chain["records"] == 1
    assert chain["tip"] == entry_hash
    assert chain["anchor"] == entry_hash
    assert chain["pending_commit"] is False


def test_metrics_exposed(client: TestClient, admin_headers: dict):
    """Test chain metrics are published after a verification"""
    client.get("/chain/verify")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "sensorchain_verifications_total" in response.text


def test_stats_with_malformed_tail(client: TestClient, admin_headers: dict, log_path):
    """Test stats come from one snapshot and report no tip for a broken last row"""
    client.post("/chain", json={"value": "20.0", "timestamp": "2024-01-01 00:00:00"}, headers=admin_headers)
    with open(log_path, "a") as f:
        f.write("garbage\n")

    response = client.get("/health/stats")
    assert response.status_code == 200
    chain = response.json()["chain"]
    assert chain["records"] == 2
    assert chain["tip"] is None


def test_stats_read_log_once(client: TestClient, admin_headers: dict, ledger, monkeypatch):
    """Test stats do not read the log a second time outside the snapshot"""
    client.post("/chain", json={"value": "20.0", "timestamp": "2024-01-01 00:00:00"}, headers=admin_headers)
    monkeypatch.setattr(ledger, "records", lambda: pytest.fail("records() read the log again"))

    chain = client.get("/health/stats").json()["chain"]
    assert chain["records"] == 1
    assert chain["tip"] == ledger.anchor.get()
