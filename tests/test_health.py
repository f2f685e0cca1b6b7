"""Health check tests."""

from fastapi.testclient import TestClient

from invopt.api.deps import get_db
from invopt.config import settings
from invopt.db.handle import Database
from invopt.main import app

client = TestClient(app)


def test_health_endpoint(monkeypatch, client_with_db):
    """Test health check endpoint."""
    monkeypatch.setattr(settings, "redis_url", "redis://127.0.0.1:1/0")

    response = client_with_db.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["db"] == "connected"
    assert data["redis"].startswith("error")
    assert data["status"] == "degraded"


def test_health_reports_unreachable_database(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "redis_url", "redis://127.0.0.1:1/0")
    unreachable = Database(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}", max_attempts=1)
    app.dependency_overrides[get_db] = lambda: unreachable
    try:
        data = client.get("/health").json()
    finally:
        app.dependency_overrides.clear()
        unreachable.dispose()

    assert data["db"].startswith("error")
    assert data["status"] == "degraded"


def test_healthz():
    response = client.get("/v1/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
