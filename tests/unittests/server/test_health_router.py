from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sharepoint_connector.main.config import set_settings
from sharepoint_connector.metrics.metrics_service import MetricsService
from sharepoint_connector.server.main import get_application


@pytest.fixture
def metrics():
    return MetricsService()


@pytest.fixture
def client(test_settings, metrics):
    set_settings(test_settings)
    app = get_application(with_lifespan=False)
    container = MagicMock()
    container.metrics.return_value = metrics
    app.state.container = container
    return TestClient(app)


class TestHealthRouter:
    def test_health_ok(self, client, test_settings):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["version"] == test_settings.app_version
        assert "timestamp" in body
        assert body["uptime"] >= 0

    def test_health_degraded(self, client, metrics):
        metrics.set_healthy(False)

        assert client.get("/health").json()["status"] == "degraded"

    def test_ready(self, client, metrics):
        assert client.get("/health/ready").status_code == 200

        metrics.set_healthy(False)

        assert client.get("/health/ready").status_code == 503

    def test_live_ignores_health(self, client, metrics):
        metrics.set_healthy(False)

        assert client.get("/health/live").json() == {"status": "alive"}

    def test_metrics_exposition(self, client, metrics):
        metrics.record_files_queued(2)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "sharepoint_files_queued_total 2.0" in response.text
