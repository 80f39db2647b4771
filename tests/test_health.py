"""Tests for health check endpoints."""

import pytest
from fastapi.testclient import TestClient

from elearning.main import create_app


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


class TestHealthEndpoints:
    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["environment"] == "testing"

    def test_readiness_degraded_without_cassandra(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["cassandra"] is False
        assert data["completion_dispatcher"] is None

    def test_readiness_reports_dispatcher(self, client, dispatcher):
        client.app.state.completion_dispatcher = dispatcher

        data = client.get("/health/ready").json()

        assert data["completion_dispatcher"]["jobs_processed"] == 0
        assert data["completion_dispatcher"]["running"] is False


class TestServiceWiring:
    def test_missing_service_answers_503(self, client):
        response = client.post("/v1/payments/callback/ws_CO_1", json={"resultCode": 0})

        assert response.status_code == 503
