"""Unit tests for the /health endpoint and the health snapshot."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from relay.config import RelayConfig
from relay.conversation import ConversationQueue
from relay.main import Application
from relay.observability.health_state import (
    CircuitBreakerSnapshot,
    ProcessingLoopSnapshot,
    build_health_snapshot,
)
from relay.scheduler.circuit_breaker import CircuitBreaker


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    application = Application(RelayConfig(telegram_bot_token="t"))
    application.queue = ConversationQueue()
    application.circuit_breaker = CircuitBreaker(max_failures=1)
    application.processing_loop = MagicMock()
    application.create_fastapi_app()
    return application


def set_loop(app, **fields):
    app.processing_loop.snapshot.return_value = ProcessingLoopSnapshot(**fields)


class TestHealthEndpoint:
    def test_healthy(self, app):
        set_loop(app, active=True)
        app.queue.add_message(1)

        response = TestClient(app.fastapi_app).get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["conversations"] == 1
        assert body["circuit_breaker"]["is_open"] is False

    def test_open_breaker_is_degraded(self, app):
        set_loop(app, active=True)
        app.circuit_breaker.record_failure()

        response = TestClient(app.fastapi_app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_pending_restart_is_degraded(self, app):
        set_loop(app, active=False, restart_pending=True)

        response = TestClient(app.fastapi_app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"

    def test_stopped_loop_is_unavailable(self, app):
        set_loop(app, active=False, restart_pending=False)

        response = TestClient(app.fastapi_app).get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "stopped"


def test_build_health_snapshot_statuses():
    closed = CircuitBreakerSnapshot()
    opened = CircuitBreakerSnapshot(is_open=True, failures=10, max_failures=10)

    assert build_health_snapshot(ProcessingLoopSnapshot(active=True), closed).status == "healthy"
    assert build_health_snapshot(ProcessingLoopSnapshot(active=True), opened).status == "degraded"
    assert build_health_snapshot(ProcessingLoopSnapshot(), closed).status == "stopped"
