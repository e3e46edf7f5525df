"""Tests for the HTTP and Socket.IO facade."""

import asyncio
import time

import pytest

from arrivals.config import AmenitizConfig, ServiceConfig, StorageConfig
from arrivals.service import ServiceRunner, build_coordinator
from web.app import create_app

from conftest import ExtractorFactory, FakeExtractor


def wait_until(predicate, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise AssertionError("condition never became true")


@pytest.fixture
def service_config(tmp_path):
    return ServiceConfig(
        amenitiz=AmenitizConfig(email="owner@example.com", password="s3cret"),
        storage=StorageConfig(
            data_dir=tmp_path / "data",
            session_dir=tmp_path / "session",
            screenshot_dir=tmp_path / "screenshots",
            export_formats=[],
        ),
    )


@pytest.fixture
def factory():
    return ExtractorFactory()


@pytest.fixture
def runner(service_config, factory):
    runner = ServiceRunner(build_coordinator(service_config, extractor_factory=factory))
    runner.start(schedule=False)
    yield runner
    runner.stop()


@pytest.fixture
def app_and_socketio(runner):
    app, socketio = create_app(runner)
    app.config["TESTING"] = True
    return app, socketio


@pytest.fixture
def client(app_and_socketio):
    app, _ = app_and_socketio
    return app.test_client()


def refresh_and_wait(client, runner):
    response = client.post("/api/refresh")
    assert response.status_code == 200
    wait_until(lambda: not runner.status().running)


class TestDataEndpoints:
    def test_guests_unavailable_before_first_refresh(self, client):
        response = client.get("/api/guests")
        assert response.status_code == 503
        assert response.get_json()["last_error"] is None

        assert client.get("/api/rooms").status_code == 503

    def test_guests_and_rooms_after_refresh(self, client, runner):
        refresh_and_wait(client, runner)

        data = client.get("/api/guests").get_json()
        assert data["count"] == 3
        assert data["guests"][0]["name"] == "Alice Martin"
        assert data["last_refresh_time"] is not None
        assert data["next_refresh_in"] > 0

        rooms = client.get("/api/rooms").get_json()["rooms"]
        assert len(rooms["Chambre Marocaine"]) == 2

    def test_failure_is_reported_with_unavailable_data(self, client, runner, factory):
        factory.add(FakeExtractor(credentials_ok=False))
        refresh_and_wait(client, runner)

        response = client.get("/api/guests")
        assert response.status_code == 503
        assert response.get_json()["last_error"]["kind"] == "AuthenticationFailed"


class TestServiceEndpoints:
    def test_health(self, client):
        data = client.get("/api/health").get_json()
        assert data["status"] == "healthy"
        assert data["uptime"] >= 0
        assert "timestamp" in data

    def test_status_fields(self, client, runner):
        refresh_and_wait(client, runner)

        data = client.get("/api/status").get_json()
        assert data["status"] == "running"
        assert data["running"] is False
        assert data["two_factor_pending"] is False
        assert data["auto_refresh_enabled"] is True
        assert data["auto_refresh_status"] == "enabled"
        assert data["cache_status"] == "ready"
        assert data["guest_count"] == 3
        assert data["last_error"] is None

    def test_status_after_failure(self, client, runner, factory):
        factory.add(FakeExtractor(credentials_ok=False))
        refresh_and_wait(client, runner)

        data = client.get("/api/status").get_json()
        assert data["auto_refresh_enabled"] is False
        assert data["auto_refresh_status"].startswith("disabled")
        assert data["next_refresh_in"] is None

    def test_refresh_while_running_is_429(self, client, runner, factory):
        gate = asyncio.Event()
        factory.add(FakeExtractor(gate=gate))

        assert client.post("/api/refresh").status_code == 200
        response = client.post("/api/refresh")
        assert response.status_code == 429

        runner.call(gate.set)
        wait_until(lambda: not runner.status().running)
        assert client.get("/api/guests").status_code == 200

    def test_two_factor_without_challenge_is_400(self, client):
        assert client.post("/api/2fa", json={"code": "123456"}).status_code == 400
        assert client.post("/api/2fa", json={}).status_code == 400

    @pytest.mark.parametrize("body", [["123456"], "123456", 123456, None])
    def test_two_factor_non_object_body_is_400(self, client, runner, factory, body):
        factory.add(FakeExtractor(challenge=True))
        client.post("/api/refresh")
        wait_until(lambda: runner.status().two_factor_pending)

        response = client.post("/api/2fa", json=body)
        assert response.status_code == 400
        assert runner.status().two_factor_pending

        assert client.post("/api/2fa", json={"code": "123456"}).status_code == 200
        wait_until(lambda: not runner.status().running)

    def test_two_factor_code_completes_refresh(self, client, runner, factory):
        extractor = FakeExtractor(challenge=True)
        factory.add(extractor)

        client.post("/api/refresh")
        wait_until(lambda: runner.status().two_factor_pending)
        assert client.get("/api/status").get_json()["two_factor_pending"] is True

        assert client.post("/api/2fa", json={"code": ""}).status_code == 400
        response = client.post("/api/2fa", json={"code": "123456"})
        assert response.status_code == 200

        wait_until(lambda: not runner.status().running)
        assert extractor.submitted_codes == ["123456"]
        assert client.get("/api/guests").status_code == 200


class TestSocketEvents:
    def test_connect_receives_status(self, app_and_socketio):
        app, socketio = app_and_socketio
        socket_client = socketio.test_client(app)
        try:
            received = socket_client.get_received()
            names = [event["name"] for event in received]
            assert "status" in names
            status = next(e for e in received if e["name"] == "status")["args"][0]
            assert status["cache_status"] == "empty"
        finally:
            socket_client.disconnect()
