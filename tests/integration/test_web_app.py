"""HTTP front door tests through FastAPI's TestClient."""

import threading
from unittest.mock import Mock

import pytest
from conftest import ScriptedProcessor, eventually, wait_for
from fastapi.testclient import TestClient

from switchyard import Failure, Priority, Success
from switchyard.web import Settings, build_dispatcher, create_app


@pytest.fixture
def web_settings():
    return Settings(
        _env_file=None,
        queue_backend="memory",
        request_timeout_seconds=10,
        backoff_delay_ms=20,
        rebalance_interval_seconds=0.1,
    )


@pytest.fixture
def make_client(web_settings):
    """Factory: TestClient around an app with a scripted processor (lifespan runs)."""
    clients = []

    def factory(processor=None, settings=None):
        settings = settings or web_settings
        dispatcher = build_dispatcher(settings, processor=processor or ScriptedProcessor())
        client = TestClient(create_app(settings=settings, dispatcher=dispatcher))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


class TestWebhookRoutes:
    """Webhook responses mirror the item's outcome."""

    def test_high_priority_success(self, make_client):
        client = make_client()

        response = client.post("/webhook/high-priority", json={"order": 42})

        assert response.status_code == 200
        assert response.json() == {"echo": {"order": 42}}

    def test_low_priority_success(self, make_client):
        processor = ScriptedProcessor([Success(201, {"created": True})])
        client = make_client(processor)

        response = client.post("/webhook/low-priority", json={"order": 7})

        assert response.status_code == 201
        assert response.json() == {"created": True}
        assert client.app.state.dispatcher.queue_for(Priority.LOW).get_counts()["completed"] == 1

    def test_downstream_rejection_relayed(self, make_client):
        rejection = Failure.downstream(422, {"error": "bad input"})
        client = make_client(ScriptedProcessor([rejection] * 3))

        response = client.post("/webhook/high-priority", json={})

        assert response.status_code == 422
        assert response.json() == {"error": "bad input"}

    def test_transport_exhaustion_is_500(self, make_client):
        client = make_client(
            ScriptedProcessor([Failure.transport("connection refused")] * 3)
        )

        response = client.post("/webhook/high-priority", json={})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Job failed"
        assert body["details"] == {
            "kind": "transport_error",
            "error": "connection refused",
            "attempts_made": 3,
        }

    def test_timeout_is_504(self, make_client, web_settings):
        settings = web_settings.model_copy(update={"request_timeout_seconds": 0.1})
        client = make_client(ScriptedProcessor(delay=1.0), settings=settings)

        response = client.post("/webhook/high-priority", json={})

        assert response.status_code == 504
        assert response.json()["error"] == "Job timed out"
        assert response.json()["item_id"]

    def test_enqueue_failure_is_500(self, make_client):
        client = make_client()
        client.app.state.dispatcher.submit = Mock(side_effect=ConnectionError("redis down"))

        response = client.post("/webhook/low-priority", json={})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "message": "redis down"}

    def test_empty_downstream_body(self, make_client):
        client = make_client(ScriptedProcessor([Success(204, None)]))

        response = client.post("/webhook/high-priority", json={})

        assert response.status_code == 204
        assert response.content == b""

    def test_text_downstream_body(self, make_client):
        client = make_client(ScriptedProcessor([Success(200, "accepted")]))

        response = client.post("/webhook/high-priority", json={})

        assert response.status_code == 200
        assert response.text == "accepted"

    def test_missing_body_forwarded_as_none(self, make_client):
        processor = ScriptedProcessor()
        client = make_client(processor)

        response = client.post("/webhook/high-priority")

        assert response.status_code == 200
        assert processor.calls == [None]


class TestAuxiliaryRoutes:
    """Health, test-job and dashboard routes."""

    def test_health(self, make_client):
        response = make_client().get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "timestamp" in response.json()

    def test_add_job_requires_id_and_email(self, make_client):
        client = make_client()

        assert client.get("/add-job", params={"id": "1"}).status_code == 400
        response = client.get("/add-job", params={"email": "a@example.com"})
        assert response.status_code == 400
        assert response.json() == {"error": "Requests must contain both an id and a email"}

    def test_add_job_enqueues_high_priority(self, make_client):
        processor = ScriptedProcessor()
        client = make_client(processor)

        response = client.get("/add-job", params={"id": "9", "email": "a@example.com"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        wait_for(lambda: processor.call_count == 1, timeout=5)
        assert processor.calls == [{"id": "9", "email": "a@example.com"}]
        high = client.app.state.dispatcher.queue_for(Priority.HIGH)

        def check():
            completed = high.list_items(status="completed")
            assert len(completed) == 1
            assert completed[0]["name"] == "TestJob-9"

        eventually(check, timeout=5)

    def test_queue_dashboard(self, make_client):
        client = make_client()
        client.post("/webhook/high-priority", json={"a": 1})

        status = client.get("/admin/queues").json()

        assert status["running"] is True
        assert status["queues"]["high"]["name"] == "HighPriorityQueue"
        assert status["queues"]["high"]["counts"]["completed"] == 1
        assert status["queues"]["low"]["name"] == "LowPriorityQueue"
        assert status["pool"]["size"] == 5

    def test_queue_item_lookup(self, make_client):
        client = make_client()
        client.post("/webhook/low-priority", json={"a": 1})
        low = client.app.state.dispatcher.queue_for(Priority.LOW)
        item_id = low.list_items(status="completed")[0]["item_id"]

        response = client.get(f"/admin/queues/low/items/{item_id}")

        assert response.status_code == 200
        assert response.json()["item_id"] == item_id
        assert response.json()["status"] == "completed"
        assert response.json()["name"] == "low-priority-webhook"

    def test_queue_item_not_found(self, make_client):
        response = make_client().get("/admin/queues/high/items/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Item not found", "item_id": "missing"}

    def test_queue_item_invalid_priority(self, make_client):
        assert make_client().get("/admin/queues/urgent/items/abc").status_code == 422


class TestBlockedCallers:
    """Webhook callers waiting on outcomes leave the other routes responsive."""

    def test_health_answers_while_webhook_callers_wait(self, make_client):
        gate = threading.Event()
        client = make_client(ScriptedProcessor(gate=gate))
        dispatcher = client.app.state.dispatcher
        responses = []

        def post():
            responses.append(client.post("/webhook/low-priority", json={}))

        callers = [threading.Thread(target=post) for _ in range(45)]
        for caller in callers:
            caller.start()
        try:
            wait_for(lambda: dispatcher.completions.pending_count() == 45, timeout=10)

            health = {}
            reader = threading.Thread(
                target=lambda: health.update(response=client.get("/health"))
            )
            reader.start()
            reader.join(timeout=5)
            assert not reader.is_alive()
            assert health["response"].status_code == 200
            assert client.get("/admin/queues").json()["pending_completions"] == 45
        finally:
            gate.set()
            for caller in callers:
                caller.join(timeout=15)

        assert len(responses) == 45
        assert {r.status_code for r in responses} == {200}


class TestLifespan:
    """Dispatcher follows the application lifespan."""

    def test_dispatcher_started_and_stopped(self, web_settings):
        processor = ScriptedProcessor()
        dispatcher = build_dispatcher(web_settings, processor=processor)

        with TestClient(create_app(settings=web_settings, dispatcher=dispatcher)):
            assert dispatcher.is_running()

        assert not dispatcher.is_running()
        assert processor.closed
