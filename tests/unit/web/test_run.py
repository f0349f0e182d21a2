"""Unit tests for the service entry point."""

from unittest.mock import Mock

import pytest

from switchyard import ConfigurationError
from switchyard.web import Settings, get_settings
from switchyard.web import run


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_startup_banner_lists_routes():
    settings = Settings(_env_file=None, port=8080, public_base_url="https://hooks.example.com/")

    lines = run.startup_banner(settings)

    assert lines == [
        "Switchyard listening on port 8080",
        "High priority webhook: https://hooks.example.com/webhook/high-priority",
        "Low priority webhook: https://hooks.example.com/webhook/low-priority",
        "Queue dashboard: https://hooks.example.com/admin/queues",
        "Health check: https://hooks.example.com/health",
    ]


def test_main_serves_app_with_uvicorn(monkeypatch):
    monkeypatch.setenv("N8N_WEBHOOK_URL", "https://n8n.example.com/webhook/abc")
    monkeypatch.setenv("QUEUE_BACKEND", "memory")
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.delenv("HOST", raising=False)
    uvicorn_run = Mock()
    monkeypatch.setattr(run.uvicorn, "run", uvicorn_run)

    run.main()

    uvicorn_run.assert_called_once()
    app = uvicorn_run.call_args.args[0]
    assert app.state.settings.port == 4000
    assert uvicorn_run.call_args.kwargs == {"host": "0.0.0.0", "port": 4000, "log_level": "info"}


def test_main_without_downstream_url_fails(monkeypatch):
    monkeypatch.delenv("N8N_WEBHOOK_URL", raising=False)
    monkeypatch.setenv("QUEUE_BACKEND", "memory")
    monkeypatch.setattr(run.uvicorn, "run", Mock())

    with pytest.raises(ConfigurationError, match="N8N_WEBHOOK_URL"):
        run.main()
