from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

import sip_gateway.app.main as main_module
from sip_gateway.app.admission import CallAdmissionLedger
from sip_gateway.app.schemas import AcceptancePayload
from sip_gateway.app.session.launcher import SessionLauncher
from sip_gateway.app.session.supervisor import SessionSupervisor
from sip_gateway.app.webhook import CallWebhookHandler


class _FakeAcceptanceClient:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def accept(self, call_id: str, payload: AcceptancePayload) -> None:
        del payload
        self.calls.append(call_id)


class _FakeLauncher:
    def __init__(self) -> None:
        self.started: list[str] = []

    def start(self, call_id: str) -> None:
        self.started.append(call_id)


@pytest.fixture(autouse=True)
def _api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module.settings, "OPENAI_API_KEY", "sk-test")


def _install_fake_handler(client: TestClient) -> tuple[_FakeAcceptanceClient, _FakeLauncher]:
    acceptance_client = _FakeAcceptanceClient()
    launcher = _FakeLauncher()
    client.app.state.webhook_handler = CallWebhookHandler(
        ledger=CallAdmissionLedger(),
        acceptance_client=acceptance_client,
        session_launcher=launcher,
        webhook_secret=None,
        model="gpt-realtime",
        voice="marin",
    )
    return acceptance_client, launcher


def test_health_endpoint() -> None:
    with TestClient(main_module.app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "sip_gateway"}


def test_lifespan_wires_webhook_handler_and_launcher() -> None:
    with TestClient(main_module.app) as client:
        assert isinstance(client.app.state.webhook_handler, CallWebhookHandler)
        assert isinstance(client.app.state.session_launcher, SessionLauncher)


def test_lifespan_refuses_to_start_without_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main_module.settings, "OPENAI_API_KEY", "")

    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        with TestClient(main_module.app):
            pass


def test_webhook_route_accepts_any_content_type() -> None:
    body = json.dumps({"type": "realtime.call.incoming", "data": {"call_id": "abc"}})

    with TestClient(main_module.app) as client:
        acceptance_client, launcher = _install_fake_handler(client)
        first = client.post("/openai-webhook", content=body, headers={"Content-Type": "text/plain"})
        second = client.post("/openai-webhook", content=body, headers={"Content-Type": "application/json"})

    assert first.status_code == 200
    assert first.text == "OK"
    assert second.status_code == 200
    assert acceptance_client.calls == ["abc"]
    assert launcher.started == ["abc"]


def test_webhook_route_rejects_malformed_body() -> None:
    with TestClient(main_module.app) as client:
        acceptance_client, _launcher = _install_fake_handler(client)
        response = client.post("/openai-webhook", content=b"not-json")

    assert response.status_code == 400
    assert response.text == "Bad request"
    assert acceptance_client.calls == []


def test_session_launcher_factory_uses_settings() -> None:
    config = main_module.Settings(
        OPENAI_API_KEY="sk-test",
        OPENAI_REALTIME_WS_URL="wss://api.example.test/v1/realtime",
        OPENAI_REALTIME_ORIGIN="https://api.example.test",
        GREETING_FALLBACK_SECONDS=0.5,
    )
    launcher = main_module.build_session_launcher(config)

    supervisor = launcher._supervisor_factory("rtc_abc")

    assert isinstance(supervisor, SessionSupervisor)
    assert supervisor.session_url() == "wss://api.example.test/v1/realtime?call_id=rtc_abc"
    assert supervisor._auth_headers() == {"Authorization": "Bearer sk-test"}
    assert supervisor._origin == "https://api.example.test"
    assert supervisor._greeting_fallback_seconds == 0.5


def test_run_exits_when_api_key_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    served: list[object] = []
    monkeypatch.setattr(main_module.settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(main_module.uvicorn, "run", lambda *args, **kwargs: served.append(args))

    with pytest.raises(SystemExit) as exc_info:
        main_module.run()

    assert exc_info.value.code == 1
    assert served == []


def test_run_serves_app_on_configured_port(monkeypatch: pytest.MonkeyPatch) -> None:
    served: list[dict[str, object]] = []
    monkeypatch.setattr(main_module.settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(main_module.settings, "PORT", 8123)

    def fake_run(app: object, **kwargs: object) -> None:
        served.append({"app": app, **kwargs})

    monkeypatch.setattr(main_module.uvicorn, "run", fake_run)

    main_module.run()

    assert served == [{"app": main_module.app, "host": main_module.settings.HOST, "port": 8123, "log_config": None}]
