import io
import time
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from app.main import create_app
from services.session import SessionConfig, SessionService, build_default_session
from settings import get_settings
from transport.mock_serial import MockSerialTransport

TRIGGER = b"File created and data written.\n"
LOG = (
    "2024-01-01T10:00, Temp: 5.0°C, Humidity: 60%\n"
    "garbage, Temp: ??, Humidity: 1%\n"
    "2024-01-01T11:00, Temp: 10.5°C, Humidity: 70%\n"
    "--- END OF FILE ---\n"
).encode("utf-8")


@pytest.fixture
def transports() -> List[MockSerialTransport]:
    return []


@pytest.fixture
def api_client(monkeypatch, transports: List[MockSerialTransport]) -> Iterator[TestClient]:
    sessions: List[SessionService] = []

    def factory(port, baudrate):
        transport = MockSerialTransport(
            responder=lambda data: [LOG] if data == b"l" else [],
            read_timeout=0.01,
        )
        transports.append(transport)
        return transport

    def build_test_session() -> SessionService:
        if not sessions:
            sessions.append(
                SessionService(config=SessionConfig(poll_interval=0.01), transport_factory=factory)
            )
        return sessions[0]

    def cache_clear() -> None:
        while sessions:
            sessions.pop().close()

    build_test_session.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_session", build_test_session)
    monkeypatch.setattr("app.api.build_default_session", build_test_session)
    monkeypatch.setenv("SERIAL_PORT", "/dev/ttyTEST")

    get_settings.cache_clear()
    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()
    get_settings.cache_clear()


def test_lifespan_closes_session_and_clears_cache() -> None:
    app = create_app()

    with TestClient(app):
        session_during = build_default_session()

    session_after = build_default_session()
    try:
        assert session_after is not session_during
    finally:
        session_after.close()
        build_default_session.cache_clear()


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_status_before_connect(api_client: TestClient) -> None:
    body = api_client.get("/session").json()

    assert body["state"] == "idle"
    assert body["line_count"] == 0


def test_wait_without_connection_conflicts(api_client: TestClient) -> None:
    response = api_client.post("/session/wait", params={"timeout": 0.1})

    assert response.status_code == 409
    assert "No serial device" in response.json()["detail"]


def test_connect_uses_configured_port(api_client: TestClient) -> None:
    response = api_client.post("/session/connect")

    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "connected"
    assert body["port"] == "/dev/ttyTEST"


def test_full_session_flow(api_client: TestClient, transports: List[MockSerialTransport]) -> None:
    assert api_client.post("/session/connect", json={"port": "mock0"}).status_code == 200
    transports[0].feed(TRIGGER)

    wait = api_client.post("/session/wait", params={"timeout": 2})
    assert wait.json() == {"marker": "File created and data written.", "found": True}

    read = api_client.post("/session/read", params={"timeout": 2})
    assert read.status_code == 200
    summary = read.json()
    assert summary["line_count"] == 4
    assert summary["record_count"] == 2
    assert summary["errors"][0]["line_number"] == 2

    records = api_client.get("/session/records").json()
    assert records["header"][-1] == "Cumulative Utah"
    assert records["preview"] == [
        "1. 2024-01-01T10:00 — 5.0°C — 60.0%",
        "2. 2024-01-01T11:00 — 10.5°C — 70.0%",
    ]
    assert [row["chill_units"] for row in records["rows"]] == [1.0, 0.5]
    assert [row["cumulative_chill_units"] for row in records["rows"]] == [1.0, 1.5]

    export = api_client.get("/session/export")
    assert export.status_code == 200
    assert "arduino_log.xlsx" in export.headers["content-disposition"]
    sheet = load_workbook(io.BytesIO(export.content)).active
    assert sheet["B3"].value == "2024-01-01T11:00"

    csv_export = api_client.get("/session/export", params={"format": "csv"})
    assert csv_export.headers["content-type"].startswith("text/csv")
    assert csv_export.text.splitlines()[1].startswith("1,2024-01-01T10:00,5.0,60.0,1.0,1.0")

    diagnostics = api_client.get("/diagnostics").json()
    messages = [item["message"] for item in diagnostics]
    assert "Parsed 2 rows" in messages
    later = api_client.get("/diagnostics", params={"since": diagnostics[-1]["sequence"]})
    assert later.json() == []


def test_read_timeout_maps_to_gateway_timeout(
    api_client: TestClient, transports: List[MockSerialTransport]
) -> None:
    api_client.post("/session/connect")
    transports[0].responder = None

    response = api_client.post("/session/read", params={"timeout": 0.05})

    assert response.status_code == 504


def test_link_failure_reported(api_client: TestClient, transports: List[MockSerialTransport]) -> None:
    api_client.post("/session/connect")
    transports[0].fail_reads("cable pulled")

    deadline = time.monotonic() + 2.0
    body = api_client.get("/session").json()
    while body["state"] != "failed" and time.monotonic() < deadline:
        time.sleep(0.01)
        body = api_client.get("/session").json()

    assert body["state"] == "failed"
    assert body["last_error"] == "cable pulled"
    response = api_client.post("/session/wait", params={"timeout": 0.1})
    assert response.status_code == 502


def test_export_without_data_is_header_only(api_client: TestClient) -> None:
    response = api_client.get("/session/export", params={"format": "csv"})

    assert response.status_code == 200
    assert response.text.strip().splitlines() == ["#,Timestamp,Temp (°C),Humidity (%),Utah,Cumulative Utah"]


def test_disconnect(api_client: TestClient, transports: List[MockSerialTransport]) -> None:
    api_client.post("/session/connect")

    body = api_client.post("/session/disconnect").json()

    assert body["state"] == "closed"
    assert transports[0].closed
