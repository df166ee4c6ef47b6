import json

import httpx
import pytest

from salon_booking.config import Settings
from salon_booking.exceptions import DispatchFailure
from salon_booking.services.messaging import HttpDispatcher, LoggingDispatcher, build_dispatcher


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_http_dispatcher_posts_number_and_text():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    dispatcher = HttpDispatcher("https://gateway.test/send", token="abc", client=_client(handler))
    assert dispatcher.send("5511999990000", "hello") is True

    request = seen[0]
    assert json.loads(request.content) == {"number": "5511999990000", "text": "hello"}
    assert request.headers["Authorization"] == "Bearer abc"
    assert request.headers["apikey"] == "abc"


def test_http_dispatcher_raises_on_gateway_error():
    dispatcher = HttpDispatcher(
        "https://gateway.test/send",
        client=_client(lambda request: httpx.Response(502)),
    )
    with pytest.raises(DispatchFailure) as exc_info:
        dispatcher.send("5511999990000", "hello")
    assert exc_info.value.details["recipient"] == "5511999990000"


def test_http_dispatcher_raises_on_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = HttpDispatcher("https://gateway.test/send", client=_client(handler))
    with pytest.raises(DispatchFailure):
        dispatcher.send("5511999990000", "hello")


def test_build_dispatcher_picks_gateway_when_configured():
    assert isinstance(build_dispatcher(Settings(_env_file=None)), LoggingDispatcher)
    configured = build_dispatcher(Settings(_env_file=None, messaging_url="https://gateway.test/send"))
    assert isinstance(configured, HttpDispatcher)
    configured.close()


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SALON_SLOT_MINUTES", "20")
    monkeypatch.setenv("SALON_REMINDER_WINDOWS_MINUTES", "[60, 1440, 60]")
    settings = Settings(_env_file=None)
    assert settings.slot_minutes == 20
    assert settings.reminder_windows_minutes == [1440, 60]


def test_settings_reject_non_positive_window():
    with pytest.raises(ValueError):
        Settings(_env_file=None, reminder_windows_minutes=[0])
