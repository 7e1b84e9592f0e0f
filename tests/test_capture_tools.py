from __future__ import annotations

import asyncio
import json

import httpx

from snapcapture.tools import capture_tools


def _stub(monkeypatch, response: dict) -> list:
    calls = []

    async def fake_call(method, path, json_body=None):
        calls.append((method, path, json_body))
        return response

    monkeypatch.setattr(capture_tools, "_call_capture_manager", fake_call)
    return calls


def test_activate_capture_sends_request(monkeypatch) -> None:
    calls = _stub(monkeypatch, {"message": "Capture session scheduled.", "tab_id": 1, "return_url": "https://o.test/"})

    text = asyncio.run(capture_tools.activate_capture(1, "https://a.test/", "https://api.test/u", "tok"))

    assert calls == [
        ("POST", "/activate", {"tab_id": 1, "url": "https://a.test/", "target": "https://api.test/u", "token": "tok"})
    ]
    assert "Tab 1 will return to https://o.test/" in text


def test_activate_capture_omits_empty_token(monkeypatch) -> None:
    calls = _stub(monkeypatch, {"tab_id": 1})
    asyncio.run(capture_tools.activate_capture(1, "https://a.test/", "https://api.test/u"))
    assert "token" not in calls[0][2]


def test_errors_are_reported(monkeypatch) -> None:
    _stub(monkeypatch, {"error": "A capture session is already running."})
    assert asyncio.run(capture_tools.cancel_capture()) == "Error: A capture session is already running."
    assert asyncio.run(capture_tools.list_tabs()).startswith("Error:")


def test_status_is_json(monkeypatch) -> None:
    _stub(monkeypatch, {"status": "idle", "ui_visible": False})
    assert json.loads(asyncio.run(capture_tools.capture_status())) == {"status": "idle", "ui_visible": False}


def test_list_tabs_formats_rows(monkeypatch) -> None:
    _stub(monkeypatch, {"tabs": [{"tab_id": 1, "url": "https://o.test/"}, {"tab_id": 2, "url": None}]})
    text = asyncio.run(capture_tools.list_tabs())
    assert text.splitlines() == ["2 open tab(s):", "  [1] https://o.test/", "  [2] (blank)"]


def test_toggle_panel(monkeypatch) -> None:
    calls = _stub(monkeypatch, {"visible": False})
    assert asyncio.run(capture_tools.toggle_panel(4)) == "Selection panel hidden."
    assert calls == [("POST", "/ui/toggle", {"tab_id": 4})]


def test_unreachable_manager(monkeypatch) -> None:
    class _Refusing(httpx.AsyncClient):
        def __init__(self, *args, **kwargs):
            def refuse(request):
                raise httpx.ConnectError("refused", request=request)

            super().__init__(*args, transport=httpx.MockTransport(refuse), **kwargs)

    monkeypatch.setattr(capture_tools.httpx, "AsyncClient", _Refusing)
    text = asyncio.run(capture_tools.stop_browser())
    assert text.startswith("Error: Capture Manager is not reachable")
