from __future__ import annotations

import asyncio

from aiohttp.test_utils import TestClient, TestServer

from conftest import ORIGIN_URL, TARGET_URL, UPLOAD_URL, FakeTabHost, FakeUploader
from snapcapture.capture_manager.manager import CaptureManager, create_app
from snapcapture.constants import HIDE_UI, SHOW_UI


def _manager() -> CaptureManager:
    return CaptureManager(browser=FakeTabHost(), uploader=FakeUploader(), allow_list=["https://a.test/"])


def _run(manager: CaptureManager, db_path, scenario):
    async def _main():
        app = create_app(manager=manager, db_path=db_path)
        async with TestClient(TestServer(app)) as client:
            return await scenario(client)

    return asyncio.run(_main())


def test_status_starts_idle(tmp_path) -> None:
    async def scenario(client):
        resp = await client.get("/status")
        assert resp.status == 200
        return await resp.json()

    status = _run(_manager(), tmp_path / "state.db", scenario)
    assert status["status"] == "idle"
    assert status["tab_id"] is None
    assert status["ui_visible"] is False
    assert status["browser_running"] is False


def test_activate_runs_session_to_selection(tmp_path) -> None:
    manager = _manager()

    async def scenario(client):
        resp = await client.post(
            "/activate", json={"tab_id": 1, "url": TARGET_URL, "target": UPLOAD_URL, "token": "secret"}
        )
        assert resp.status == 202
        body = await resp.json()
        await manager.router.drain()
        status = await (await client.get("/status")).json()
        return body, status

    body, status = _run(manager, tmp_path / "state.db", scenario)
    assert body["return_url"] == ORIGIN_URL
    assert status["status"] == "awaiting_selection"
    assert status["target_url"] == TARGET_URL
    assert status["has_token"] is True
    assert "secret" not in str(status)
    assert manager.browser.sent_types(1) == [SHOW_UI]


def test_activate_rejects_bad_requests(tmp_path) -> None:
    async def scenario(client):
        missing_tab = await client.post("/activate", json={"url": TARGET_URL, "target": UPLOAD_URL})
        bad_url = await client.post("/activate", json={"tab_id": 1, "url": "nope", "target": UPLOAD_URL})
        unknown_tab = await client.post("/activate", json={"tab_id": 99, "url": TARGET_URL, "target": UPLOAD_URL})
        not_json = await client.post("/activate", data="{", headers={"Content-Type": "application/json"})
        return missing_tab.status, bad_url.status, unknown_tab.status, not_json.status

    assert _run(_manager(), tmp_path / "state.db", scenario) == (400, 400, 404, 400)


def test_second_activation_conflicts(tmp_path) -> None:
    manager = _manager()

    async def scenario(client):
        payload = {"tab_id": 1, "url": TARGET_URL, "target": UPLOAD_URL}
        first = await client.post("/activate", json=payload)
        await manager.router.drain()
        second = await client.post("/activate", json=payload)
        return first.status, second.status

    assert _run(manager, tmp_path / "state.db", scenario) == (202, 409)


def test_cancel_returns_tab(tmp_path) -> None:
    manager = _manager()

    async def scenario(client):
        idle = await (await client.post("/cancel")).json()
        await client.post("/activate", json={"tab_id": 1, "url": TARGET_URL, "target": UPLOAD_URL})
        await manager.router.drain()
        cancelled = await (await client.post("/cancel")).json()
        status = await (await client.get("/status")).json()
        return idle, cancelled, status

    idle, cancelled, status = _run(manager, tmp_path / "state.db", scenario)
    assert idle["cancelled"] is False
    assert cancelled["cancelled"] is True
    assert status["status"] == "idle"
    assert manager.browser.updates[-1] == (1, ORIGIN_URL)
    assert manager.browser.sent_types(1) == [SHOW_UI, HIDE_UI]
    assert manager.workflow.ui_visible is False


def test_toggle_persists_visibility(tmp_path) -> None:
    db_path = tmp_path / "state.db"

    async def toggle(client):
        resp = await client.post("/ui/toggle", json={"tab_id": 2})
        return (await resp.json())["visible"]

    async def read_status(client):
        return (await (await client.get("/status")).json())["ui_visible"]

    assert _run(_manager(), db_path, toggle) is True
    assert _run(_manager(), db_path, read_status) is True


def test_browser_and_tabs(tmp_path) -> None:
    manager = _manager()

    async def scenario(client):
        closed = await client.post("/tabs/open", json={"url": "https://x.test/"})
        started = await (await client.post("/start", json={"headless": True})).json()
        opened = await (await client.post("/tabs/open", json={"url": "https://x.test/"})).json()
        listed = await (await client.get("/tabs")).json()
        stopped = await client.post("/stop")
        return closed.status, started, opened, listed, stopped.status

    closed, started, opened, listed, stopped = _run(manager, tmp_path / "state.db", scenario)
    assert closed == 409
    assert started["state"] == "active"
    assert opened == {"tab_id": 3, "url": "https://x.test/"}
    assert listed["count"] == 3
    assert {"tab_id": 3, "url": "https://x.test/"} in listed["tabs"]
    assert stopped == 200
    assert manager.browser.is_running is False
