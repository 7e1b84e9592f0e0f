"""Capture Manager HTTP service.

Runs as a lightweight local web server that bridges the MCP server to the
browser and the capture workflow.

Endpoints:
    POST /start        - Launch the browser
    POST /stop         - Close the browser
    GET  /status       - Session state and UI visibility
    GET  /tabs         - Open tabs and their URLs
    POST /tabs/open    - Open a new tab
    POST /activate     - Start a capture session in a tab
    POST /cancel       - Cancel the running session
    POST /ui/toggle    - Show or hide the selection panel in a tab
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import aiosqlite
from aiohttp import web
from pydantic import ValidationError

from ..config import ALLOW_LIST, CAPTURE_MANAGER_HOST, CAPTURE_MANAGER_PORT, DB_PATH, ensure_dirs
from ..constants import PAGE_ACTIVATE
from ..database.models import initialize_db
from ..database.repository import UiStateRepository
from ..models.messages import ActivationRequest
from .allowlist import AllowList
from .browser import BrowserTabHost
from .router import MessageRouter
from .uploader import Uploader
from .visibility import UiVisibility
from .workflow import CaptureWorkflow

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class CaptureManager:
    """Owns the browser, the persisted UI state and the capture workflow."""

    def __init__(self, browser=None, uploader: Optional[Uploader] = None, allow_list: Optional[list[str]] = None):
        self.browser = browser or BrowserTabHost()
        self.db: aiosqlite.Connection | None = None
        self.visibility = UiVisibility()
        self.workflow = CaptureWorkflow(
            self.browser,
            AllowList(ALLOW_LIST if allow_list is None else allow_list),
            uploader or Uploader(),
            self.visibility,
        )
        self.router = MessageRouter(self.workflow)
        self.browser.set_message_handler(self.router.handle)

    async def setup(self, db_path: Path = DB_PATH):
        """Open the state database and restore UI visibility."""
        if db_path == DB_PATH:
            ensure_dirs()
        self.db = await aiosqlite.connect(str(db_path))
        await initialize_db(self.db)
        self.visibility.attach(UiStateRepository(self.db))
        visible = await self.visibility.load()
        logger.info(f"Restored UI visibility: {visible}")

    async def cleanup(self):
        """Clean up resources."""
        await self.router.drain()
        await self.browser.stop()
        if self.db:
            await self.db.close()


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def _json_body(request: web.Request) -> dict:
    if not request.content_length:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Body must be JSON."}', content_type="application/json"
        )
    return body if isinstance(body, dict) else {}


async def handle_start(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    body = await _json_body(request)
    result = await mgr.browser.start(headless=body.get("headless"))
    return web.json_response(result)


async def handle_stop(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    await mgr.browser.stop()
    return web.json_response({"message": "Browser stopped."})


async def handle_status(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    status = mgr.workflow.status().model_dump(mode="json")
    status["browser_running"] = mgr.browser.is_running
    return web.json_response(status)


async def handle_list_tabs(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    tabs = []
    for tab_id in await mgr.browser.list_tabs():
        tabs.append({"tab_id": tab_id, "url": await mgr.browser.get_url(tab_id)})
    return web.json_response({"tabs": tabs, "count": len(tabs)})


async def handle_open_tab(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    body = await _json_body(request)

    if not mgr.browser.is_running:
        return web.json_response({"error": "Browser is not running. Call /start first."}, status=409)

    try:
        tab_id = await mgr.browser.open_tab(body.get("url") or None)
    except Exception as e:
        logger.error(f"Opening tab failed: {e}")
        return web.json_response({"error": str(e)}, status=500)
    return web.json_response({"tab_id": tab_id, "url": await mgr.browser.get_url(tab_id)})


async def handle_activate(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    body = await _json_body(request)

    tab_id = body.get("tab_id")
    if not isinstance(tab_id, int):
        return web.json_response({"error": "tab_id is required."}, status=400)

    try:
        activation = ActivationRequest.model_validate(body)
    except ValidationError as e:
        return web.json_response({"error": f"Invalid params: {e}"}, status=400)

    return_url = await mgr.browser.get_url(tab_id)
    if return_url is None:
        return web.json_response({"error": f"Tab {tab_id} is not open."}, status=404)

    if not mgr.workflow.session.is_idle:
        return web.json_response(
            {"error": "A capture session is already running.", "status": mgr.workflow.status().model_dump(mode="json")},
            status=409,
        )

    mgr.router.handle(
        tab_id,
        return_url,
        {
            "type": PAGE_ACTIVATE,
            "url": activation.target_url,
            "target": activation.upload_target,
            "token": activation.token,
        },
    )
    logger.info(f"[ACTIVATE] Scheduled capture in tab {tab_id} for {activation.target_url}")
    return web.json_response(
        {"message": "Capture session scheduled.", "tab_id": tab_id, "return_url": return_url},
        status=202,
    )


async def handle_cancel(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    session = mgr.workflow.session
    if session.is_idle:
        return web.json_response({"cancelled": False, "message": "No capture session is running."})

    cancelled = await mgr.workflow.cancel(session.tab_id)
    return web.json_response({"cancelled": cancelled, "message": "Capture session cancelled."})


async def handle_toggle_ui(request: web.Request) -> web.Response:
    mgr: CaptureManager = request.app["manager"]
    body = await _json_body(request)

    tab_id = body.get("tab_id")
    if not isinstance(tab_id, int):
        return web.json_response({"error": "tab_id is required."}, status=400)

    visible = await mgr.workflow.toggle_ui(tab_id)
    return web.json_response({"visible": visible})


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    mgr: CaptureManager | None = app.get("manager")
    if mgr is None:
        mgr = CaptureManager()
        app["manager"] = mgr
    await mgr.setup(app.get("db_path", DB_PATH))
    logger.info(f"Capture Manager started on {CAPTURE_MANAGER_HOST}:{CAPTURE_MANAGER_PORT}")


async def on_cleanup(app: web.Application):
    mgr: CaptureManager = app["manager"]
    await mgr.cleanup()
    logger.info("Capture Manager stopped.")


def create_app(manager: Optional[CaptureManager] = None, db_path: Optional[Path] = None) -> web.Application:
    app = web.Application()
    if manager is not None:
        app["manager"] = manager
    if db_path is not None:
        app["db_path"] = db_path
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/start", handle_start)
    app.router.add_post("/stop", handle_stop)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/tabs", handle_list_tabs)
    app.router.add_post("/tabs/open", handle_open_tab)
    app.router.add_post("/activate", handle_activate)
    app.router.add_post("/cancel", handle_cancel)
    app.router.add_post("/ui/toggle", handle_toggle_ui)

    return app


def main():
    """Run the capture manager as a standalone HTTP service."""
    app = create_app()
    web.run_app(app, host=CAPTURE_MANAGER_HOST, port=CAPTURE_MANAGER_PORT)


if __name__ == "__main__":
    main()
