from __future__ import annotations

import asyncio
from io import BytesIO
from typing import Any, Optional

import pytest
from PIL import Image

from snapcapture.capture_manager.allowlist import AllowList
from snapcapture.capture_manager.errors import NoReceiverError, TabClosedError, UploadError
from snapcapture.capture_manager.navigator import Navigator
from snapcapture.capture_manager.tabs import TAB_COMPLETE
from snapcapture.capture_manager.workflow import CaptureWorkflow

ORIGIN_URL = "https://origin.test/"
TARGET_URL = "https://a.test/page"
UPLOAD_URL = "https://api.test/upload"


def make_png(width: int = 200, height: int = 200, color=(255, 0, 0, 255), mode: str = "RGBA") -> bytes:
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeTabHost:
    """In-memory tab host. Tabs listed in ``ui_tabs`` have a UI listening."""

    def __init__(self, auto_complete: bool = True, capture: Optional[Any] = None):
        self.urls: dict[int, str] = {1: ORIGIN_URL, 2: "https://other.test/"}
        self.ui_tabs: set[int] = {1, 2}
        self.auto_complete = auto_complete
        self.capture = capture if capture is not None else make_png()
        self.listeners: list = []
        self.updates: list[tuple[int, str]] = []
        self.sent: list[tuple[int, dict]] = []
        self.attempts = 0
        self.fail_sends = 0
        self.captures = 0
        self.is_running = False
        self.message_handler = None

    # TabHost

    async def update(self, tab_id: int, url: str) -> None:
        if tab_id not in self.urls:
            raise TabClosedError(f"Tab {tab_id} is not open")
        self.updates.append((tab_id, url))
        self.urls[tab_id] = url
        if self.auto_complete:
            asyncio.get_running_loop().call_soon(self.complete, tab_id)

    def add_update_listener(self, listener) -> None:
        self.listeners.append(listener)

    def remove_update_listener(self, listener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    async def send_message(self, tab_id: int, message: dict) -> None:
        self.attempts += 1
        if tab_id not in self.urls:
            raise TabClosedError(f"Tab {tab_id} is not open")
        if self.fail_sends > 0:
            self.fail_sends -= 1
            raise NoReceiverError("not loaded yet")
        if tab_id not in self.ui_tabs:
            raise NoReceiverError("no UI")
        self.sent.append((tab_id, message))

    async def capture_visible(self, tab_id: int):
        self.captures += 1
        return self.capture

    async def get_url(self, tab_id: int) -> Optional[str]:
        return self.urls.get(tab_id)

    async def list_tabs(self) -> list[int]:
        return list(self.urls)

    # Browser lifecycle used by the HTTP service

    def set_message_handler(self, handler) -> None:
        self.message_handler = handler

    async def start(self, headless=None) -> dict:
        self.is_running = True
        return {"state": "active", "message": "Browser started."}

    async def stop(self) -> None:
        self.is_running = False

    async def open_tab(self, url: Optional[str] = None) -> int:
        tab_id = max(self.urls) + 1
        self.urls[tab_id] = url or "about:blank"
        return tab_id

    # Test helpers

    def complete(self, tab_id: int, status: str = TAB_COMPLETE) -> None:
        for listener in list(self.listeners):
            listener(tab_id, status)

    def sent_types(self, tab_id: Optional[int] = None) -> list[str]:
        return [m["type"] for t, m in self.sent if tab_id is None or t == tab_id]


class FakeUploader:
    def __init__(self, error: Optional[Exception] = None):
        self.calls: list[dict] = []
        self.error = error

    async def upload(self, target, rect, image, token=None):
        self.calls.append({"target": target, "rect": rect, "image": image, "token": token})
        if self.error is not None:
            raise self.error


@pytest.fixture
def tabs() -> FakeTabHost:
    return FakeTabHost()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def failing_uploader() -> FakeUploader:
    return FakeUploader(error=UploadError(f"Upload to {UPLOAD_URL} failed: HTTP 500"))


@pytest.fixture
def make_workflow():
    def _make(
        tabs, uploader, allow=("https://a.test/",), nav_timeout: float = 1.0, retry_delay: float = 0, **kwargs
    ) -> CaptureWorkflow:
        return CaptureWorkflow(
            tabs,
            AllowList(allow),
            uploader,
            navigator=Navigator(tabs, timeout=nav_timeout, settle_delay=0),
            retry_attempts=3,
            retry_delay=retry_delay,
            **kwargs,
        )

    return _make
