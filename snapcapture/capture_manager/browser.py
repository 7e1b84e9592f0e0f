"""Camoufox/Playwright browser exposed as a ``TabHost``.

Every page of one browser context is a tab. A bridge script injected into
each page takes the place of an extension content script: it forwards page
activation requests, lets the selection UI register a message handler, and
relays UI messages back through an exposed binding.
"""

from __future__ import annotations

import logging
import sys
from string import Template
from typing import Any, Callable, Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from ..config import BROWSER_HEADLESS, BROWSER_VIEWPORT
from ..constants import (
    BINDING_NAME,
    PAGE_ACTIVATE,
    PAGE_ACTIVATE_TYPE,
    PAGE_ACTIVE_TYPE,
    PAGE_QUERY_TYPE,
    RECEIVER_NAME,
    UI_READY,
)
from .errors import NoReceiverError, TabClosedError
from .tabs import TAB_COMPLETE, TAB_LOADING, UpdateListener

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# (tab_id, tab_url, payload)
MessageHandler = Callable[[Optional[int], Optional[str], Any], Any]

BRIDGE_SCRIPT = Template("""
(() => {
  if (window.__snapcaptureBridge) return;
  window.__snapcaptureBridge = true;

  const post = (msg) => window.$binding(msg);
  let uiHandler = null;

  // The selection UI calls register() once it has loaded.
  window.snapcapture = {
    register(handler) {
      uiHandler = handler;
      post({ type: "$ui_ready" });
    },
    send(msg) {
      return post(msg);
    }
  };

  window.$receiver = (msg) => {
    if (typeof uiHandler !== "function") return false;
    uiHandler(msg);
    return true;
  };

  window.addEventListener("message", (event) => {
    if (!event || event.source !== window || !event.data) return;
    const data = event.data;
    if (data.type === "$query") {
      window.postMessage({ type: "$active", active: true }, "*");
      return;
    }
    if (data.type === "$activate") {
      post({ type: "$page_activate", url: data.url, target: data.target, token: data.token });
    }
  });
})();
""").substitute(
    binding=BINDING_NAME,
    receiver=RECEIVER_NAME,
    ui_ready=UI_READY,
    query=PAGE_QUERY_TYPE,
    active=PAGE_ACTIVE_TYPE,
    activate=PAGE_ACTIVATE_TYPE,
    page_activate=PAGE_ACTIVATE,
)


class BrowserTabHost:
    """Manages a Camoufox browser whose pages serve as capture tabs."""

    def __init__(self):
        self._camoufox = None
        self._browser = None
        self._context: Optional[BrowserContext] = None
        self._pages: dict[int, Page] = {}
        self._tab_ids: dict[Page, int] = {}
        self._next_tab_id = 1
        self._listeners: list[UpdateListener] = []
        self._message_handler: Optional[MessageHandler] = None

    @property
    def is_running(self) -> bool:
        return self._context is not None

    def set_message_handler(self, handler: MessageHandler):
        """Receive every message pages and UIs send through the bridge."""
        self._message_handler = handler

    async def start(self, headless: Optional[bool] = None) -> dict:
        """Launch the browser with one blank tab.

        Returns:
            dict with keys: state, message
        """
        if self.is_running:
            return {"state": "active", "message": "Browser already running."}

        use_headless = headless if headless is not None else BROWSER_HEADLESS

        try:
            logger.info(f"Launching Camoufox (headless={use_headless})...")
            self._camoufox = AsyncCamoufox(headless=use_headless)
            self._browser = await self._camoufox.__aenter__()

            self._context = await self._browser.new_context(viewport=BROWSER_VIEWPORT)
            await self._context.expose_binding(BINDING_NAME, self._on_binding)
            await self._context.add_init_script(BRIDGE_SCRIPT)
            self._context.on("page", self._register_page)

            await self._context.new_page()
            logger.info("Browser started.")
            return {"state": "active", "message": "Browser started."}

        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            await self.stop()
            return {"state": "error", "message": f"Failed to start browser: {e}"}

    async def stop(self):
        """Close the browser and forget every tab."""
        logger.info("Stopping browser...")
        try:
            if self._context:
                await self._context.close()
        except Exception as e:
            logger.warning(f"Error closing context: {e}")
        finally:
            self._context = None
            self._pages.clear()
            self._tab_ids.clear()

        try:
            if self._camoufox:
                await self._camoufox.__aexit__(None, None, None)
        except Exception as e:
            logger.warning(f"Error closing camoufox: {e}")
        finally:
            self._camoufox = None
            self._browser = None

        logger.info("Browser stopped.")

    async def open_tab(self, url: Optional[str] = None) -> int:
        """Open a new tab, optionally loading ``url``. Returns its tab id."""
        if not self.is_running:
            raise RuntimeError("Browser is not running.")
        page = await self._context.new_page()
        tab_id = self._register_page(page)
        if url:
            await page.goto(url, wait_until="load")
        return tab_id

    # ── TabHost ──────────────────────────────────────────────────────────────

    async def update(self, tab_id: int, url: str) -> None:
        page = self._page(tab_id)
        await page.bring_to_front()
        await page.goto(url, wait_until="commit")

    def add_update_listener(self, listener: UpdateListener) -> None:
        self._listeners.append(listener)

    def remove_update_listener(self, listener: UpdateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def send_message(self, tab_id: int, message: dict) -> None:
        page = self._page(tab_id)
        try:
            delivered = await page.evaluate(
                f"(msg) => typeof window.{RECEIVER_NAME} === 'function' && window.{RECEIVER_NAME}(msg) === true",
                message,
            )
        except PlaywrightError as e:
            # Page is navigating or its context was destroyed
            raise NoReceiverError(f"Tab {tab_id}: {e}") from e
        if not delivered:
            raise NoReceiverError(f"Tab {tab_id}: no UI is listening")

    async def capture_visible(self, tab_id: int) -> bytes:
        page = self._page(tab_id)
        await page.bring_to_front()
        return await page.screenshot(type="png")

    async def get_url(self, tab_id: int) -> Optional[str]:
        page = self._pages.get(tab_id)
        return page.url if page else None

    async def list_tabs(self) -> list[int]:
        return list(self._pages)

    # ── Internals ────────────────────────────────────────────────────────────

    def _page(self, tab_id: int) -> Page:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            raise TabClosedError(f"Tab {tab_id} is not open")
        return page

    def _register_page(self, page: Page) -> int:
        if page in self._tab_ids:
            return self._tab_ids[page]
        tab_id = self._next_tab_id
        self._next_tab_id += 1
        self._pages[tab_id] = page
        self._tab_ids[page] = tab_id

        page.on("framenavigated", lambda frame: self._on_navigated(tab_id, page, frame))
        page.on("load", lambda _: self._emit(tab_id, TAB_COMPLETE))
        page.on("close", lambda _: self._forget(tab_id, page))
        logger.info(f"Tab {tab_id} opened")
        return tab_id

    def _forget(self, tab_id: int, page: Page):
        self._pages.pop(tab_id, None)
        self._tab_ids.pop(page, None)
        logger.info(f"Tab {tab_id} closed")

    def _on_navigated(self, tab_id: int, page: Page, frame):
        if frame == page.main_frame:
            self._emit(tab_id, TAB_LOADING)

    def _emit(self, tab_id: int, status: str):
        for listener in list(self._listeners):
            try:
                listener(tab_id, status)
            except Exception as e:
                logger.warning(f"Update listener failed for tab {tab_id}: {e}")

    async def _on_binding(self, source: dict, payload: Any):
        page = source.get("page")
        tab_id = self._tab_ids.get(page)
        tab_url = page.url if page is not None else None
        if self._message_handler is None:
            logger.warning("Bridge message received before a handler was set")
            return
        self._message_handler(tab_id, tab_url, payload)
