"""MCP Server entry point for the snapcapture area-capture tool.

Exposes 8 tools via the Model Context Protocol:
- Browser: start_browser, stop_browser, list_tabs, open_tab
- Capture: activate_capture, cancel_capture, capture_status, toggle_panel

The Capture Manager HTTP service (aiohttp on localhost:8025) is auto-started
as part of the MCP server lifecycle; no separate process is needed.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import CAPTURE_MANAGER_HOST, CAPTURE_MANAGER_PORT, ensure_dirs
from .tools.capture_tools import (
    activate_capture,
    cancel_capture,
    capture_status,
    list_tabs,
    open_tab,
    start_browser,
    stop_browser,
    toggle_panel,
)

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("snapcapture")

ensure_dirs()


# ── Lifespan: auto-start Capture Manager ─────────────────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Capture Manager HTTP service alongside the MCP server."""
    from .capture_manager.manager import create_app

    app = create_app()
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, CAPTURE_MANAGER_HOST, CAPTURE_MANAGER_PORT)
    managed = False
    try:
        await site.start()
        logger.info(
            "Capture Manager auto-started on %s:%s", CAPTURE_MANAGER_HOST, CAPTURE_MANAGER_PORT
        )
        managed = True
    except OSError:
        # Port already in use, assume Capture Manager was started manually
        logger.info(
            "Capture Manager already running on %s:%s", CAPTURE_MANAGER_HOST, CAPTURE_MANAGER_PORT
        )
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Capture Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "snapcapture",
    lifespan=lifespan,
    instructions=(
        "snapcapture - Let a person capture an area of a web page and upload it. "
        "The Capture Manager starts automatically with this server. "
        "Call start_browser, then open_tab to load the page the session should return to. "
        "Call activate_capture with that tab id, an allowed target URL and an upload endpoint; "
        "the person then draws a rectangle on the target page and saves or cancels. "
        "Use capture_status to follow the session and cancel_capture to abort it."
    ),
)


# ── Browser Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_start_browser(headless: bool = False) -> str:
    """Launch the capture browser.

    Args:
        headless: If False (default), opens a visible window for the selection.
    """
    return await start_browser(headless)


@mcp.tool()
async def tool_stop_browser() -> str:
    """Close the capture browser."""
    return await stop_browser()


@mcp.tool()
async def tool_list_tabs() -> str:
    """List open tabs with their ids and URLs."""
    return await list_tabs()


@mcp.tool()
async def tool_open_tab(url: str = "") -> str:
    """Open a new browser tab.

    Args:
        url: Page to load in the tab. Empty opens a blank tab.
    """
    return await open_tab(url)


# ── Capture Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_activate_capture(tab_id: int, target_url: str, upload_target: str, token: str = "") -> str:
    """Start an area-capture session.

    Navigates the tab to target_url, waits for the person to select an area,
    uploads the cropped PNG to upload_target and returns the tab to its
    current page.

    Args:
        tab_id: Tab to run the session in (see list_tabs).
        target_url: Page to capture. Must be on the allow-list.
        upload_target: Endpoint that receives the multipart upload.
        token: Optional bearer token sent with the upload.
    """
    return await activate_capture(tab_id, target_url, upload_target, token)


@mcp.tool()
async def tool_cancel_capture() -> str:
    """Cancel the running capture session and return its tab."""
    return await cancel_capture()


@mcp.tool()
async def tool_capture_status() -> str:
    """Check the capture session state.

    Returns: status, tab id, target and return URLs, UI visibility.
    """
    return await capture_status()


@mcp.tool()
async def tool_toggle_panel(tab_id: int) -> str:
    """Show or hide the selection panel in a tab.

    Args:
        tab_id: Tab whose panel to toggle.
    """
    return await toggle_panel(tab_id)


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting snapcapture MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
