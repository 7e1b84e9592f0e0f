"""MCP tools for driving the browser and the capture workflow."""

from __future__ import annotations

import json

import httpx

from ..config import CAPTURE_MANAGER_URL


async def _call_capture_manager(method: str, path: str, json_body: dict | None = None) -> dict:
    """Make a request to the capture manager HTTP service."""
    url = f"{CAPTURE_MANAGER_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=120.0) as client:
            if method == "GET":
                resp = await client.get(url)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                data = resp.json()
                return {"error": data.get("error", f"HTTP {resp.status_code}")}
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": "Capture Manager is not reachable at "
            f"{CAPTURE_MANAGER_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m snapcapture.capture_manager.manager"
        }
    except httpx.TimeoutException:
        return {"error": "Capture Manager timed out. The browser may be loading."}
    except Exception as e:
        return {"error": f"Failed to connect to Capture Manager: {e}"}


async def start_browser(headless: bool = False) -> str:
    """Launch the capture browser.

    Args:
        headless: If False (default), opens a visible window so a person
                  can draw the selection.

    Returns:
        Browser state message.
    """
    result = await _call_capture_manager("POST", "/start", {"headless": headless})

    if "error" in result:
        return f"Error: {result['error']}"

    return f"Browser state: {result.get('state', 'unknown')}. {result.get('message', '')}"


async def stop_browser() -> str:
    """Close the capture browser."""
    result = await _call_capture_manager("POST", "/stop")

    if "error" in result:
        return f"Error: {result['error']}"

    return result.get("message", "Browser stopped.")


async def capture_status() -> str:
    """Report the capture session state.

    Returns:
        JSON-formatted session status (the auth token is never included).
    """
    result = await _call_capture_manager("GET", "/status")

    if "error" in result:
        return f"Error: {result['error']}"

    return json.dumps(result, indent=2)


async def list_tabs() -> str:
    """List open tabs with their ids and URLs."""
    result = await _call_capture_manager("GET", "/tabs")

    if "error" in result:
        return f"Error: {result['error']}"

    tabs = result.get("tabs", [])
    if not tabs:
        return "No tabs are open. Call start_browser first."

    lines = [f"{len(tabs)} open tab(s):"]
    for tab in tabs:
        lines.append(f"  [{tab.get('tab_id')}] {tab.get('url') or '(blank)'}")
    return "\n".join(lines)


async def open_tab(url: str = "") -> str:
    """Open a new tab, optionally at ``url``."""
    result = await _call_capture_manager("POST", "/tabs/open", {"url": url})

    if "error" in result:
        return f"Error: {result['error']}"

    return f"Opened tab {result.get('tab_id')} at {result.get('url') or '(blank)'}."


async def activate_capture(tab_id: int, target_url: str, upload_target: str, token: str = "") -> str:
    """Start a capture session from ``tab_id``.

    The tab navigates to ``target_url``; once the person has selected an
    area, the crop is uploaded to ``upload_target`` and the tab returns to
    the page it is on now.

    Returns:
        Confirmation or error message.
    """
    body = {"tab_id": tab_id, "url": target_url, "target": upload_target}
    if token:
        body["token"] = token
    result = await _call_capture_manager("POST", "/activate", body)

    if "error" in result:
        return f"Error: {result['error']}"

    return (
        f"{result.get('message', 'Capture session scheduled.')} "
        f"Tab {result.get('tab_id')} will return to {result.get('return_url')} when done."
    )


async def cancel_capture() -> str:
    """Cancel the running capture session, if any."""
    result = await _call_capture_manager("POST", "/cancel")

    if "error" in result:
        return f"Error: {result['error']}"

    return result.get("message", "")


async def toggle_panel(tab_id: int) -> str:
    """Show or hide the selection panel in ``tab_id``."""
    result = await _call_capture_manager("POST", "/ui/toggle", {"tab_id": tab_id})

    if "error" in result:
        return f"Error: {result['error']}"

    return "Selection panel shown." if result.get("visible") else "Selection panel hidden."
