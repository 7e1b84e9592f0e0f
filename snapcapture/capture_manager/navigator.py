"""Drive a tab to a URL and wait until it has finished loading."""

from __future__ import annotations

import asyncio
import logging
import sys

from ..config import NAVIGATION_SETTLE_DELAY, NAVIGATION_TIMEOUT
from .errors import NavigationTimeout
from .tabs import TAB_COMPLETE, TabHost

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class Navigator:
    """Navigates tabs through a ``TabHost``.

    Every call installs its own update listener and removes it again on
    success, timeout or error.
    """

    def __init__(
        self,
        tabs: TabHost,
        timeout: float = NAVIGATION_TIMEOUT,
        settle_delay: float = NAVIGATION_SETTLE_DELAY,
    ):
        self._tabs = tabs
        self._timeout = timeout
        self._settle_delay = settle_delay

    async def navigate(self, tab_id: int, url: str):
        """Load ``url`` in ``tab_id``.

        Raises:
            NavigationTimeout: the tab did not report "complete" in time.
        """
        loaded = asyncio.get_running_loop().create_future()

        def listener(updated_tab_id: int, status: str):
            if updated_tab_id != tab_id or status != TAB_COMPLETE:
                return
            if not loaded.done():
                loaded.set_result(None)

        async def _drive():
            await self._tabs.update(tab_id, url)
            await loaded

        logger.info(f"[NAV] Tab {tab_id} -> {url}")
        self._tabs.add_update_listener(listener)
        try:
            await asyncio.wait_for(_drive(), timeout=self._timeout)
        except asyncio.TimeoutError:
            raise NavigationTimeout(
                f"Navigation timeout: {url} did not load within {self._timeout:g}s"
            ) from None
        finally:
            self._tabs.remove_update_listener(listener)

        # Let in-page scripts finish initializing
        await asyncio.sleep(self._settle_delay)
        logger.info(f"[NAV] Tab {tab_id} loaded {url}")
