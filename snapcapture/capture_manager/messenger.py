"""Message delivery to tabs whose UI script may not be loaded yet."""

from __future__ import annotations

import asyncio
import logging
import sys

from ..config import MESSAGE_RETRY_ATTEMPTS, MESSAGE_RETRY_DELAY
from .errors import MessageDeliveryError
from .tabs import TabHost

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


async def send_once(tabs: TabHost, tab_id: int, message: dict) -> bool:
    """Post ``message`` to ``tab_id``. Returns False if nothing received it."""
    try:
        await tabs.send_message(tab_id, message)
        return True
    except MessageDeliveryError as e:
        logger.debug(f"[MSG] {message.get('type')} to tab {tab_id} not delivered: {e}")
        return False


async def send_with_retry(
    tabs: TabHost,
    tab_id: int,
    message: dict,
    max_attempts: int = MESSAGE_RETRY_ATTEMPTS,
    delay: float = MESSAGE_RETRY_DELAY,
) -> bool:
    """Deliver ``message`` with up to ``max_attempts`` tries, ``delay`` seconds apart.

    Returns False once the attempts are exhausted; delivery errors are never
    raised. Callers that need the message delivered must check the result.
    """
    for attempt in range(max_attempts):
        if await send_once(tabs, tab_id, message):
            return True
        if attempt + 1 < max_attempts:
            await asyncio.sleep(delay)

    logger.warning(
        f"[MSG] Gave up delivering {message.get('type')} to tab {tab_id} "
        f"after {max_attempts} attempts"
    )
    return False
