"""Routes raw messages from pages and the selection UI into the workflow."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Coroutine, Optional

from pydantic import ValidationError

from ..constants import HIDE_UI, PAGE_ACTIVATE, UI_CANCEL, UI_READY, UI_SAVE
from ..models.messages import ActivationRequest
from .workflow import CaptureWorkflow

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class MessageRouter:
    """Validates inbound messages and runs the matching workflow handler as a task.

    Page input is untrusted: oversized or malformed activation requests are
    dropped here and never reach the workflow.
    """

    def __init__(self, workflow: CaptureWorkflow):
        self._workflow = workflow
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def handle(self, tab_id: Optional[int], tab_url: Optional[str], payload: Any) -> Optional[asyncio.Task]:
        """Dispatch one message received from ``tab_id``. Returns the scheduled task, if any."""
        if not isinstance(payload, dict) or not payload.get("type"):
            return None
        kind = payload["type"]

        if kind == HIDE_UI:
            return self._spawn(self._workflow.hide_requested())

        if tab_id is None:
            logger.debug(f"[ROUTER] Dropped {kind}: sender has no tab")
            return None

        if kind == PAGE_ACTIVATE:
            try:
                request = ActivationRequest.model_validate(payload)
            except ValidationError as e:
                logger.info(f"[ROUTER] Dropped malformed activation from tab {tab_id}: {e.error_count()} error(s)")
                return None
            return self._spawn(self._workflow.activate(tab_id, tab_url, request))

        if kind == UI_SAVE:
            return self._spawn(self._workflow.save(tab_id, payload.get("rect")))

        if kind == UI_CANCEL:
            return self._spawn(self._workflow.cancel(tab_id))

        if kind == UI_READY:
            return self._spawn(self._workflow.ready(tab_id))

        logger.debug(f"[ROUTER] Ignored unknown message type {kind!r} from tab {tab_id}")
        return None

    async def drain(self):
        """Wait for every scheduled handler to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
