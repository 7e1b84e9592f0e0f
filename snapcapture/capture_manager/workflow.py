"""The capture workflow: activation, selection, upload and return.

One ``CaptureWorkflow`` owns the single ``Session``. Every entry point
checks and updates the session before its first ``await``, so two handlers
running on the same event loop can never both leave idle or both start an
upload. Continuations that resume after a suspension compare the session's
generation with the one they started under and stop if it has moved on.

    idle --activate--> navigating --loaded--> awaiting_selection
    awaiting_selection --save--> uploading --done--> idle
    awaiting_selection --cancel--> idle
    any active state --error--> idle
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Awaitable, Optional, Union
from urllib.parse import urlsplit

from pydantic import ValidationError

from ..config import MESSAGE_RETRY_ATTEMPTS, MESSAGE_RETRY_DELAY
from ..constants import UNKNOWN_ERROR
from ..models.messages import ActivationRequest, SelectionRect, hide_ui, show_error, show_ui
from ..models.session import Session, SessionSnapshot, SessionStatus
from .allowlist import AllowList
from .errors import ActivationRejected, CaptureError, DeliveryFailed
from .imaging import crop_captured_image
from .messenger import send_once, send_with_retry
from .navigator import Navigator
from .tabs import TabHost
from .uploader import Uploader
from .visibility import UiVisibility

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _is_absolute_url(value: Optional[str]) -> bool:
    if not value or not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


class CaptureWorkflow:
    """Coordinates navigation, the selection UI, capture and upload."""

    def __init__(
        self,
        tabs: TabHost,
        allow_list: AllowList,
        uploader: Uploader,
        visibility: Optional[UiVisibility] = None,
        navigator: Optional[Navigator] = None,
        retry_attempts: int = MESSAGE_RETRY_ATTEMPTS,
        retry_delay: float = MESSAGE_RETRY_DELAY,
    ):
        self._tabs = tabs
        self._allow_list = allow_list
        self._uploader = uploader
        self._visibility = visibility or UiVisibility()
        self._navigator = navigator or Navigator(tabs)
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._session = Session()

    @property
    def session(self) -> Session:
        """A copy of the current session."""
        return self._session.model_copy()

    @property
    def ui_visible(self) -> bool:
        return self._visibility.visible

    def status(self) -> SessionSnapshot:
        return SessionSnapshot.from_session(self._session, self._visibility.visible)

    # ── Entry points ─────────────────────────────────────────────────────────

    async def activate(self, tab_id: int, return_url: Optional[str], request: ActivationRequest) -> bool:
        """Start a session in ``tab_id``. Returns False if one is already running."""
        if not self._session.is_idle:
            logger.info(
                f"[ACTIVATE] Ignored request from tab {tab_id}: "
                f"session is {self._session.status.value}"
            )
            return False
        generation = self._session.begin(tab_id)
        logger.info(f"[ACTIVATE] Session {generation} started by tab {tab_id} for {request.target_url}")

        try:
            self._validate(return_url, request)
            self._session.bind(return_url, request.target_url, request.upload_target, request.token)

            await self._navigator.navigate(tab_id, request.target_url)
            if not self._session.is_current(generation):
                logger.info(f"[ACTIVATE] Session {generation} ended during navigation")
                return True
            self._session.advance(SessionStatus.AWAITING_SELECTION)

            await self._visibility.set(True)
            if not await self._send(tab_id, show_ui()):
                raise DeliveryFailed("Selection UI did not respond on the target page")
        except Exception as e:
            await self._fail(e, tab_id, generation)
        return True

    async def save(self, tab_id: int, rect: Union[SelectionRect, dict[str, Any]]) -> bool:
        """Capture, crop and upload ``rect``. Ignored unless awaiting a selection from ``tab_id``."""
        session = self._session
        if session.status is not SessionStatus.AWAITING_SELECTION or session.tab_id != tab_id:
            logger.info(f"[SAVE] Ignored from tab {tab_id} (session {session.status.value}, tab {session.tab_id})")
            return False
        generation = session.generation
        session.advance(SessionStatus.UPLOADING)
        upload_target, token = session.upload_target, session.auth_token

        try:
            selection = self._coerce_rect(rect)
            raw = await self._tabs.capture_visible(tab_id)
            image = crop_captured_image(raw, selection)
            await self._uploader.upload(upload_target, selection, image, token)
        except Exception as e:
            await self._fail(e, tab_id, generation)
            return True

        logger.info(f"[SAVE] Session {generation} uploaded to {upload_target}")
        await self.finalize(generation)
        return True

    async def cancel(self, tab_id: int) -> bool:
        """End the session without uploading. Only the session's own tab may cancel."""
        if self._session.is_idle or self._session.tab_id != tab_id:
            logger.info(f"[CANCEL] Ignored from tab {tab_id}")
            return False
        logger.info(f"[CANCEL] Session {self._session.generation} cancelled by tab {tab_id}")
        await self.finalize(self._session.generation)
        return True

    async def ready(self, tab_id: int) -> bool:
        """The UI in ``tab_id`` (re)loaded. Returns True if it was told to show the selection."""
        session = self._session
        if session.status is SessionStatus.AWAITING_SELECTION and session.tab_id == tab_id:
            if not await self._send(tab_id, show_ui()):
                logger.warning(f"[READY] Tab {tab_id} asked for state but did not take SHOW_UI")
            return True
        await self._best_effort("hide UI", send_once(self._tabs, tab_id, hide_ui()))
        return False

    async def hide_requested(self):
        """The UI's close button: remember the panel as hidden and hide it everywhere."""
        await self._visibility.set(False)
        tab_ids = await self._best_effort("list tabs", self._tabs.list_tabs()) or []
        for tab_id in tab_ids:
            await send_once(self._tabs, tab_id, hide_ui())

    async def toggle_ui(self, tab_id: int) -> bool:
        """The browser action button: flip the panel in ``tab_id``. Returns the new visibility."""
        visible = not self._visibility.visible
        await self._visibility.set(visible)
        message = show_ui() if visible else hide_ui()
        if not await send_once(self._tabs, tab_id, message):
            logger.info(f"[TOGGLE] Tab {tab_id} has no UI loaded")
        return visible

    # ── Terminal paths ───────────────────────────────────────────────────────

    async def finalize(self, generation: Optional[int] = None):
        """Hide the UI, reset to idle and send the tab back to where it came from.

        A no-op when the session is already idle or ``generation`` is stale.
        """
        session = self._session
        if session.is_idle or (generation is not None and session.generation != generation):
            return
        tab_id, return_url = session.tab_id, session.return_url
        finished = session.generation
        session.reset()
        logger.info(f"[FINALIZE] Session {finished} finished")

        await self._visibility.set(False)
        if not await self._best_effort("hide UI", self._send(tab_id, hide_ui())):
            logger.info(f"[FINALIZE] Tab {tab_id} did not take HIDE_UI")
        if return_url:
            await self._best_effort(
                f"return tab {tab_id} to {return_url}",
                self._navigator.navigate(tab_id, return_url),
            )

    async def _fail(self, error: Exception, tab_id: Optional[int], generation: int):
        if not self._session.is_current(generation):
            logger.warning(f"[ERROR] Session {generation} already ended, dropping error: {error}")
            return
        # Idle before the first await: a failed session accepts no more messages
        self._session.reset()

        if isinstance(error, CaptureError):
            logger.error(f"[ERROR] Session {generation} failed: {error}")
        else:
            logger.error(f"[ERROR] Session {generation} failed: {error}", exc_info=error)

        message = str(error) or UNKNOWN_ERROR
        if tab_id is not None:
            delivered = await self._best_effort("report error", self._send(tab_id, show_error(message)))
            if not delivered:
                logger.warning(f"[ERROR] Tab {tab_id} unreachable, error not shown")

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _validate(self, return_url: Optional[str], request: ActivationRequest):
        if not _is_absolute_url(request.target_url):
            raise ActivationRejected("Target URL is missing or malformed")
        if not request.upload_target:
            raise ActivationRejected("Upload target is missing")
        if not _is_absolute_url(return_url):
            raise ActivationRejected("Return URL is missing or malformed")
        if not self._allow_list.is_allowed(request.target_url):
            raise ActivationRejected(f"URL not allowed: {request.target_url}")

    @staticmethod
    def _coerce_rect(rect: Union[SelectionRect, dict[str, Any]]) -> SelectionRect:
        if isinstance(rect, SelectionRect):
            return rect
        try:
            return SelectionRect.model_validate(rect)
        except ValidationError as e:
            raise CaptureError(f"Invalid selection: {e.error_count()} bad field(s) in {rect!r}") from e

    async def _send(self, tab_id: int, message: dict) -> bool:
        return await send_with_retry(
            self._tabs, tab_id, message, self._retry_attempts, self._retry_delay
        )

    @staticmethod
    async def _best_effort(description: str, awaitable: Awaitable[Any]) -> Any:
        """Await something whose failure must not affect the session."""
        try:
            return await awaitable
        except Exception as e:
            logger.warning(f"[BEST-EFFORT] {description} failed: {e}")
            return None
