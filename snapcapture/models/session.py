"""Pydantic models for the capture session state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    AWAITING_SELECTION = "awaiting_selection"
    UPLOADING = "uploading"


class Session(BaseModel):
    """The single in-flight capture workflow.

    Only the transition methods below mutate it. ``tab_id`` is set exactly
    when ``status`` is not idle, and every per-session field is cleared
    together by ``reset``.
    """

    status: SessionStatus = SessionStatus.IDLE
    tab_id: Optional[int] = None
    return_url: Optional[str] = None
    target_url: Optional[str] = None
    upload_target: Optional[str] = None
    auth_token: Optional[str] = Field(default=None, repr=False, exclude=True)
    generation: int = 0
    started_at: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.status is SessionStatus.IDLE

    def is_current(self, generation: int) -> bool:
        """True while the session stamped ``generation`` has not been reset."""
        return not self.is_idle and self.generation == generation

    def begin(self, tab_id: int) -> int:
        """Leave idle for a new activation and return its generation."""
        if not self.is_idle:
            raise RuntimeError(f"Session already active ({self.status.value}).")
        self.generation += 1
        self.status = SessionStatus.NAVIGATING
        self.tab_id = tab_id
        self.started_at = datetime.now(timezone.utc).isoformat()
        return self.generation

    def bind(
        self,
        return_url: str,
        target_url: str,
        upload_target: str,
        auth_token: Optional[str] = None,
    ):
        """Record the validated activation parameters."""
        self.return_url = return_url
        self.target_url = target_url
        self.upload_target = upload_target
        self.auth_token = auth_token or None

    def advance(self, status: SessionStatus):
        if status is SessionStatus.IDLE:
            raise ValueError("Use reset() to return to idle.")
        self.status = status

    def reset(self):
        self.status = SessionStatus.IDLE
        self.tab_id = None
        self.return_url = None
        self.target_url = None
        self.upload_target = None
        self.auth_token = None
        self.started_at = None


class SessionSnapshot(BaseModel):
    """Redacted view of the session for status responses."""

    status: SessionStatus
    tab_id: Optional[int] = None
    return_url: Optional[str] = None
    target_url: Optional[str] = None
    upload_target: Optional[str] = None
    has_token: bool = False
    generation: int = 0
    started_at: Optional[str] = None
    ui_visible: bool = False

    @classmethod
    def from_session(cls, session: Session, ui_visible: bool = False) -> SessionSnapshot:
        return cls(
            status=session.status,
            tab_id=session.tab_id,
            return_url=session.return_url,
            target_url=session.target_url,
            upload_target=session.upload_target,
            has_token=session.auth_token is not None,
            generation=session.generation,
            started_at=session.started_at,
            ui_visible=ui_visible,
        )
