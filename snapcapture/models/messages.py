"""Pydantic models for messages exchanged with pages and the selection UI."""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import MAX_TOKEN_LENGTH, MAX_URL_LENGTH, MIN_SELECTION_PX
from ..constants import HIDE_UI, SELECTION_PROMPT, SHOW_ERROR, SHOW_UI


def _parse_url(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    if len(value) > MAX_URL_LENGTH:
        raise ValueError(f"longer than {MAX_URL_LENGTH} characters")
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise ValueError(f"not a URL: {e}") from e
    if not parts.scheme or not parts.netloc:
        raise ValueError("not an absolute URL")
    return value


class SelectionRect(BaseModel):
    """Selected area in device pixels."""

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    w: int = Field(ge=MIN_SELECTION_PX)
    h: int = Field(ge=MIN_SELECTION_PX)


class ActivationRequest(BaseModel):
    """A page's request to start the capture workflow.

    Accepts the page-side field names (``url``, ``target``, ``token``) as well
    as the attribute names.
    """

    model_config = ConfigDict(populate_by_name=True)

    target_url: str = Field(alias="url")
    upload_target: str = Field(alias="target")
    token: Optional[str] = Field(default=None, repr=False)

    @field_validator("target_url", "upload_target")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _parse_url(value)

    @field_validator("token")
    @classmethod
    def _check_token(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if len(value) > MAX_TOKEN_LENGTH:
            raise ValueError(f"longer than {MAX_TOKEN_LENGTH} characters")
        return value or None


# ── Outbound UI messages ─────────────────────────────────────────────────────


def show_ui(message: str = SELECTION_PROMPT) -> dict:
    return {"type": SHOW_UI, "message": message}


def hide_ui() -> dict:
    return {"type": HIDE_UI}


def show_error(message: str) -> dict:
    return {"type": SHOW_ERROR, "message": message}
