"""The persisted "selection UI visible" flag."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from ..database.repository import UiStateRepository

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class UiVisibility:
    """In-memory visibility flag mirrored to the UI state repository.

    Storage errors are logged and ignored; the in-memory value always wins.
    Without a repository the flag simply isn't persisted.
    """

    def __init__(self, repo: Optional[UiStateRepository] = None):
        self._repo = repo
        self._visible = False

    @property
    def visible(self) -> bool:
        return self._visible

    def attach(self, repo: UiStateRepository):
        """Start persisting to ``repo``. Call ``load`` afterwards to restore the stored value."""
        self._repo = repo

    async def load(self) -> bool:
        """Read the last persisted value, keeping the default when none is stored."""
        if self._repo is None:
            return self._visible
        try:
            stored = await self._repo.get_ui_visible()
        except Exception as e:
            logger.warning(f"Could not read UI visibility: {e}")
            return self._visible
        if stored is not None:
            self._visible = stored
        return self._visible

    async def set(self, visible: bool):
        self._visible = visible
        if self._repo is None:
            return
        try:
            await self._repo.set_ui_visible(visible)
        except Exception as e:
            logger.warning(f"Could not persist UI visibility: {e}")
