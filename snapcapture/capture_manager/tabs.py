"""Browser tab primitives the workflow is built on."""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Union

# (tab_id, status) where status is "loading" or "complete"
UpdateListener = Callable[[int, str], None]

CapturedImage = Union[bytes, str]

TAB_LOADING = "loading"
TAB_COMPLETE = "complete"


class TabHost(Protocol):
    """What a browser must provide to run the capture workflow.

    ``send_message`` raises ``MessageDeliveryError`` (usually
    ``NoReceiverError``) when nothing in the tab accepted the message.
    ``capture_visible`` returns PNG bytes or a ``data:`` URI of the visible
    viewport in device pixels.
    """

    async def update(self, tab_id: int, url: str) -> None: ...

    def add_update_listener(self, listener: UpdateListener) -> None: ...

    def remove_update_listener(self, listener: UpdateListener) -> None: ...

    async def send_message(self, tab_id: int, message: dict) -> None: ...

    async def capture_visible(self, tab_id: int) -> CapturedImage: ...

    async def get_url(self, tab_id: int) -> Optional[str]: ...

    async def list_tabs(self) -> list[int]: ...
