"""Upload client for cropped captures."""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Optional

import httpx

from ..config import UPLOAD_FILE_FIELD, UPLOAD_TIMEOUT
from ..constants import UPLOAD_CONTENT_TYPE
from ..models.messages import SelectionRect
from .errors import UploadError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class Uploader:
    """Posts a PNG and its selection rectangle as multipart form data.

    Pass ``transport`` to route requests somewhere other than the network.
    """

    def __init__(
        self,
        timeout: float = UPLOAD_TIMEOUT,
        file_field: str = UPLOAD_FILE_FIELD,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._file_field = file_field
        self._transport = transport

    async def upload(
        self,
        target: str,
        rect: SelectionRect,
        image: bytes,
        token: Optional[str] = None,
    ):
        """POST ``image`` to ``target``.

        Raises:
            UploadError: on a non-2xx response or a transport failure. Not retried.
        """
        filename = f"snap-{int(time.time() * 1000)}.png"
        data = {"rect": json.dumps(rect.model_dump())}
        files = {self._file_field: (filename, image, UPLOAD_CONTENT_TYPE)}
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.info(f"[UPLOAD] POST {target} ({len(image)} bytes, rect={data['rect']})")
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(target, data=data, files=files, headers=headers)
        except httpx.HTTPError as e:
            raise UploadError(f"Upload to {target} failed: {e}") from e

        if not resp.is_success:
            raise UploadError(f"Upload to {target} failed: HTTP {resp.status_code}")

        logger.info(f"[UPLOAD] {target} accepted: HTTP {resp.status_code} {resp.text[:200]}")
