"""Allow-list of navigation targets a page may request."""

from __future__ import annotations

from typing import Iterable, NamedTuple, Optional
from urllib.parse import SplitResult, urlsplit

from ..constants import ALLOW_ALL, ALLOWED_SCHEMES

DEFAULT_PORTS = {"http": 80, "https": 443}


class Origin(NamedTuple):
    scheme: str
    host: str
    port: int


def parse_http_url(url: str) -> Optional[SplitResult]:
    """Split ``url`` if it is a well-formed absolute http(s) URL, else None."""
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
        # .port validates the port component lazily
        parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        return None
    return parts


def origin_of(parts: SplitResult) -> Origin:
    scheme = parts.scheme.lower()
    port = parts.port if parts.port is not None else DEFAULT_PORTS[scheme]
    return Origin(scheme, parts.hostname.lower(), port)


class AllowList:
    """Decides whether a URL may be used as a navigation target.

    Entries are URLs whose origin must match exactly and whose path acts as
    a prefix. The ``<all_urls>`` entry allows any http(s) URL.
    """

    def __init__(self, entries: Iterable[str]):
        self._entries = tuple(e.strip() for e in entries if e and e.strip())

    @property
    def entries(self) -> tuple[str, ...]:
        return self._entries

    @property
    def allows_all(self) -> bool:
        return ALLOW_ALL in self._entries

    def is_allowed(self, url: str) -> bool:
        candidate = parse_http_url(url)
        if candidate is None:
            return False
        if self.allows_all:
            return True

        candidate_origin = origin_of(candidate)
        candidate_path = candidate.path or "/"
        for entry in self._entries:
            allowed = parse_http_url(entry)
            if allowed is None:
                continue
            if origin_of(allowed) != candidate_origin:
                continue
            if candidate_path.startswith(allowed.path or "/"):
                return True
        return False
