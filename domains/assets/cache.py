"""In-memory cache of signed storage URLs.

Signing is a network round-trip per image, so URLs are reused until shortly
before they expire.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from . import config


@dataclass
class CachedUrl:
    """A signed URL and when it stops working."""
    url: str
    expires_at_ms: int


def cache_key(bucket: str, path: str, expires_in: int) -> str:
    return f"{bucket}|{int(expires_in)}|{path}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class SignedUrlCache:
    """LRU cache of signed URLs keyed by (bucket, expiry, path)."""

    def __init__(self, max_entries: Optional[int] = None, margin_seconds: Optional[int] = None):
        self.max_entries = max_entries or config.CACHE_MAX_ENTRIES
        self.margin_ms = (config.CACHE_EXPIRY_MARGIN_SECONDS if margin_seconds is None else margin_seconds) * 1000
        self._entries: OrderedDict[str, CachedUrl] = OrderedDict()

    def get(self, bucket: str, path: str, expires_in: int, now_ms: Optional[int] = None) -> Optional[str]:
        """Return a cached URL that is still valid beyond the safety margin."""
        key = cache_key(bucket, path, expires_in)
        entry = self._entries.get(key)
        if entry is None:
            return None

        now_ms = _now_ms() if now_ms is None else now_ms
        if entry.expires_at_ms - self.margin_ms <= now_ms:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return entry.url

    def set(self, bucket: str, path: str, expires_in: int, url: str, now_ms: Optional[int] = None) -> None:
        now_ms = _now_ms() if now_ms is None else now_ms
        key = cache_key(bucket, path, expires_in)
        self._entries[key] = CachedUrl(url=url, expires_at_ms=now_ms + int(expires_in) * 1000)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, bucket: str, path: str) -> int:
        """Drop every cached URL for an object, whatever its expiry. Returns count removed."""
        stale = [k for k in self._entries if k.split("|", 2)[0::2] == [bucket, path]]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


# Shared cache used by resolve_storage_url by default
signed_url_cache = SignedUrlCache()
