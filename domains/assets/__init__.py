"""Storage asset URL resolution (event images, avatars)."""

from .cache import SignedUrlCache, signed_url_cache
from .paths import extract_bucket_path, extract_storage_path
from .resolver import resolve_storage_url

__all__ = [
    "SignedUrlCache",
    "signed_url_cache",
    "extract_bucket_path",
    "extract_storage_path",
    "resolve_storage_url",
]
