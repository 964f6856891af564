"""Normalize storage references into bucket-relative paths.

Event images and avatars reach the app in several shapes: bare object
paths, signed URLs, public URLs, or URLs to some other host entirely.
"""

from typing import Optional
from urllib.parse import unquote

from . import config


def is_absolute_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def extract_storage_path(value: Optional[str]) -> Optional[str]:
    """Canonicalize a raw storage reference.

    Examples:
    - "a/b.png" -> "a/b.png"
    - "/a/b.png" -> "a/b.png"
    - "https://host/x" -> "https://host/x" (unchanged)
    - None or "" -> None

    Args:
        value: Raw reference from the API

    Returns:
        Bare relative path, the absolute URL as-is, or None if empty
    """
    if not value:
        return None
    v = str(value).strip()
    if not v:
        return None
    if is_absolute_url(v):
        return v

    return v.lstrip("/")


def extract_bucket_path(bucket: str, value: str) -> Optional[str]:
    """Strip a storage URL down to its path inside bucket.

    Recognizes, in order, signed URLs (/object/sign/<bucket>/), public URLs
    (/object/public/<bucket>/) and plain object URLs (/object/<bucket>/).
    The query string is dropped and the remainder percent-decoded.

    Args:
        bucket: Storage bucket name
        value: Plain path or absolute URL

    Returns:
        Bucket-relative path, or None if value is a URL with no marker
        for this bucket
    """
    if not is_absolute_url(value):
        return value.lstrip("/")

    for variant in ("sign/", "public/", ""):
        marker = f"{config.STORAGE_OBJECT_PREFIX}/{variant}{bucket}/"
        index = value.find(marker)
        if index >= 0:
            # URL segments are percent-encoded; object keys are not
            return unquote(value[index + len(marker):].split("?")[0].split("#")[0])

    return None
