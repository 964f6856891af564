"""Resolve storage references into URLs the app can load.

Signed URL first (works for private and public buckets), then the public
URL. Asset URLs only feed best-effort image display, so resolution degrades
to None instead of raising.
"""

from typing import Optional

from logger import logger
from utils import sanitize_for_log
from . import config
from . import storage_client
from .cache import SignedUrlCache, signed_url_cache
from .paths import extract_bucket_path, extract_storage_path, is_absolute_url


async def resolve_storage_url(
    bucket: str,
    value: Optional[str],
    expires_in: Optional[int] = None,
    cache: Optional[SignedUrlCache] = None,
) -> Optional[str]:
    """Turn a stored path or URL into a loadable URL.

    Args:
        bucket: Storage bucket name (e.g. "avatars", "event-images")
        value: Raw reference - bare path, storage URL or any other URL
        expires_in: Signed URL lifetime in seconds (default 1h)
        cache: Signed URL cache (default: shared module cache)

    Returns:
        Signed URL, public URL, the input URL if it is not a storage URL
        for this bucket, or None
    """
    expires_in = config.DEFAULT_EXPIRES_IN if expires_in is None else expires_in
    cache = signed_url_cache if cache is None else cache

    path = extract_storage_path(value)
    if not path:
        return None

    if is_absolute_url(path):
        bucket_path = extract_bucket_path(bucket, path)
        if bucket_path is None:
            # Already a resolved URL for some other host
            return path
        path = bucket_path
        if not path:
            return None

    cached = cache.get(bucket, path, expires_in)
    if cached:
        return cached

    try:
        signed = await storage_client.create_signed_url(bucket, path, expires_in)
        if signed:
            cache.set(bucket, path, expires_in, signed)
            return signed
    except Exception as e:
        logger.warning(f"Signed URL failed for {bucket}/{path}, falling back to public: {sanitize_for_log(e)}")

    try:
        return storage_client.get_public_url(bucket, path) or None
    except Exception as e:
        logger.error(f"Public URL failed for {bucket}/{path}: {sanitize_for_log(e)}")
        return None
