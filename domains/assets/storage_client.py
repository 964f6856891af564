"""Supabase Storage client for signed and public object URLs."""

from typing import Optional
from urllib.parse import quote

import httpx

import config as app_config
from logger import logger
from utils import sanitize_for_log
from . import config


def _headers():
    """Get headers for Supabase Storage API calls."""
    return {
        "apikey": app_config.SUPABASE_KEY,
        "Authorization": f"Bearer {app_config.SUPABASE_KEY}",
        "Content-Type": "application/json",
    }


def _object_url(kind: str, bucket: str, path: str) -> str:
    return f"{app_config.SUPABASE_URL}{config.STORAGE_OBJECT_PREFIX}/{kind}/{bucket}/{quote(path, safe='/')}"


def is_configured() -> bool:
    return bool(app_config.SUPABASE_URL and app_config.SUPABASE_KEY)


async def create_signed_url(bucket: str, path: str, expires_in: int) -> Optional[str]:
    """Mint a time-limited URL for a private object.

    Args:
        bucket: Storage bucket name
        path: Object path inside the bucket
        expires_in: URL lifetime in seconds

    Returns:
        Absolute signed URL, or None if Supabase is not configured or
        returned no URL

    Raises:
        httpx.HTTPError: On transport failure or non-2xx response
    """
    if not is_configured():
        logger.warning("Supabase not configured, cannot sign storage URL")
        return None

    async with httpx.AsyncClient() as client:
        response = await client.post(
            _object_url("sign", bucket, path),
            headers=_headers(),
            json={"expiresIn": expires_in},
            timeout=config.STORAGE_TIMEOUT
        )
        response.raise_for_status()
        data = response.json()

    signed = (data or {}).get("signedURL") or (data or {}).get("signedUrl")
    if not signed:
        return None
    if signed.startswith("http://") or signed.startswith("https://"):
        return signed

    url = f"{app_config.SUPABASE_URL}/storage/v1{signed if signed.startswith('/') else '/' + signed}"
    logger.debug(f"Signed {bucket}/{path}: {sanitize_for_log(url)}")
    return url


def get_public_url(bucket: str, path: str) -> Optional[str]:
    """Build the public URL for an object (only readable in public buckets).

    Returns:
        Absolute public URL, or None if Supabase URL is not configured
    """
    if not app_config.SUPABASE_URL:
        return None
    return _object_url("public", bucket, path)
