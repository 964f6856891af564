"""Authenticated JSON client for the Event Finder backend API."""

import inspect
import json
from typing import Any, Awaitable, Callable, Union

import httpx

import config
from logger import logger
from utils import sanitize_for_log

DEFAULT_TIMEOUT = 12.0

TokenProvider = Callable[[], Union[Awaitable[str | None], str | None]]

_token_provider: TokenProvider | None = None


class BackendError(Exception):
    """Backend request failed or backend is not configured."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status = status
        self.url = url


def get_configured_backend_url() -> str | None:
    """Return the backend base URL without trailing slash, or None if unset."""
    raw = (config.BACKEND_URL or "").strip()
    if not raw:
        return None

    # Disallow obvious placeholders like "https://<your-backend>"
    if "<" in raw and ">" in raw:
        return None

    return raw.rstrip("/")


def is_backend_configured() -> bool:
    return bool(get_configured_backend_url())


def set_auth_token_provider(provider: TokenProvider | None) -> None:
    """Register the callable that supplies the user's access token."""
    global _token_provider
    _token_provider = provider


async def get_auth_token() -> str | None:
    """Get the current access token, or None if signed out or unavailable."""
    if _token_provider is None:
        return None
    try:
        token = _token_provider()
        if inspect.isawaitable(token):
            token = await token
        return token or None
    except Exception as e:
        logger.warning(f"Auth token provider failed: {sanitize_for_log(e)}")
        return None


def _build_url(base_url: str, endpoint: str) -> str:
    if endpoint.startswith("http"):
        return endpoint
    return f"{base_url}{'' if endpoint.startswith('/') else '/'}{endpoint}"


def _error_message(parsed: Any, status: int) -> str:
    if isinstance(parsed, str) and parsed:
        return parsed
    if isinstance(parsed, dict):
        return parsed.get("error") or parsed.get("message") or f"HTTP {status}"
    return f"HTTP {status}"


async def request_json(
    method: str,
    endpoint: str,
    body: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> Any:
    """Send a JSON request to the backend with the user's bearer token.

    Args:
        method: HTTP method
        endpoint: Path relative to the backend URL, or an absolute URL
        body: JSON-serializable request body
        timeout: Request timeout in seconds
        headers: Extra headers (override the defaults)

    Returns:
        Parsed JSON when the response is JSON, otherwise the response text

    Raises:
        BackendError: If the backend is not configured or returns non-2xx
        httpx.TimeoutException: If the request times out
    """
    base_url = get_configured_backend_url()
    if not base_url:
        raise BackendError("Backend is not configured.")

    url = _build_url(base_url, endpoint)
    token = await get_auth_token()

    request_headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if token:
        request_headers["Authorization"] = f"Bearer {token}"
    request_headers.update(headers or {})

    async with httpx.AsyncClient() as client:
        response = await client.request(
            method,
            url,
            headers=request_headers,
            content=None if body is None else json.dumps(body),
            timeout=timeout
        )

    text = response.text
    is_json = "application/json" in (response.headers.get("content-type") or "")
    parsed = json.loads(text) if is_json and text else text

    if not response.is_success:
        message = _error_message(parsed, response.status_code)
        logger.warning(f"{method} {url} failed ({response.status_code}): {sanitize_for_log(message)}")
        raise BackendError(message, status=response.status_code, url=url)

    return parsed


async def authenticated_get(endpoint: str, **kwargs) -> Any:
    return await request_json("GET", endpoint, **kwargs)


async def authenticated_post(endpoint: str, body: Any = None, **kwargs) -> Any:
    return await request_json("POST", endpoint, body, **kwargs)


async def authenticated_put(endpoint: str, body: Any = None, **kwargs) -> Any:
    return await request_json("PUT", endpoint, body, **kwargs)


async def authenticated_delete(endpoint: str, **kwargs) -> Any:
    return await request_json("DELETE", endpoint, **kwargs)
