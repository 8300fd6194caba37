"""
HTTP helpers shared by the token and userinfo clients.
"""

import logging
from typing import Any

import httpx

from authflow.core.exceptions import MalformedURLError, TransportError


logger = logging.getLogger(__name__)


def calculate_url(base_url: str, endpoint: str) -> str:
    """
    Resolve an endpoint against the server base URL.

    Absolute endpoints are returned as-is; relative ones are appended to the
    base URL path.

    Raises:
        MalformedURLError: If no absolute http(s) URL can be built
    """
    if endpoint.startswith(("http://", "https://")):
        candidate = endpoint
    else:
        if not base_url:
            raise MalformedURLError("Malformatted URL: base URL is not configured")
        candidate = base_url.rstrip("/")
        if endpoint:
            candidate = f"{candidate}/{endpoint.lstrip('/')}"

    try:
        url = httpx.URL(candidate)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise MalformedURLError(f"Malformatted URL: {candidate}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise MalformedURLError(f"Malformatted URL: {candidate}")
    return str(url)


async def send(
    method: str, url: str, operation: str, **kwargs: Any
) -> httpx.Response:
    """
    Issue a single request and translate failures into TransportError.

    Non-2xx responses are failures. There is no retry.
    """
    try:
        async with httpx.AsyncClient() as client:
            if method == "POST":
                response = await client.post(url, **kwargs)
            else:
                response = await client.get(url, **kwargs)
            response.raise_for_status()
            return response

    except httpx.HTTPStatusError as e:
        logger.error(
            f"{operation} failed with status {e.response.status_code}: {e.response.text}"
        )
        raise TransportError(
            f"{operation} failed: HTTP {e.response.status_code}",
            status_code=e.response.status_code,
            body=e.response.text,
        ) from e
    except httpx.RequestError as e:
        logger.error(f"Network error during {operation}: {e}")
        raise TransportError(f"{operation} failed: network error: {e}") from e


def json_object(response: httpx.Response) -> dict[str, Any] | None:
    """Decode the body as a JSON object, or None if it is not one."""
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None
