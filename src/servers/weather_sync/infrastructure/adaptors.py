import logging
from typing import Any, Dict, Optional

import httpx

from servers.weather_sync.domain.exceptions import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


async def make_request(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """HTTP client adapter for external weather API calls.

    Thin wrapper around httpx for dependency injection. Every request is
    bounded by ``timeout``; an exceeded timeout is a provider failure like
    any other.

    Args:
        url: Target URL for GET request
        params: Optional query parameters
        headers: Optional HTTP headers dict
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests)

    Returns:
        Parsed JSON response as dictionary

    Raises:
        ProviderError: On timeout, transport error, non-2xx status or a
            body that is not a JSON object
    """
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Request to %s timed out after %.1fs", url, timeout)
            raise ProviderError(f"Request to {url} timed out") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("Request to %s failed with status %d", url, status)
            raise ProviderError(
                f"Request to {url} failed with status {status}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", url, type(exc).__name__)
            raise ProviderError(f"Request to {url} failed: {exc}") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderError(f"Response from {url} is not valid JSON") from exc

    if not isinstance(payload, dict):
        raise ProviderError(
            f"Response from {url} has unexpected type {type(payload).__name__}"
        )
    return payload
