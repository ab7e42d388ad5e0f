"""Shared HTTP client utilities — reusable httpx client for the OpenProject API."""

import logging
from typing import Any

import httpx

from feedback_api.config import RemoteEndpointConfig, get_settings

logger = logging.getLogger(__name__)

# OpenProject expects this literal user name with the API key as password
API_KEY_USERNAME = "apikey"

# Module-level shared client (created lazily, lives for the process lifetime)
_client: httpx.AsyncClient | None = None


def create_client(
    config: RemoteEndpointConfig, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Build an AsyncClient carrying auth, headers, timeout and TLS policy."""
    if not config.verify_tls:
        logger.warning("TLS verification disabled for %s", config.base_url)
    auth = httpx.BasicAuth(API_KEY_USERNAME, config.api_key) if config.api_key else None
    return httpx.AsyncClient(
        auth=auth,
        headers=openproject_headers(),
        timeout=config.request_timeout,
        verify=config.verify_tls,
        transport=transport,
    )


def get_shared_client() -> httpx.AsyncClient:
    """Return a shared httpx.AsyncClient, creating it on first call."""
    global _client
    if _client is None or _client.is_closed:
        _client = create_client(RemoteEndpointConfig.from_settings(get_settings()))
    return _client


def openproject_headers(*, write: bool = False) -> dict[str, str]:
    """Build standard OpenProject request headers.

    JSON write requests also declare their body type; multipart uploads
    must not, httpx sets the boundary header itself.
    """
    headers = {"Accept": "application/json"}
    if write:
        headers["Content-Type"] = "application/json"
    return headers


def api_url(config: RemoteEndpointConfig, path: str) -> str:
    """Join the configured base URL and an API path."""
    return config.base_url.rstrip("/") + path


def is_success(resp: httpx.Response) -> bool:
    return 200 <= resp.status_code < 300


def response_json(resp: httpx.Response) -> Any | None:
    """Parsed JSON body, or None when the body is not JSON."""
    try:
        return resp.json()
    except ValueError:
        return None


def response_error(resp: httpx.Response) -> Any:
    """Remote error body for diagnostics: JSON when parseable, else raw text."""
    data = response_json(resp)
    return data if data is not None else resp.text


def embedded_elements(data: Any) -> list[dict[str, Any]]:
    """Return ``_embedded.elements`` from a HAL collection, or [] if absent."""
    if not isinstance(data, dict):
        return []
    embedded = data.get("_embedded")
    if not isinstance(embedded, dict):
        return []
    elements = embedded.get("elements")
    if not isinstance(elements, list):
        return []
    return [e for e in elements if isinstance(e, dict)]


async def openproject_api_get(
    client: httpx.AsyncClient,
    config: RemoteEndpointConfig,
    path: str,
    *,
    context: str = "",
) -> Any | None:
    """GET an OpenProject endpoint with standard error handling.

    Returns the parsed JSON body, or None on any error so callers can apply
    their own fallback.
    """
    url = api_url(config, path)
    try:
        resp = await client.get(url, headers=openproject_headers())
        if not is_success(resp):
            logger.warning(
                "OpenProject API %d for %s%s",
                resp.status_code,
                url,
                f" ({context})" if context else "",
            )
            return None
        return resp.json()
    except (httpx.HTTPError, httpx.InvalidURL, ValueError):
        logger.exception(
            "OpenProject API error for %s%s", url, f" ({context})" if context else ""
        )
        return None
