"""Connectivity probe: find the first OpenProject endpoint that answers."""

import logging

import httpx

from feedback_api.config import RemoteEndpointConfig
from feedback_api.models.work_package import OperationOutcome
from feedback_api.services.http_client import (
    api_url,
    is_success,
    openproject_headers,
    response_json,
)

logger = logging.getLogger(__name__)

# Tried in order; the API root is cheapest, the collections need more rights
PROBE_ENDPOINTS = (
    "/api/v3",
    "/api/v3/projects",
    "/api/v3/statuses",
    "/api/v3/work_packages",
)


async def probe_connection(
    client: httpx.AsyncClient, config: RemoteEndpointConfig
) -> OperationOutcome:
    """Return success for the first endpoint answering 2xx, else failure."""
    for endpoint in PROBE_ENDPOINTS:
        url = api_url(config, endpoint)
        try:
            resp = await client.get(url, headers=openproject_headers())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Probe %s failed: %s", url, e)
            continue

        if is_success(resp):
            return OperationOutcome(
                success=True,
                message="Connection successful",
                status_code=resp.status_code,
                endpoint=endpoint,
                data=response_json(resp),
            )
        logger.debug("Probe %s returned %d", url, resp.status_code)

    logger.warning("No OpenProject endpoint reachable at %s", config.base_url)
    return OperationOutcome.failure("No endpoint reachable")
