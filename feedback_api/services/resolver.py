"""Resolve human-readable type and status names to OpenProject ids.

Remote catalogs are configured per installation (and types per project), so
names are looked up against the live listing on every call. Matching is
two-pass: an exact (case- and whitespace-insensitive) match always wins over
a substring match, wherever the two appear in listing order.
"""

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from feedback_api.config import RemoteEndpointConfig
from feedback_api.services.http_client import embedded_elements, openproject_api_get

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    return name.strip().lower()


def match_name(candidates: Iterable[tuple[str, int]], query: str) -> int | None:
    """Return the id of the best candidate for *query*, or None.

    Pass 1 looks for exact equality of normalized names; pass 2, only if
    pass 1 found nothing, takes the first candidate whose normalized name
    contains the normalized query.
    """
    wanted = normalize_name(query)
    if not wanted:
        return None

    normalized = [(normalize_name(name), cid) for name, cid in candidates]
    for name, cid in normalized:
        if name == wanted:
            return cid
    for name, cid in normalized:
        if wanted in name:
            return cid
    return None


def _named_candidates(elements: list[dict[str, Any]]) -> list[tuple[str, int]]:
    """(name, id) pairs from HAL elements, skipping malformed entries."""
    pairs: list[tuple[str, int]] = []
    for element in elements:
        name = element.get("name")
        cid = element.get("id")
        if not isinstance(name, str):
            continue
        if isinstance(cid, bool) or not isinstance(cid, int):
            continue
        pairs.append((name, cid))
    return pairs


class ResourceResolver:
    """Looks up type and status ids by name against the remote API."""

    def __init__(self, client: httpx.AsyncClient, config: RemoteEndpointConfig):
        self._client = client
        self._config = config

    async def _resolve(self, path: str, name: str, kind: str) -> int | None:
        data = await openproject_api_get(
            self._client, self._config, path, context=f"{kind} lookup"
        )
        if data is None:
            return None

        resolved = match_name(_named_candidates(embedded_elements(data)), name)
        if resolved is None:
            logger.warning("No %s matching %r at %s", kind, name, path)
        return resolved

    async def resolve_type_id(self, project_id: int, type_name: str) -> int | None:
        """Id of the project's work package type named *type_name*."""
        path = f"/api/v3/projects/{project_id}/types"
        return await self._resolve(path, type_name, "type")

    async def resolve_status_id(self, status_name: str) -> int | None:
        """Id of the global status named *status_name*."""
        return await self._resolve("/api/v3/statuses", status_name, "status")
