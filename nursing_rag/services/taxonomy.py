# =============================================================================
# Classification Tags API Client
# =============================================================================
#
# Read-only client for the admin API that owns the subject → topic →
# category hierarchy used to tag questions:
#
#   GET /subject                                         fields=id,name
#   GET /topic?filters=subject_id||$eq||<id>             fields=id,name
#   GET /question-category?filters=topic_id||$eq||<id>   fields=id,name
#
# Every request carries `Authorization: Bearer <token>`. Any non-200
# response or transport failure becomes ApiRequestError.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from nursing_rag.config import settings
from nursing_rag.exceptions import ApiRequestError

logger = logging.getLogger(__name__)


@dataclass
class TaxonomyEntry:
    """A subject, topic or category: just an id and a display name."""

    id: int
    name: str


class TaxonomyClient:
    """
    Async client for the classification tags API.

    Args:
        base_url: API root, e.g. https://host/v3/admin.
        token: Bearer token. Checked per request so a missing token fails
            the classification, not application startup.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.taxonomy_api_base_url).rstrip("/")
        self._token = token if token is not None else settings.taxonomy_api_token
        self._timeout = timeout_seconds or settings.taxonomy_api_timeout_seconds
        self._transport = transport

    async def get_subjects(self) -> list[TaxonomyEntry]:
        return await self._fetch("/subject", {}, "subjects")

    async def get_topics(self, subject_id: int) -> list[TaxonomyEntry]:
        return await self._fetch(
            "/topic",
            {"filters": f"subject_id||$eq||{subject_id}"},
            f"topics for subject {subject_id}",
        )

    async def get_categories(self, topic_id: int) -> list[TaxonomyEntry]:
        return await self._fetch(
            "/question-category",
            {"filters": f"topic_id||$eq||{topic_id}"},
            f"categories for topic {topic_id}",
        )

    async def _fetch(self, path: str, params: dict, what: str) -> list[TaxonomyEntry]:
        if not self._token:
            raise ApiRequestError("Classification API bearer token not configured")

        query = {**params, "fields": "id,name"}
        headers = {"Authorization": f"Bearer {self._token}"}

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=query, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Error fetching %s: %s", what, e)
            raise ApiRequestError(f"Failed to fetch {what} from API: {e}") from e

        if response.status_code != 200:
            raise ApiRequestError(
                f"Failed to fetch {what}: HTTP {response.status_code}",
                response.status_code,
            )

        try:
            entries = [
                TaxonomyEntry(id=int(item["id"]), name=str(item["name"]))
                for item in response.json()
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise ApiRequestError(f"Malformed {what} payload: {e}") from e

        logger.debug("Fetched %d %s", len(entries), what)
        return entries
