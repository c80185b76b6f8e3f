"""
GBIF Species API adapter.

Endpoints used:
- GET /species/search              candidate taxa for a free-text query
- GET /species/{key}               detailed record (incl. acceptedKey)
- GET /species/{key}/media         media items (StillImage entries)
- GET /species/{key}/vernacularNames

Reference: https://www.gbif.org/developer/species
"""

import logging
from typing import List, Optional, Tuple, Dict, Any

import httpx

from app.clients.base import BaseAPIClient, FetchResult, TTLCache
from app.core.events import EventSink
from app.models.enums import ErrorKind, TaxonRank
from app.taxonomy.base import TaxonCandidate, VernacularName

logger = logging.getLogger(__name__)

SearchKey = Tuple[str, int, Optional[str]]


class GBIFClient(BaseAPIClient):
    """
    Thin adapter over the GBIF species endpoints.

    Search results can be memoised in an optional TTL cache keyed by
    (query, limit, rank filter). The cache belongs to this instance only.
    """

    provider_name = "gbif"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.gbif.org/v1",
        timeout: float = 10.0,
        cache: Optional[TTLCache] = None,
        events: Optional[EventSink] = None,
    ):
        super().__init__(http_client, base_url, timeout=timeout, events=events)
        self.cache = cache

    async def search(
        self,
        query: str,
        limit: int = 10,
        rank: Optional[TaxonRank] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult[List[TaxonCandidate]]:
        """
        Search the species index.

        Returns an empty list (not an error) when the service answers with
        no hits. Failures are reported through the result's error kind.
        """
        query = (query or "").strip()
        if not query:
            return FetchResult.success([])

        cache_key: SearchKey = (query, limit, rank.value if rank else None)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return FetchResult.success(list(cached))

        params: Dict[str, Any] = {"q": query, "limit": limit}
        if rank is not None:
            params["rank"] = rank.value

        result = await self._get_json("/species/search", params=params, timeout=timeout)
        if not result.ok:
            return result.cast_failure()

        records = result.value.get("results") if isinstance(result.value, dict) else None
        candidates = [
            TaxonCandidate.from_gbif(record)
            for record in (records or [])
            if isinstance(record, dict)
        ]

        self.events.emit(
            "gbif_search", logging.DEBUG,
            query=query, limit=limit, rank=cache_key[2], hits=len(candidates),
        )

        if self.cache is not None:
            self.cache.set(cache_key, tuple(candidates))
        return FetchResult.success(candidates, status_code=result.status_code)

    async def get_species(
        self,
        key: int,
        timeout: Optional[float] = None,
    ) -> FetchResult[TaxonCandidate]:
        """Fetch the detailed record for a usage key."""
        result = await self._get_json(f"/species/{key}", timeout=timeout)
        if not result.ok:
            return result.cast_failure()
        if not isinstance(result.value, dict) or not result.value:
            return FetchResult.failure(ErrorKind.NOT_FOUND, status_code=result.status_code)
        return FetchResult.success(TaxonCandidate.from_gbif(result.value), result.status_code)

    async def get_media(
        self,
        key: int,
        limit: int = 3,
        timeout: Optional[float] = None,
    ) -> FetchResult[List[Dict[str, Any]]]:
        """Media items attached to a usage key."""
        result = await self._get_json(
            f"/species/{key}/media", params={"limit": limit}, timeout=timeout
        )
        if not result.ok:
            return result.cast_failure()
        items = result.value.get("results") if isinstance(result.value, dict) else None
        return FetchResult.success(
            [item for item in (items or []) if isinstance(item, dict)],
            status_code=result.status_code,
        )

    async def get_vernacular_names(
        self,
        key: int,
        timeout: Optional[float] = None,
    ) -> FetchResult[List[VernacularName]]:
        """Common names recorded for a usage key."""
        result = await self._get_json(f"/species/{key}/vernacularNames", timeout=timeout)
        if not result.ok:
            return result.cast_failure()
        items = result.value.get("results") if isinstance(result.value, dict) else None
        names = []
        for item in items or []:
            if isinstance(item, dict):
                parsed = VernacularName.from_gbif(item)
                if parsed:
                    names.append(parsed)
        return FetchResult.success(names, status_code=result.status_code)

    async def is_available(self) -> bool:
        """Cheap reachability probe used by the readiness check."""
        result = await self._get_json(
            "/species/search", params={"q": "Aves", "limit": 1}, timeout=self.timeout
        )
        return result.ok
