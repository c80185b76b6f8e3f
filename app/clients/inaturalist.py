"""
iNaturalist API adapter.

Used by the image cascade: a name search resolves an iNaturalist taxon id,
then the taxon record supplies curated taxon photos.

Reference: https://api.inaturalist.org/v1/docs/
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.clients.base import BaseAPIClient, FetchResult
from app.core.events import EventSink

logger = logging.getLogger(__name__)


def photo_url(photo: Dict[str, Any]) -> Optional[str]:
    """Best available URL for an iNaturalist photo record."""
    for field_name in ("large_url", "medium_url", "original_url"):
        url = photo.get(field_name)
        if isinstance(url, str) and url:
            return url
    url = photo.get("url")
    if isinstance(url, str) and url:
        # Bare "url" points at the square thumbnail
        return url.replace("/square.", "/large.")
    return None


class INaturalistClient(BaseAPIClient):
    """Taxa search and taxon photo lookup."""

    provider_name = "inaturalist"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.inaturalist.org/v1",
        timeout: float = 3.0,
        events: Optional[EventSink] = None,
    ):
        super().__init__(http_client, base_url, timeout=timeout, events=events)

    async def search_taxa(self, name: str) -> FetchResult[List[Dict[str, Any]]]:
        """Active taxa matching a name (scientific or common)."""
        result = await self._get_json(
            "/taxa",
            params={"q": name, "is_active": "true", "locale": "en"},
        )
        if not result.ok:
            return result.cast_failure()
        items = result.value.get("results") if isinstance(result.value, dict) else None
        return FetchResult.success([i for i in (items or []) if isinstance(i, dict)])

    async def get_taxon_photos(
        self,
        taxon_id: int,
        limit: int = 5,
    ) -> FetchResult[List[Dict[str, Any]]]:
        """
        Photo records for a taxon, in the order iNaturalist ranks them.

        Accepts both the taxon-detail shape (results[0].taxon_photos[].photo)
        and a flat list of {photo: {...}} entries.
        """
        result = await self._get_json(f"/taxa/{taxon_id}")
        if not result.ok:
            return result.cast_failure()

        items = result.value.get("results") if isinstance(result.value, dict) else None
        photos: List[Dict[str, Any]] = []
        for item in items or []:
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("photo"), dict):
                photos.append(item["photo"])
            for taxon_photo in item.get("taxon_photos") or []:
                if isinstance(taxon_photo, dict) and isinstance(taxon_photo.get("photo"), dict):
                    photos.append(taxon_photo["photo"])
        return FetchResult.success(photos[:limit])
