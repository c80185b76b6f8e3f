"""
Wikipedia REST summary adapter.

Reference: https://en.wikipedia.org/api/rest_v1/#/Page%20content/get_page_summary__title_
"""

from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from app.clients.base import BaseAPIClient, FetchResult
from app.core.events import EventSink


def summary_image(summary: Dict[str, Any]) -> Optional[str]:
    """Thumbnail source if present, otherwise the original image source."""
    for field_name in ("thumbnail", "originalimage"):
        image = summary.get(field_name)
        if isinstance(image, dict):
            source = image.get("source")
            if isinstance(source, str) and source:
                return source
    return None


class WikipediaClient(BaseAPIClient):
    """Page summary lookup by title."""

    provider_name = "wikipedia"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "https://en.wikipedia.org/api/rest_v1",
        timeout: float = 3.0,
        events: Optional[EventSink] = None,
    ):
        super().__init__(http_client, base_url, timeout=timeout, events=events)

    async def get_summary(self, title: str) -> FetchResult[Dict[str, Any]]:
        page = quote(title.strip().replace(" ", "_"), safe="")
        result = await self._get_json(f"/page/summary/{page}")
        if not result.ok:
            return result.cast_failure()
        if not isinstance(result.value, dict):
            return FetchResult.success({})
        return FetchResult.success(result.value)
