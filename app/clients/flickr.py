"""
Flickr public photo feed adapter (no API key required).

Reference: https://www.flickr.com/services/feeds/docs/photos_public/
"""

import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.clients.base import BaseAPIClient, FetchResult
from app.core.events import EventSink

# "_m" is the 240px variant in the feed; "_b" is the 1024px variant
_SIZE_TOKEN = re.compile(r"_m\.(jpg|jpeg|png|gif)$", re.IGNORECASE)
_TAG_CHARS = re.compile(r"[^\w-]+", re.UNICODE)


def upgrade_size(url: str) -> str:
    """Swap the feed thumbnail size token for the large variant."""
    return _SIZE_TOKEN.sub(r"_b.\1", url)


def tags_for(name: str) -> List[str]:
    """Tag list built from the words of a name."""
    tags = []
    for word in name.split():
        word = _TAG_CHARS.sub("", word)
        if word:
            tags.append(word)
    return tags


class FlickrFeedClient(BaseAPIClient):
    """Tag search over the public photo feed."""

    provider_name = "flickr"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        feed_url: str = "https://www.flickr.com/services/feeds/photos_public.gne",
        timeout: float = 3.0,
        events: Optional[EventSink] = None,
    ):
        super().__init__(http_client, feed_url, timeout=timeout, events=events)

    async def search_tags(self, tags: Iterable[str]) -> FetchResult[List[Dict[str, Any]]]:
        params = {
            "tags": ",".join(tags),
            "format": "json",
            "nojsoncallback": 1,
        }
        result = await self._get_json(self.base_url, params=params)
        if not result.ok:
            return result.cast_failure()
        items = result.value.get("items") if isinstance(result.value, dict) else None
        return FetchResult.success([i for i in (items or []) if isinstance(i, dict)])
