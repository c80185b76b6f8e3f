"""
Image Sourcer

Finds a representative image for a resolved taxon by trying providers in a
fixed order and stopping at the first usable URL:

1. GBIF media        StillImage entries with a valid http(s) URL
2. iNaturalist       taxa search, then the taxon's curated photos
3. Wikipedia         page summary thumbnail, then the original image
4. Flickr            public feed tagged with the name's words

A provider error, timeout or unexpected exception counts as "no image from
this provider" and the cascade moves on.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from app.clients.flickr import FlickrFeedClient, tags_for, upgrade_size
from app.clients.gbif import GBIFClient
from app.clients.inaturalist import INaturalistClient, photo_url
from app.clients.wikipedia import WikipediaClient, summary_image
from app.core.events import EventSink, default_sink
from app.models.enums import ImageProvider
from app.taxonomy.base import ImageResult

logger = logging.getLogger(__name__)


def is_valid_url(value: object) -> bool:
    if not isinstance(value, str) or not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass
class ImageQuery:
    """
    What a provider may search by.

    `search_term` is the caller's own wording (e.g. a detection label) and
    is preferred by name-search providers; `scientific_name` is filled
    lazily from GBIF when a provider needs it.
    """
    key: Optional[int]
    scientific_name: Optional[str] = None
    search_term: Optional[str] = None


class BaseImageProvider(ABC):
    """Base class for image providers in the cascade."""

    @property
    @abstractmethod
    def provider(self) -> ImageProvider:
        pass

    def needs_scientific_name(self, query: "ImageQuery") -> bool:
        """Whether fetch() relies on query.scientific_name."""
        return False

    @abstractmethod
    async def fetch(self, query: ImageQuery) -> Optional[str]:
        """Image URL or None."""
        pass


class GBIFMediaProvider(BaseImageProvider):
    """Still images attached to the GBIF usage key."""

    def __init__(self, gbif: GBIFClient, limit: int = 3, timeout: Optional[float] = None):
        self.gbif = gbif
        self.limit = limit
        self.timeout = timeout

    @property
    def provider(self) -> ImageProvider:
        return ImageProvider.GBIF

    async def fetch(self, query: ImageQuery) -> Optional[str]:
        if query.key is None:
            return None
        result = await self.gbif.get_media(query.key, limit=self.limit, timeout=self.timeout)
        for media in result.unwrap_or([]):
            if str(media.get("type") or "").lower() != "stillimage":
                continue
            identifier = media.get("identifier")
            if is_valid_url(identifier):
                return identifier
        return None


class INaturalistProvider(BaseImageProvider):
    """First taxon photo of the best iNaturalist taxa match."""

    def __init__(self, client: INaturalistClient, photo_limit: int = 5):
        self.client = client
        self.photo_limit = photo_limit

    @property
    def provider(self) -> ImageProvider:
        return ImageProvider.INATURALIST

    def needs_scientific_name(self, query: ImageQuery) -> bool:
        return not query.search_term

    async def fetch(self, query: ImageQuery) -> Optional[str]:
        name = query.search_term or query.scientific_name
        if not name:
            return None
        taxa = (await self.client.search_taxa(name)).unwrap_or([])
        if not taxa or taxa[0].get("id") is None:
            return None

        photos = await self.client.get_taxon_photos(taxa[0]["id"], limit=self.photo_limit)
        for photo in photos.unwrap_or([]):
            url = photo_url(photo)
            if url:
                return url
        return None


class WikipediaProvider(BaseImageProvider):
    """Lead image of the Wikipedia article named after the taxon."""

    def __init__(self, client: WikipediaClient):
        self.client = client

    @property
    def provider(self) -> ImageProvider:
        return ImageProvider.WIKIPEDIA

    def needs_scientific_name(self, query: ImageQuery) -> bool:
        return True

    async def fetch(self, query: ImageQuery) -> Optional[str]:
        if not query.scientific_name:
            return None
        summary = await self.client.get_summary(query.scientific_name)
        return summary_image(summary.unwrap_or({}))


class FlickrProvider(BaseImageProvider):
    """First public feed photo tagged with the name's words, upsized."""

    def __init__(self, client: FlickrFeedClient):
        self.client = client

    @property
    def provider(self) -> ImageProvider:
        return ImageProvider.FLICKR

    def needs_scientific_name(self, query: ImageQuery) -> bool:
        return True

    async def fetch(self, query: ImageQuery) -> Optional[str]:
        if not query.scientific_name:
            return None
        tags = tags_for(query.scientific_name)
        if not tags:
            return None
        items = (await self.client.search_tags(tags)).unwrap_or([])
        if not items:
            return None
        media = items[0].get("media")
        thumbnail = media.get("m") if isinstance(media, dict) else None
        if not is_valid_url(thumbnail):
            return None
        return upgrade_size(thumbnail)


class ImageSourcer:
    """
    Runs the provider cascade for one taxon, or for many taxa with a bounded
    number of cascades in flight.
    """

    def __init__(
        self,
        gbif: GBIFClient,
        providers: List[BaseImageProvider],
        name_lookup_timeout: Optional[float] = None,
        max_concurrency: int = 4,
        events: Optional[EventSink] = None,
    ):
        self.gbif = gbif
        self.providers = providers
        self.name_lookup_timeout = name_lookup_timeout
        self.max_concurrency = max(1, max_concurrency)
        self.events = events or default_sink(__name__)

    async def _scientific_name(self, key: Optional[int]) -> Optional[str]:
        if key is None:
            return None
        detail = await self.gbif.get_species(key, timeout=self.name_lookup_timeout)
        if not detail.ok:
            return None
        return detail.value.scientific_name or None

    async def find_image(
        self,
        key: Optional[int],
        scientific_name: Optional[str] = None,
        search_term: Optional[str] = None,
    ) -> ImageResult:
        """First image found by the cascade, or an empty ImageResult."""
        query = ImageQuery(key=key, scientific_name=scientific_name, search_term=search_term)
        name_looked_up = scientific_name is not None

        for provider in self.providers:
            try:
                if not name_looked_up and provider.needs_scientific_name(query):
                    name_looked_up = True
                    query.scientific_name = await self._scientific_name(key)
                url = await provider.fetch(query)
            except Exception as e:
                self.events.emit(
                    "image_provider_failed", logging.WARNING,
                    provider=provider.provider.value, key=key, error=str(e),
                )
                continue

            if url:
                self.events.emit(
                    "image_found", logging.DEBUG,
                    provider=provider.provider.value, key=key,
                )
                return ImageResult(url=url, provider=provider.provider)

        self.events.emit("image_not_found", logging.DEBUG, key=key)
        return ImageResult()

    async def find_images(
        self,
        keys: Iterable[int],
        names: Optional[Mapping[int, str]] = None,
    ) -> Dict[int, ImageResult]:
        """
        Cascade per distinct key; the map follows first-seen key order.

        `names` supplies known scientific names so the per-key name
        lookup can be skipped.
        """
        names = names or {}
        distinct: List[int] = []
        for key in keys:
            if key is not None and key not in distinct:
                distinct.append(key)
        if not distinct:
            return {}

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(key: int) -> ImageResult:
            async with semaphore:
                return await self.find_image(key, scientific_name=names.get(key))

        results = await asyncio.gather(*(run(key) for key in distinct))
        found = sum(1 for r in results if r.found)
        self.events.emit("images_fetched", keys=len(distinct), found=found)
        return dict(zip(distinct, results))
