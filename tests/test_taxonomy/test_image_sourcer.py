"""
Tests for the image provider cascade.

Tests cover:
- Provider order and short-circuiting
- Failure isolation (errors, timeouts, exceptions)
- Lazy scientific-name lookup
- Batched lookups over many keys
- The real provider adapters against a fake upstream
"""

import asyncio
from typing import List, Optional

import httpx
import pytest

from app.clients.flickr import FlickrFeedClient
from app.clients.inaturalist import INaturalistClient
from app.clients.wikipedia import WikipediaClient
from app.models.enums import ImageProvider
from app.taxonomy.image_sourcer import (
    BaseImageProvider,
    FlickrProvider,
    GBIFMediaProvider,
    ImageQuery,
    ImageSourcer,
    INaturalistProvider,
    WikipediaProvider,
    is_valid_url,
)

GBIF = "https://api.gbif.org/v1"
INAT = "https://api.inaturalist.org/v1"
WIKI = "https://en.wikipedia.org/api/rest_v1"
FLICKR = "https://www.flickr.com/services/feeds/photos_public.gne"


class StubProvider(BaseImageProvider):
    """Provider returning a fixed answer and counting calls."""

    def __init__(self, kind: ImageProvider, url: Optional[str] = None,
                 error: Optional[Exception] = None, needs_name: bool = False):
        self.kind = kind
        self.url = url
        self.error = error
        self.needs_name = needs_name
        self.queries: List[ImageQuery] = []

    @property
    def provider(self) -> ImageProvider:
        return self.kind

    def needs_scientific_name(self, query: ImageQuery) -> bool:
        return self.needs_name

    async def fetch(self, query: ImageQuery) -> Optional[str]:
        self.queries.append(ImageQuery(query.key, query.scientific_name, query.search_term))
        if self.error is not None:
            raise self.error
        return self.url


class TestImageCascade:
    """Test suite for ImageSourcer with stub providers."""

    def sourcer(self, gbif, events, providers, max_concurrency=4):
        return ImageSourcer(gbif, providers, name_lookup_timeout=1.0,
                            max_concurrency=max_concurrency, events=events)

    # === Ordering ===

    @pytest.mark.asyncio
    async def test_first_success_stops_cascade(self, gbif, events):
        """Providers after the first success are never called."""
        first = StubProvider(ImageProvider.GBIF, url="https://img.example/a.jpg")
        rest = [StubProvider(kind) for kind in
                (ImageProvider.INATURALIST, ImageProvider.WIKIPEDIA, ImageProvider.FLICKR)]

        result = await self.sourcer(gbif, events, [first] + rest).find_image(1)

        assert result.url == "https://img.example/a.jpg"
        assert result.source == "gbif"
        assert len(first.queries) == 1
        assert all(p.queries == [] for p in rest)

    @pytest.mark.asyncio
    async def test_falls_through_to_later_provider(self, gbif, events):
        providers = [
            StubProvider(ImageProvider.GBIF),
            StubProvider(ImageProvider.INATURALIST),
            StubProvider(ImageProvider.WIKIPEDIA, url="https://img.example/w.jpg"),
            StubProvider(ImageProvider.FLICKR, url="https://img.example/f.jpg"),
        ]

        result = await self.sourcer(gbif, events, providers).find_image(1, scientific_name="Pica pica")

        assert result.provider is ImageProvider.WIKIPEDIA
        assert providers[3].queries == []

    @pytest.mark.asyncio
    async def test_provider_exception_isolated(self, gbif, events):
        """A raising provider counts as 'no image' and the cascade continues."""
        providers = [
            StubProvider(ImageProvider.GBIF, error=RuntimeError("boom")),
            StubProvider(ImageProvider.INATURALIST, error=asyncio.TimeoutError()),
            StubProvider(ImageProvider.FLICKR, url="https://img.example/f.jpg"),
        ]

        result = await self.sourcer(gbif, events, providers).find_image(1, scientific_name="Pica pica")

        assert result.source == "flickr"
        assert len(events.find("image_provider_failed")) == 2

    @pytest.mark.asyncio
    async def test_nothing_found(self, gbif, events):
        providers = [StubProvider(ImageProvider.GBIF), StubProvider(ImageProvider.FLICKR)]

        result = await self.sourcer(gbif, events, providers).find_image(1, scientific_name="Pica pica")

        assert result.found is False
        assert result.url is None
        assert result.source is None
        assert "image_not_found" in events.names()

    # === Name Lookup ===

    @pytest.mark.asyncio
    async def test_name_looked_up_once_when_needed(self, gbif, upstream, events, make_record):
        """The scientific name is fetched lazily, once, for providers that need it."""
        upstream.gbif_species(7, make_record(7, "Pica pica (Linnaeus, 1758)"))
        providers = [
            StubProvider(ImageProvider.GBIF),
            StubProvider(ImageProvider.WIKIPEDIA, needs_name=True),
            StubProvider(ImageProvider.FLICKR, needs_name=True),
        ]

        await self.sourcer(gbif, events, providers).find_image(7)

        assert providers[0].queries[0].scientific_name is None
        assert providers[1].queries[0].scientific_name == "Pica pica (Linnaeus, 1758)"
        assert providers[2].queries[0].scientific_name == "Pica pica (Linnaeus, 1758)"
        assert len(upstream.calls(f"{GBIF}/species/7")) == 1

    @pytest.mark.asyncio
    async def test_no_name_lookup_when_first_provider_succeeds(self, gbif, upstream, events):
        providers = [
            StubProvider(ImageProvider.GBIF, url="https://img.example/a.jpg"),
            StubProvider(ImageProvider.WIKIPEDIA, needs_name=True),
        ]

        await self.sourcer(gbif, events, providers).find_image(7)

        assert upstream.requests == []

    # === Batches ===

    @pytest.mark.asyncio
    async def test_find_images_distinct_keys(self, gbif, events):
        """Each distinct key is looked up once; the map keeps first-seen order."""
        stub = StubProvider(ImageProvider.GBIF, url="https://img.example/a.jpg")

        images = await self.sourcer(gbif, events, [stub]).find_images([3, 1, 3, None, 2])

        assert list(images) == [3, 1, 2]
        assert sorted(q.key for q in stub.queries) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_find_images_bounded(self, gbif, events):
        """No more than max_concurrency cascades run at once."""
        in_flight = 0
        peak = 0

        class SlowProvider(StubProvider):
            async def fetch(self, query):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return None

        sourcer = self.sourcer(gbif, events, [SlowProvider(ImageProvider.GBIF)], max_concurrency=2)
        await sourcer.find_images(range(1, 7), names={k: "Pica pica" for k in range(1, 7)})

        assert peak <= 2

    @pytest.mark.asyncio
    async def test_find_images_empty(self, gbif, events):
        assert await self.sourcer(gbif, events, []).find_images([]) == {}


class TestImageProviders:
    """Test suite for the provider adapters."""

    @pytest.fixture
    def http(self, upstream):
        return upstream.client()

    @pytest.mark.asyncio
    async def test_gbif_media_still_image_only(self, gbif, upstream):
        upstream.gbif_media(1, [
            {"type": "Sound", "identifier": "https://audio.example/a.mp3"},
            {"type": "StillImage", "identifier": "not a url"},
            {"type": "StillImage", "identifier": "https://img.example/magpie.jpg"},
        ])

        url = await GBIFMediaProvider(gbif, limit=3).fetch(ImageQuery(key=1))

        assert url == "https://img.example/magpie.jpg"
        assert upstream.calls(f"{GBIF}/species/1/media")[0].url.params["limit"] == "3"

    @pytest.mark.asyncio
    async def test_inaturalist_prefers_search_term(self, http, upstream):
        upstream.add(f"{INAT}/taxa", {"results": [{"id": 8318}]}, q="magpie")
        upstream.add(f"{INAT}/taxa/8318", {"results": [{
            "taxon_photos": [{"photo": {"url": "https://static.example/photos/1/square.jpg"}}],
        }]})
        provider = INaturalistProvider(INaturalistClient(http, INAT))

        query = ImageQuery(key=1, scientific_name="Pica pica", search_term="magpie")
        url = await provider.fetch(query)

        assert url == "https://static.example/photos/1/large.jpg"
        assert provider.needs_scientific_name(query) is False
        assert provider.needs_scientific_name(ImageQuery(key=1)) is True

    @pytest.mark.asyncio
    async def test_wikipedia_thumbnail_then_original(self, http, upstream):
        upstream.add(f"{WIKI}/page/summary/Pica_pica",
                     {"originalimage": {"source": "https://upload.example/full.jpg"}})
        provider = WikipediaProvider(WikipediaClient(http, WIKI))

        assert await provider.fetch(ImageQuery(key=1, scientific_name="Pica pica")) == \
            "https://upload.example/full.jpg"
        assert await provider.fetch(ImageQuery(key=1)) is None

    @pytest.mark.asyncio
    async def test_flickr_upsizes_thumbnail(self, http, upstream):
        upstream.add(FLICKR, {"items": [{"media": {"m": "https://live.example/1_abc_m.jpg"}}]},
                     tags="Pica,pica")
        provider = FlickrProvider(FlickrFeedClient(http, FLICKR))

        url = await provider.fetch(ImageQuery(key=1, scientific_name="Pica pica"))

        assert url == "https://live.example/1_abc_b.jpg"

    @pytest.mark.asyncio
    async def test_all_providers_failing(self, gbif, http, upstream, events):
        """Every service erroring or timing out yields 'no image', not an exception."""
        upstream.add(f"{GBIF}/species/1/media", 500)
        upstream.add(f"{INAT}/taxa", httpx.ReadTimeout("slow"))
        upstream.add(f"{WIKI}/page/summary/Pica_pica", 503)
        upstream.add(FLICKR, httpx.ConnectError("refused"))

        sourcer = ImageSourcer(gbif, [
            GBIFMediaProvider(gbif),
            INaturalistProvider(INaturalistClient(http, INAT)),
            WikipediaProvider(WikipediaClient(http, WIKI)),
            FlickrProvider(FlickrFeedClient(http, FLICKR)),
        ], events=events)

        result = await sourcer.find_image(1, scientific_name="Pica pica")

        assert result.found is False
        assert result.source is None


@pytest.mark.parametrize("value, expected", [
    ("https://img.example/a.jpg", True),
    ("http://img.example/a.jpg", True),
    ("ftp://img.example/a.jpg", False),
    ("https://", False),
    ("", False),
    (None, False),
])
def test_is_valid_url(value, expected):
    assert is_valid_url(value) is expected
