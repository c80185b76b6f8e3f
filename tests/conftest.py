"""
Shared fixtures.

Upstream services are faked with httpx.MockTransport: routes are matched on
scheme/host/path plus an optional subset of query parameters, in the order
they were registered. Unmatched requests get a 404.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

from app.clients.gbif import GBIFClient
from app.core.config import Settings
from app.core.events import MemoryEventSink
from app.services.species_service import SpeciesResolutionService
from app.taxonomy.vocabulary import VocabularyLoader

GBIF = "https://api.gbif.org/v1"
INAT = "https://api.inaturalist.org/v1"
WIKI = "https://en.wikipedia.org/api/rest_v1"
FLICKR = "https://www.flickr.com/services/feeds/photos_public.gne"

Reply = Union[dict, list, int, httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def _base(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


@dataclass
class Route:
    url: str
    reply: Reply
    params: Dict[str, Any] = field(default_factory=dict)

    def matches(self, request: httpx.Request) -> bool:
        if _base(request.url) != self.url:
            return False
        return all(request.url.params.get(k) == str(v) for k, v in self.params.items())

    def respond(self, request: httpx.Request) -> httpx.Response:
        reply = self.reply
        if isinstance(reply, Exception):
            raise reply
        if callable(reply) and not isinstance(reply, httpx.Response):
            return reply(request)
        if isinstance(reply, httpx.Response):
            return reply
        if isinstance(reply, int):
            return httpx.Response(reply, json={"message": "upstream error"})
        return httpx.Response(200, json=reply)


class FakeUpstream:
    """Canned responses for every upstream service, with a request log."""

    def __init__(self):
        self.routes: List[Route] = []
        self.requests: List[httpx.Request] = []

    def add(self, url: str, reply: Reply, **params: Any) -> "FakeUpstream":
        self.routes.append(Route(url=url, reply=reply, params=params))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for route in self.routes:
            if route.matches(request):
                return route.respond(request)
        return httpx.Response(404, json={})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def calls(self, url: Optional[str] = None, **params: Any) -> List[httpx.Request]:
        matched = []
        for request in self.requests:
            if url is not None and _base(request.url) != url:
                continue
            if all(request.url.params.get(k) == str(v) for k, v in params.items()):
                matched.append(request)
        return matched

    # GBIF shortcuts
    def gbif_search(self, results: Union[list, int, Exception], **params: Any) -> "FakeUpstream":
        reply = {"results": results} if isinstance(results, list) else results
        return self.add(f"{GBIF}/species/search", reply, **params)

    def gbif_species(self, key: int, reply: Reply) -> "FakeUpstream":
        return self.add(f"{GBIF}/species/{key}", reply)

    def gbif_media(self, key: int, items: Union[list, int]) -> "FakeUpstream":
        reply = {"results": items} if isinstance(items, list) else items
        return self.add(f"{GBIF}/species/{key}/media", reply)


def gbif_record(
    key: int,
    scientific_name: str,
    canonical_name: Optional[str] = None,
    status: str = "ACCEPTED",
    rank: str = "SPECIES",
    vernacular: Optional[List[Dict[str, str]]] = None,
    **ranks: Any,
) -> Dict[str, Any]:
    """GBIF species record; `class_` is accepted for the class rank."""
    record: Dict[str, Any] = {
        "key": key,
        "scientificName": scientific_name,
        "canonicalName": canonical_name or " ".join(scientific_name.split()[:2]),
        "taxonomicStatus": status,
        "rank": rank,
    }
    for name, value in ranks.items():
        record["class" if name == "class_" else name] = value
    if vernacular is not None:
        record["vernacularNames"] = vernacular
    return record


ROBIN = gbif_record(
    2490719,
    "Turdus migratorius Linnaeus, 1766",
    kingdom="Animalia",
    phylum="Chordata",
    class_="Aves",
    order="Passeriformes",
    family="Turdidae",
    genus="Turdus",
    species="Turdus migratorius",
    vernacular=[
        {"vernacularName": "Merle d'Amérique", "language": "fra"},
        {"vernacularName": "American Robin", "language": "eng"},
    ],
)


@pytest.fixture
def upstream():
    """Fresh fake upstream for each test."""
    return FakeUpstream()


@pytest.fixture
def events():
    return MemoryEventSink()


@pytest.fixture
def settings():
    """Settings with caching disabled so request counts are exact."""
    return Settings(search_cache_ttl_seconds=0, max_concurrency=2)


@pytest.fixture
def vocabulary():
    return VocabularyLoader().load()


@pytest.fixture
def gbif(upstream, events):
    return GBIFClient(upstream.client(), GBIF, events=events)


@pytest.fixture
def service(upstream, settings, vocabulary, events):
    return SpeciesResolutionService(
        settings=settings,
        http_client=upstream.client(),
        vocabulary=vocabulary,
        events=events,
    )


@pytest.fixture
def make_record():
    """Factory for GBIF species records."""
    return gbif_record


@pytest.fixture
def robin_record():
    return dict(ROBIN)
