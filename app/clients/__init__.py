# Upstream service adapters
from app.clients.base import FetchResult, TTLCache, BaseAPIClient
from app.clients.gbif import GBIFClient
from app.clients.inaturalist import INaturalistClient
from app.clients.wikipedia import WikipediaClient
from app.clients.flickr import FlickrFeedClient

__all__ = [
    "FetchResult",
    "TTLCache",
    "BaseAPIClient",
    "GBIFClient",
    "INaturalistClient",
    "WikipediaClient",
    "FlickrFeedClient",
]
