"""
Shared plumbing for upstream HTTP adapters.

Adapters never raise to the pipeline. Every call returns a FetchResult
that either carries a value or an ErrorKind describing why there is none.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Generic, Hashable, Optional, Tuple, TypeVar

import httpx

from app.core.events import EventSink, default_sink
from app.models.enums import ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """Value-or-error result returned by every adapter call."""
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    status_code: Optional[int] = None
    details: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T, status_code: Optional[int] = 200) -> "FetchResult[T]":
        return cls(value=value, status_code=status_code)

    @classmethod
    def failure(
        cls,
        error: ErrorKind,
        status_code: Optional[int] = None,
        details: Any = None,
    ) -> "FetchResult[T]":
        return cls(error=error, status_code=status_code, details=details)

    def unwrap_or(self, default: T) -> T:
        """Value on success, otherwise the default."""
        if self.ok and self.value is not None:
            return self.value
        return default

    def cast_failure(self) -> "FetchResult[Any]":
        """Same failure, re-typed for a different value type."""
        return FetchResult(error=self.error, status_code=self.status_code, details=self.details)


def safe_json(response: httpx.Response) -> Any:
    """Decode a response body, returning {} when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return {}


class TTLCache:
    """
    Small LRU store with per-entry expiry.

    Owned by a single client instance; entries expire after `ttl_seconds`
    and the oldest entry is evicted once `max_entries` is reached.
    """

    def __init__(self, ttl_seconds: float, max_entries: int = 512):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (time.monotonic() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class BaseAPIClient:
    """Base class for upstream JSON APIs reached through a shared httpx client."""

    provider_name = "upstream"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout: float = 5.0,
        events: Optional[EventSink] = None,
    ):
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.events = events or default_sink(__name__)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> FetchResult[Any]:
        """GET a JSON document, mapping every failure to an ErrorKind."""
        url = self._url(path)
        try:
            response = await self.http.get(
                url,
                params=params,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException:
            self.events.emit(
                "upstream_timeout", logging.WARNING,
                provider=self.provider_name, url=url,
            )
            return FetchResult.failure(ErrorKind.TIMEOUT)
        except httpx.HTTPError as e:
            self.events.emit(
                "upstream_unavailable", logging.WARNING,
                provider=self.provider_name, url=url, error=str(e),
            )
            return FetchResult.failure(ErrorKind.UPSTREAM_UNAVAILABLE, details=str(e))

        if response.status_code == 404:
            return FetchResult.failure(ErrorKind.NOT_FOUND, status_code=404)

        if not response.is_success:
            self.events.emit(
                "upstream_error_status", logging.WARNING,
                provider=self.provider_name, url=url, status=response.status_code,
            )
            return FetchResult.failure(
                ErrorKind.UPSTREAM_UNAVAILABLE,
                status_code=response.status_code,
                details=safe_json(response),
            )

        try:
            data = response.json()
        except ValueError:
            self.events.emit(
                "upstream_invalid_json", logging.WARNING,
                provider=self.provider_name, url=url,
            )
            return FetchResult.failure(
                ErrorKind.UPSTREAM_UNAVAILABLE,
                status_code=response.status_code,
                details="invalid JSON body",
            )

        return FetchResult.success(data, status_code=response.status_code)
