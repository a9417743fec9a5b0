from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx
from django.conf import settings
from django.core.cache import cache
from pydantic import TypeAdapter, ValidationError

from eco_route.exceptions import (
    USER_MESSAGES,
    ErrorKind,
    InvalidQueryError,
    RequestSuperseded,
    SearchFailedError,
)
from eco_route.schemas import NominatimPlace
from eco_route.services.request_line import RequestLine
from eco_route.services.types import Location

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No locations found. Try a different search term."
MIN_DEBOUNCE_SECONDS = 0.4
MAX_DEBOUNCE_SECONDS = 0.6

_UNSAFE_CHARACTERS = re.compile(r"[<>]")
_PLACES = TypeAdapter(list[NominatimPlace])


def sanitize_query(text: str) -> str:
    return _UNSAFE_CHARACTERS.sub("", text.strip())


class GeocodingClient:
    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.GEOCODING_BASE_URL.rstrip("/")
        self.timeout = settings.GEOCODING_TIMEOUT_SECONDS
        self.user_agent = settings.GEOCODING_USER_AGENT
        self.limit = settings.GEOCODING_RESULT_LIMIT
        self.min_query_length = settings.SEARCH_MIN_QUERY_LENGTH
        self._transport = transport

    async def search(self, query: str) -> list[Location]:
        query = sanitize_query(query)
        if len(query) < self.min_query_length:
            raise InvalidQueryError(f"Query must have at least {self.min_query_length} characters")

        cache_key = self._cache_key(query)
        cached = await cache.aget(cache_key)
        if cached is not None:
            return [Location(**place) for place in cached]

        params = {
            "q": query,
            "format": "json",
            "limit": self.limit,
            "addressdetails": 1,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    f"{self.base_url}/search",
                    params=params,
                    headers={
                        "Accept": "application/json",
                        "Accept-Language": "en",
                        "User-Agent": self.user_agent,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request for %r failed: %s", query, exc)
            raise SearchFailedError("Geocoding request failed") from exc

        try:
            places = _PLACES.validate_json(response.content)
        except ValidationError as exc:
            logger.warning("Unreadable geocoding response for %r", query)
            raise SearchFailedError("Invalid geocoding response") from exc

        locations = [
            Location(lat=place.lat, lon=place.lon, display_name=place.display_name)
            for place in places[: self.limit]
        ]
        await cache.aset(
            cache_key,
            [
                {"lat": loc.lat, "lon": loc.lon, "display_name": loc.display_name}
                for loc in locations
            ],
            timeout=settings.GEOCODE_CACHE_TTL_SECONDS,
        )
        return locations

    @staticmethod
    def _cache_key(query: str) -> str:
        digest = hashlib.sha256(query.lower().encode()).hexdigest()
        return f"geocode:{digest}"


@dataclass(slots=True)
class SearchOutcome:
    query: str
    results: list[Location] = field(default_factory=list)
    error_kind: ErrorKind | None = None
    message: str | None = None


class SearchField:
    """Debounced place search behind one text input.

    Each call to ``handle_input`` replaces the previous one: its debounce timer and
    any request it already issued are cancelled, and it resolves to ``None``.
    """

    def __init__(
        self,
        name: str,
        client: GeocodingClient | None = None,
        *,
        debounce_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self.client = client or GeocodingClient()
        if debounce_seconds is None:
            debounce_seconds = settings.SEARCH_DEBOUNCE_SECONDS
        self.debounce_seconds = min(
            max(debounce_seconds, MIN_DEBOUNCE_SECONDS), MAX_DEBOUNCE_SECONDS
        )
        self._sleep = sleep or asyncio.sleep
        self._line = RequestLine(f"{name} search")
        self.outcome = SearchOutcome(query="")

    @property
    def is_loading(self) -> bool:
        return self._line.busy

    async def handle_input(self, text: str) -> SearchOutcome | None:
        query = sanitize_query(text)
        if len(query) < self.client.min_query_length:
            self._line.cancel()
            message = USER_MESSAGES[ErrorKind.VALIDATION] if query else None
            self.outcome = SearchOutcome(
                query=query,
                error_kind=ErrorKind.VALIDATION if query else None,
                message=message,
            )
            return self.outcome

        try:
            outcome = await self._line.run(self._debounced_search(query))
        except RequestSuperseded:
            return None
        self.outcome = outcome
        return outcome

    def clear(self) -> None:
        self._line.cancel()
        self.outcome = SearchOutcome(query="")

    def close(self) -> None:
        self._line.cancel()

    async def _debounced_search(self, query: str) -> SearchOutcome:
        await self._sleep(self.debounce_seconds)
        try:
            results = await self.client.search(query)
        except SearchFailedError as exc:
            return SearchOutcome(query=query, error_kind=exc.kind, message=exc.user_message)

        if not results:
            return SearchOutcome(query=query, message=NO_RESULTS_MESSAGE)
        logger.debug("%s search %r: %d candidates", self.name, query, len(results))
        return SearchOutcome(query=query, results=results)
