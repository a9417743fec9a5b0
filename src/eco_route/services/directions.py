from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from pydantic import ValidationError

from eco_route.exceptions import (
    ErrorKind,
    InvalidLocationError,
    PermanentRemoteError,
    TransientRemoteError,
)
from eco_route.schemas import (
    OrsDirectionsResponse,
    OrsErrorDetail,
    OrsErrorResponse,
    OsrmRouteResponse,
)
from eco_route.services.types import Location, RouteResult, TransportMode

logger = logging.getLogger(__name__)

METERS_PER_KM = 1000.0

Sleep = Callable[[float], Awaitable[None]]


class DirectionsClient(ABC):
    """Fetches a route between two locations with bounded retries.

    Subclasses supply the provider request and response parsing. 429, 5xx,
    transport errors and attempts running over ``timeout`` are retried with
    exponential backoff; everything else is classified and raised at once.
    """

    provider_name = "directions"
    requires_api_key = False

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = settings.ROUTE_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_attempts = max(
            1, settings.ROUTE_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        self.backoff_seconds = (
            settings.ROUTE_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds
        )
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

    def profile_for(self, mode: TransportMode) -> str:
        return mode.profile

    async def fetch_route(
        self, origin: Location, destination: Location, mode: TransportMode
    ) -> RouteResult:
        if self.requires_api_key and not self.api_key:
            logger.error("%s API key is missing", self.provider_name)
            raise PermanentRemoteError(
                f"{self.provider_name} API key is not configured", kind=ErrorKind.CONFIGURATION
            )
        _check_coordinates(origin)
        _check_coordinates(destination)

        profile = self.profile_for(mode)
        delay = self.backoff_seconds
        failure = TransientRemoteError("Routing failed")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                if attempt > 1:
                    logger.warning(
                        "%s; retrying in %.0fms (attempt %d/%d)",
                        failure.detail,
                        delay * 1000,
                        attempt,
                        self.max_attempts,
                    )
                    await self._sleep(delay)
                    delay *= 2

                try:
                    async with asyncio.timeout(self.timeout):
                        response = await self._send(client, origin, destination, profile)
                except (TimeoutError, httpx.TimeoutException):
                    failure = TransientRemoteError(
                        f"{self.provider_name} request timed out", kind=ErrorKind.TIMEOUT
                    )
                    continue
                except httpx.HTTPError as exc:
                    failure = TransientRemoteError(
                        f"{self.provider_name} request failed: {exc}",
                        kind=ErrorKind.NETWORK_ERROR,
                    )
                    continue

                if response.status_code == 429:
                    failure = TransientRemoteError(
                        f"{self.provider_name} rate limit exceeded", kind=ErrorKind.RATE_LIMITED
                    )
                    continue
                if response.status_code >= 500:
                    failure = TransientRemoteError(
                        f"{self.provider_name} answered HTTP {response.status_code}",
                        kind=ErrorKind.NETWORK_ERROR,
                    )
                    continue

                route = self._parse_response(response)
                logger.info(
                    "Route via %s/%s: %.2f km, %d points",
                    self.provider_name,
                    profile,
                    route.distance_km,
                    len(route.points),
                )
                return route

        logger.error("Giving up after %d attempts: %s", self.max_attempts, failure.detail)
        raise failure

    @abstractmethod
    async def _send(
        self,
        client: httpx.AsyncClient,
        origin: Location,
        destination: Location,
        profile: str,
    ) -> httpx.Response:
        raise NotImplementedError

    @abstractmethod
    def _parse_response(self, response: httpx.Response) -> RouteResult:
        raise NotImplementedError


class OpenRouteServiceClient(DirectionsClient):
    provider_name = "openrouteservice"
    requires_api_key = True

    # 2004 is the documented "limits exceeded" code.
    TOO_REMOTE_CODES = frozenset({2010})
    DISTANCE_EXCEEDED_CODES = frozenset({2004, 2009})

    def __init__(self, *, snap_radius_meters: int | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", settings.ORS_BASE_URL)
        kwargs.setdefault("api_key", settings.ORS_API_KEY)
        super().__init__(**kwargs)
        self.snap_radius_meters = (
            settings.ORS_SNAP_RADIUS_METERS if snap_radius_meters is None else snap_radius_meters
        )

    async def _send(
        self,
        client: httpx.AsyncClient,
        origin: Location,
        destination: Location,
        profile: str,
    ) -> httpx.Response:
        return await client.post(
            f"{self.base_url}/v2/directions/{profile}/geojson",
            json={
                "coordinates": [[origin.lon, origin.lat], [destination.lon, destination.lat]],
                "radiuses": [self.snap_radius_meters, self.snap_radius_meters],
            },
            headers={
                "Accept": "application/json, application/geo+json",
                "Authorization": self.api_key,
            },
        )

    def _parse_response(self, response: httpx.Response) -> RouteResult:
        if not response.is_success:
            raise self._classify_error(response)

        try:
            payload = OrsDirectionsResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise PermanentRemoteError(
                "Unreadable directions response", kind=ErrorKind.MALFORMED_RESPONSE
            ) from exc

        if not payload.features:
            raise PermanentRemoteError("No route found")

        feature = payload.features[0]
        return _route_result(
            feature.geometry.coordinates,
            feature.properties.summary.distance,
            feature.properties.summary.duration,
        )

    def _classify_error(self, response: httpx.Response) -> PermanentRemoteError:
        try:
            error = OrsErrorResponse.model_validate_json(response.content).error
        except ValidationError:
            error = OrsErrorDetail(message=response.reason_phrase)
        if isinstance(error, str):
            error = OrsErrorDetail(message=error)

        if error.code in self.TOO_REMOTE_CODES:
            logger.warning("Location too remote for routing: %s", error.message)
            return PermanentRemoteError(error.message, kind=ErrorKind.REMOTE_TOO_REMOTE)
        if error.code in self.DISTANCE_EXCEEDED_CODES:
            logger.warning("Route exceeds maximum distance: %s", error.message)
            return PermanentRemoteError(error.message, kind=ErrorKind.DISTANCE_EXCEEDS_MODE)
        if response.status_code in (401, 403):
            return PermanentRemoteError(
                f"HTTP {response.status_code}: {error.message}", kind=ErrorKind.CONFIGURATION
            )
        return PermanentRemoteError(f"HTTP {response.status_code}: {error.message}")


class OsrmClient(DirectionsClient):
    provider_name = "osrm"

    ERROR_KINDS = {
        "NoSegment": ErrorKind.REMOTE_TOO_REMOTE,
        "TooBig": ErrorKind.DISTANCE_EXCEEDS_MODE,
        "NoRoute": ErrorKind.NO_ROUTE_FOUND,
    }

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", settings.OSRM_BASE_URL)
        super().__init__(**kwargs)

    def profile_for(self, mode: TransportMode) -> str:
        # Public OSRM servers only carry the car graph.
        return "driving"

    async def _send(
        self,
        client: httpx.AsyncClient,
        origin: Location,
        destination: Location,
        profile: str,
    ) -> httpx.Response:
        coordinates = ";".join(
            f"{point.lon:.6f},{point.lat:.6f}" for point in (origin, destination)
        )
        return await client.get(
            f"{self.base_url}/route/v1/{profile}/{coordinates}",
            params={
                "overview": "full",
                "geometries": "geojson",
                "steps": "false",
                "annotations": "false",
            },
        )

    def _parse_response(self, response: httpx.Response) -> RouteResult:
        try:
            payload = OsrmRouteResponse.model_validate_json(response.content)
        except ValidationError as exc:
            if response.is_success:
                raise PermanentRemoteError(
                    "Unreadable directions response", kind=ErrorKind.MALFORMED_RESPONSE
                ) from exc
            raise PermanentRemoteError(f"HTTP {response.status_code}") from exc

        if payload.code != "Ok":
            kind = self.ERROR_KINDS.get(payload.code, ErrorKind.NO_ROUTE_FOUND)
            logger.warning("OSRM refused route (%s): %s", payload.code, payload.message)
            raise PermanentRemoteError(payload.message or payload.code, kind=kind)
        if not payload.routes:
            raise PermanentRemoteError("No route found")

        route = payload.routes[0]
        return _route_result(route.geometry.coordinates, route.distance, route.duration)


def get_directions_client(**kwargs: Any) -> DirectionsClient:
    provider = settings.DIRECTIONS_PROVIDER.lower()
    if provider == "openrouteservice":
        return OpenRouteServiceClient(**kwargs)
    if provider == "osrm":
        return OsrmClient(**kwargs)
    raise ImproperlyConfigured(f"Unknown DIRECTIONS_PROVIDER: {settings.DIRECTIONS_PROVIDER!r}")


def _check_coordinates(location: Location) -> None:
    lat, lon = location.lat, location.lon
    if not (math.isfinite(lat) and math.isfinite(lon) and -90 <= lat <= 90 and -180 <= lon <= 180):
        raise InvalidLocationError(f"Invalid coordinates for {location.display_name!r}")


def _route_result(
    coordinates: Sequence[tuple[float, float]], distance_meters: float, duration_seconds: float
) -> RouteResult:
    # Upstream geometry is (lon, lat).
    points = tuple((lat, lon) for lon, lat in coordinates)
    distance_km = distance_meters / METERS_PER_KM
    if len(points) < 2 or distance_km <= 0:
        raise PermanentRemoteError("Route geometry unavailable")
    return RouteResult(points=points, distance_km=distance_km, duration_seconds=duration_seconds)
