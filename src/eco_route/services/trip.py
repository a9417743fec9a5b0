"""Trip state: which endpoints are chosen, which mode, and where the route is at.

The state is a tagged variant; each variant only carries the fields that make
sense for it, so e.g. a ready route without a destination cannot be built.
The transport mode lives next to the state because every stage has one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import TracebackType
from typing import ClassVar

from asgiref.sync import sync_to_async

from eco_route.exceptions import EcoRouteError, ErrorKind, RequestSuperseded
from eco_route.services import emissions
from eco_route.services.directions import DirectionsClient, get_directions_client
from eco_route.services.geocoding import GeocodingClient, SearchField
from eco_route.services.request_line import RequestLine
from eco_route.services.savings import SavingsStore
from eco_route.services.types import EmissionsReport, Location, RouteResult, TransportMode

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Idle:
    stage: ClassVar[str] = "idle"


@dataclass(slots=True, frozen=True)
class PartiallySet:
    source: Location | None
    destination: Location | None

    stage: ClassVar[str] = "partially_set"

    def __post_init__(self) -> None:
        if (self.source is None) == (self.destination is None):
            raise ValueError("PartiallySet needs exactly one endpoint")


@dataclass(slots=True, frozen=True)
class AwaitingRoute:
    source: Location
    destination: Location

    stage: ClassVar[str] = "awaiting_route"


@dataclass(slots=True, frozen=True)
class RouteLoading:
    source: Location
    destination: Location

    stage: ClassVar[str] = "route_loading"


@dataclass(slots=True, frozen=True)
class RouteReady:
    source: Location
    destination: Location
    route: RouteResult

    stage: ClassVar[str] = "route_ready"


@dataclass(slots=True, frozen=True)
class RouteFailed:
    source: Location
    destination: Location
    error_kind: ErrorKind
    message: str

    stage: ClassVar[str] = "route_failed"


TripState = Idle | PartiallySet | AwaitingRoute | RouteLoading | RouteReady | RouteFailed


@dataclass(slots=True, frozen=True)
class TripSnapshot:
    stage: str
    source: Location | None
    destination: Location | None
    mode: TransportMode
    distance_km: float
    route_points: tuple[tuple[float, float], ...]
    error_kind: ErrorKind | None
    error_message: str | None
    is_loading: bool
    total_saved_kg: float


class TripController:
    """Coordinates place search, route fetching and the lifetime savings counter.

    Only the most recently started route fetch may change the state. The
    counter grows once per trip, from the first distance seen for it; mode
    changes and swaps re-fetch the route but never add to it again. Picking
    a new source or destination starts a new trip.

    Use as ``async with TripController() as trip:`` so the counter is loaded
    on entry and no request outlives the session.
    """

    def __init__(
        self,
        directions: DirectionsClient | None = None,
        geocoder: GeocodingClient | None = None,
        savings_store: SavingsStore | None = None,
    ) -> None:
        self.directions = directions or get_directions_client()
        geocoder = geocoder or GeocodingClient()
        self.search_source = SearchField("source", geocoder)
        self.search_destination = SearchField("destination", geocoder)
        self.savings_store = savings_store or SavingsStore()

        self.state: TripState = Idle()
        self.mode = TransportMode.PRIVATE_CAR
        self.total_saved_kg = 0.0
        self._route_line = RequestLine("route")
        self._trip_counted = False

    async def __aenter__(self) -> TripController:
        await self.load_savings()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    async def load_savings(self) -> float:
        self.total_saved_kg = await sync_to_async(self.savings_store.load)()
        return self.total_saved_kg

    def close(self) -> None:
        self._route_line.cancel()
        self.search_source.close()
        self.search_destination.close()

    @property
    def source(self) -> Location | None:
        return getattr(self.state, "source", None)

    @property
    def destination(self) -> Location | None:
        return getattr(self.state, "destination", None)

    @property
    def route(self) -> RouteResult | None:
        return self.state.route if isinstance(self.state, RouteReady) else None

    async def select_source(self, location: Location) -> None:
        self._trip_counted = False
        await self._settle(location, self.destination)

    async def select_destination(self, location: Location) -> None:
        self._trip_counted = False
        await self._settle(self.source, location)

    async def set_mode(self, mode: TransportMode) -> None:
        if mode is self.mode:
            return
        self.mode = mode
        if self.source is not None and self.destination is not None:
            await self._load_route(self.source, self.destination)

    async def swap(self) -> None:
        if self.source is None or self.destination is None:
            return
        await self._load_route(self.destination, self.source)

    def reset(self) -> None:
        self._route_line.cancel()
        self._trip_counted = False
        self.state = Idle()

    def cancel_route(self) -> None:
        if isinstance(self.state, RouteLoading):
            self._route_line.cancel()
            self.state = AwaitingRoute(self.state.source, self.state.destination)

    async def retry_route(self) -> None:
        if isinstance(self.state, (AwaitingRoute, RouteFailed)):
            await self._load_route(self.state.source, self.state.destination)

    def emissions_report(self) -> EmissionsReport | None:
        route = self.route
        if route is None:
            return None
        return emissions.emissions_report(route.distance_km, self.mode)

    def snapshot(self) -> TripSnapshot:
        route = self.route
        failed = self.state if isinstance(self.state, RouteFailed) else None
        return TripSnapshot(
            stage=self.state.stage,
            source=self.source,
            destination=self.destination,
            mode=self.mode,
            distance_km=route.distance_km if route else 0.0,
            route_points=route.points if route else (),
            error_kind=failed.error_kind if failed else None,
            error_message=failed.message if failed else None,
            is_loading=isinstance(self.state, RouteLoading),
            total_saved_kg=self.total_saved_kg,
        )

    async def _settle(self, source: Location | None, destination: Location | None) -> None:
        if source is not None and destination is not None:
            await self._load_route(source, destination)
            return
        self._route_line.cancel()
        if source is None and destination is None:
            self.state = Idle()
        else:
            self.state = PartiallySet(source, destination)

    async def _load_route(self, source: Location, destination: Location) -> None:
        mode = self.mode
        self.state = RouteLoading(source, destination)
        try:
            route = await self._route_line.run(
                self.directions.fetch_route(source, destination, mode)
            )
        except RequestSuperseded:
            logger.debug("Route %s -> %s superseded", source.short_name, destination.short_name)
            return
        except EcoRouteError as exc:
            logger.warning(
                "Route %s -> %s failed (%s): %s",
                source.short_name,
                destination.short_name,
                exc.kind,
                exc.detail,
            )
            self.state = RouteFailed(source, destination, exc.kind, exc.user_message)
            return

        self.state = RouteReady(source, destination, route)
        await self._count_savings(route, mode)

    async def _count_savings(self, route: RouteResult, mode: TransportMode) -> None:
        if self._trip_counted:
            return
        self._trip_counted = True
        saved = emissions.savings(route.distance_km, mode)
        if saved <= 0:
            return
        self.total_saved_kg = emissions.round_half_up(self.total_saved_kg + saved, 2)
        await sync_to_async(self.savings_store.save)(self.total_saved_kg)
