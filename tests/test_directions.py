from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from _helpers import BERLIN, HAMBURG
from django.core.exceptions import ImproperlyConfigured

from eco_route.exceptions import (
    ErrorKind,
    InvalidLocationError,
    PermanentRemoteError,
    TransientRemoteError,
)
from eco_route.services.directions import (
    DirectionsClient,
    OpenRouteServiceClient,
    OsrmClient,
    get_directions_client,
)
from eco_route.services.types import Location, RouteResult, TransportMode

GEOMETRY = [[13.405, 52.52], [11.6, 53.1], [9.9937, 53.5511]]


def _ors_route(distance_meters: float = 289123.0) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "LineString", "coordinates": GEOMETRY},
                    "properties": {
                        "summary": {"distance": distance_meters, "duration": 10800.0}
                    },
                }
            ],
        },
    )


def _ors_error(status: int, code: int, message: str = "error") -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Replay:
    """Serves the queued responses in order and records every request."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _ors_client(replay: Replay, sleep: SleepRecorder, **kwargs) -> OpenRouteServiceClient:
    kwargs.setdefault("api_key", "test-key")
    return OpenRouteServiceClient(
        transport=httpx.MockTransport(replay),
        sleep=sleep,
        max_attempts=3,
        backoff_seconds=1.0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_ors_route_is_normalized_to_lat_lon_and_km() -> None:
    replay = Replay(_ors_route())
    sleep = SleepRecorder()

    route = await _ors_client(replay, sleep).fetch_route(
        BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
    )

    assert route.points[0] == (52.52, 13.405)
    assert route.points[-1] == (53.5511, 9.9937)
    assert route.distance_km == pytest.approx(289.123)
    assert route.duration_seconds == 10800.0
    assert sleep.delays == []

    request = replay.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v2/directions/driving-car/geojson"
    assert request.headers["Authorization"] == "test-key"
    body = json.loads(request.content)
    assert body["coordinates"] == [[13.405, 52.52], [9.9937, 53.5511]]
    assert body["radiuses"] == [5000, 5000]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("mode", "profile"),
    [
        (TransportMode.PRIVATE_CAR, "driving-car"),
        (TransportMode.PUBLIC_BUS, "driving-hgv"),
        (TransportMode.TRAIN, "driving-car"),
    ],
)
async def test_mode_selects_upstream_profile(mode: TransportMode, profile: str) -> None:
    replay = Replay(_ors_route())

    await _ors_client(replay, SleepRecorder()).fetch_route(BERLIN, HAMBURG, mode)

    assert replay.requests[0].url.path == f"/v2/directions/{profile}/geojson"


@pytest.mark.asyncio
async def test_rate_limit_is_retried_with_exponential_backoff() -> None:
    replay = Replay(httpx.Response(429), httpx.Response(429), _ors_route())
    sleep = SleepRecorder()

    route = await _ors_client(replay, sleep).fetch_route(BERLIN, HAMBURG, TransportMode.TRAIN)

    assert route.distance_km == pytest.approx(289.123)
    assert len(replay.requests) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_default_retry_policy_comes_from_settings(settings) -> None:
    settings.ROUTE_MAX_ATTEMPTS = 3
    settings.ROUTE_BACKOFF_SECONDS = 1.0
    replay = Replay(httpx.Response(429), httpx.Response(429), _ors_route())
    sleep = SleepRecorder()
    client = OpenRouteServiceClient(
        api_key="test-key", transport=httpx.MockTransport(replay), sleep=sleep
    )

    await client.fetch_route(BERLIN, HAMBURG, TransportMode.PUBLIC_BUS)

    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_rate_limit_is_classified() -> None:
    replay = Replay(httpx.Response(429), httpx.Response(429), httpx.Response(429))
    sleep = SleepRecorder()

    with pytest.raises(TransientRemoteError) as exc_info:
        await _ors_client(replay, sleep).fetch_route(BERLIN, HAMBURG, TransportMode.TRAIN)

    assert exc_info.value.kind is ErrorKind.RATE_LIMITED
    assert len(replay.requests) == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_network_error_then_success() -> None:
    replay = Replay(httpx.ConnectError("connection refused"), _ors_route())
    sleep = SleepRecorder()

    route = await _ors_client(replay, sleep).fetch_route(
        BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
    )

    assert route.distance_km > 0
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_repeated_timeouts_are_classified_as_timeout() -> None:
    replay = Replay(
        httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow"), httpx.ReadTimeout("slow")
    )

    with pytest.raises(TransientRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder()).fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.TIMEOUT
    assert exc_info.value.user_message.startswith("Request timed out")


@pytest.mark.asyncio
async def test_attempt_running_past_timeout_is_aborted_and_retried() -> None:
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls == 1:
            await asyncio.sleep(5)
        return _ors_route()

    sleep = SleepRecorder()
    client = OpenRouteServiceClient(
        api_key="test-key",
        transport=httpx.MockTransport(handler),
        sleep=sleep,
        timeout=0.05,
        max_attempts=3,
        backoff_seconds=1.0,
    )

    route = await client.fetch_route(BERLIN, HAMBURG, TransportMode.PRIVATE_CAR)

    assert route.distance_km > 0
    assert calls == 2
    assert sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_server_errors_are_transient() -> None:
    replay = Replay(httpx.Response(503), httpx.Response(502), httpx.Response(500))

    with pytest.raises(TransientRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder()).fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.NETWORK_ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "kind"),
    [
        (2010, ErrorKind.REMOTE_TOO_REMOTE),
        (2009, ErrorKind.DISTANCE_EXCEEDS_MODE),
        (2004, ErrorKind.DISTANCE_EXCEEDS_MODE),
        (2003, ErrorKind.NO_ROUTE_FOUND),
    ],
)
async def test_permanent_errors_are_not_retried(code: int, kind: ErrorKind) -> None:
    replay = Replay(_ors_error(404, code))
    sleep = SleepRecorder()

    with pytest.raises(PermanentRemoteError) as exc_info:
        await _ors_client(replay, sleep).fetch_route(BERLIN, HAMBURG, TransportMode.PUBLIC_BUS)

    assert exc_info.value.kind is kind
    assert len(replay.requests) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rejected_api_key_is_a_configuration_error() -> None:
    replay = Replay(httpx.Response(403, json={"error": "Access to this API has been disallowed"}))

    with pytest.raises(PermanentRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder()).fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.CONFIGURATION


@pytest.mark.asyncio
async def test_empty_feature_collection_means_no_route() -> None:
    replay = Replay(httpx.Response(200, json={"type": "FeatureCollection", "features": []}))

    with pytest.raises(PermanentRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder()).fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.NO_ROUTE_FOUND
    assert len(replay.requests) == 1


@pytest.mark.asyncio
async def test_unreadable_body_is_malformed_response() -> None:
    replay = Replay(httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(PermanentRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder()).fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request() -> None:
    replay = Replay()

    with pytest.raises(PermanentRemoteError) as exc_info:
        await _ors_client(replay, SleepRecorder(), api_key="").fetch_route(
            BERLIN, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert exc_info.value.kind is ErrorKind.CONFIGURATION
    assert exc_info.value.user_message == "API configuration error"
    assert replay.requests == []


@pytest.mark.asyncio
async def test_invalid_coordinates_are_rejected_locally() -> None:
    replay = Replay()
    nowhere = Location(lat=float("nan"), lon=0.0, display_name="Nowhere")

    with pytest.raises(InvalidLocationError):
        await _ors_client(replay, SleepRecorder()).fetch_route(
            nowhere, HAMBURG, TransportMode.PRIVATE_CAR
        )

    assert replay.requests == []


@pytest.mark.asyncio
async def test_osrm_route_uses_driving_profile_for_every_mode() -> None:
    replay = Replay(
        httpx.Response(
            200,
            json={
                "code": "Ok",
                "routes": [
                    {
                        "geometry": {"type": "LineString", "coordinates": GEOMETRY},
                        "distance": 288000.0,
                        "duration": 10500.0,
                    }
                ],
            },
        )
    )
    client = OsrmClient(
        base_url="http://osrm.test", transport=httpx.MockTransport(replay), sleep=SleepRecorder()
    )

    route = await client.fetch_route(BERLIN, HAMBURG, TransportMode.PUBLIC_BUS)

    assert route.points[0] == (52.52, 13.405)
    assert route.distance_km == pytest.approx(288.0)
    request = replay.requests[0]
    assert request.method == "GET"
    assert request.url.path == "/route/v1/driving/13.405000,52.520000;9.993700,53.551100"
    assert request.url.params["geometries"] == "geojson"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("NoSegment", ErrorKind.REMOTE_TOO_REMOTE),
        ("TooBig", ErrorKind.DISTANCE_EXCEEDS_MODE),
        ("NoRoute", ErrorKind.NO_ROUTE_FOUND),
    ],
)
async def test_osrm_error_codes_are_classified(code: str, kind: ErrorKind) -> None:
    replay = Replay(httpx.Response(400, json={"code": code, "message": "nope"}))
    sleep = SleepRecorder()
    client = OsrmClient(
        base_url="http://osrm.test", transport=httpx.MockTransport(replay), sleep=sleep
    )

    with pytest.raises(PermanentRemoteError) as exc_info:
        await client.fetch_route(BERLIN, HAMBURG, TransportMode.PRIVATE_CAR)

    assert exc_info.value.kind is kind
    assert sleep.delays == []


def test_directions_provider_is_chosen_from_settings(settings) -> None:
    settings.DIRECTIONS_PROVIDER = "osrm"
    assert isinstance(get_directions_client(), OsrmClient)

    settings.DIRECTIONS_PROVIDER = "openrouteservice"
    assert isinstance(get_directions_client(), OpenRouteServiceClient)

    settings.DIRECTIONS_PROVIDER = "carrier-pigeon"
    with pytest.raises(ImproperlyConfigured):
        get_directions_client()


def test_provider_without_request_hooks_cannot_be_built() -> None:
    class HalfDoneClient(DirectionsClient):
        provider_name = "half-done"

        def _parse_response(self, response: httpx.Response) -> RouteResult:
            return RouteResult(points=((0.0, 0.0), (1.0, 1.0)), distance_km=1.0)

    with pytest.raises(TypeError):
        HalfDoneClient(base_url="http://directions.test")
