from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from eco_route.services.types import EmissionsReport, Location

ModeName = Literal["car", "bus", "train"]


# Upstream payloads


class OrsSummary(BaseModel):
    # ORS drops zero-valued fields from the summary.
    distance: float = 0.0
    duration: float = 0.0


class OrsProperties(BaseModel):
    summary: OrsSummary = Field(default_factory=OrsSummary)


class LineStringGeometry(BaseModel):
    coordinates: list[tuple[float, float]]


class OrsFeature(BaseModel):
    geometry: LineStringGeometry
    properties: OrsProperties = Field(default_factory=OrsProperties)


class OrsDirectionsResponse(BaseModel):
    features: list[OrsFeature] = Field(default_factory=list)


class OrsErrorDetail(BaseModel):
    code: int | None = None
    message: str = ""


class OrsErrorResponse(BaseModel):
    error: OrsErrorDetail | str


class OsrmRoute(BaseModel):
    geometry: LineStringGeometry
    distance: float = 0.0
    duration: float = 0.0


class OsrmRouteResponse(BaseModel):
    code: str
    message: str = ""
    routes: list[OsrmRoute] = Field(default_factory=list)


class NominatimPlace(BaseModel):
    lat: float
    lon: float
    display_name: str


# Command input and output


class PlanTripRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str = Field(min_length=3, max_length=300)
    destination: str = Field(min_length=3, max_length=300)
    mode: ModeName = "car"


class CarbonReportRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    distance_km: float = Field(ge=0.0, le=50000.0)
    mode: ModeName = "car"


class PlaceResponse(BaseModel):
    name: str
    display_name: str
    latitude: float
    longitude: float


class EquivalentsResponse(BaseModel):
    smartphone_charges: int
    miles_driven: float
    lightbulb_hours: int
    short_flights: float
    tree_years: float


class EmissionsResponse(BaseModel):
    mode: ModeName
    mode_label: str
    distance_km: float
    trip_co2_kg: float
    baseline_car_co2_kg: float
    saved_co2_kg: float
    savings_percent: float
    tree_years_equivalent: float
    equivalents: EquivalentsResponse


class TripReportResponse(BaseModel):
    source: PlaceResponse
    destination: PlaceResponse
    route_points: int
    emissions: EmissionsResponse
    total_saved_kg: float


def place_response(location: Location) -> PlaceResponse:
    return PlaceResponse(
        name=location.short_name,
        display_name=location.display_name,
        latitude=round(location.lat, 6),
        longitude=round(location.lon, 6),
    )


def emissions_response(report: EmissionsReport) -> EmissionsResponse:
    return EmissionsResponse(
        mode=report.mode.value,
        mode_label=report.mode.label,
        distance_km=round(report.distance_km, 3),
        trip_co2_kg=report.trip_co2_kg,
        baseline_car_co2_kg=report.baseline_car_co2_kg,
        saved_co2_kg=report.saved_co2_kg,
        savings_percent=report.savings_percent,
        tree_years_equivalent=report.tree_years_equivalent,
        equivalents=EquivalentsResponse(
            smartphone_charges=report.equivalents.smartphone_charges,
            miles_driven=report.equivalents.miles_driven,
            lightbulb_hours=report.equivalents.lightbulb_hours,
            short_flights=report.equivalents.short_flights,
            tree_years=report.equivalents.tree_years,
        ),
    )
