from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True, frozen=True)
class Location:
    lat: float
    lon: float
    display_name: str

    @property
    def short_name(self) -> str:
        return self.display_name.split(",")[0].strip()


class TransportMode(Enum):
    PRIVATE_CAR = "car"
    PUBLIC_BUS = "bus"
    TRAIN = "train"

    @property
    def emission_factor(self) -> int:
        """Grams of CO2 per passenger-km (UK GHG conversion factors 2024)."""
        return _EMISSION_FACTORS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def profile(self) -> str:
        # No rail profile upstream; trains are routed on the car network.
        return _PROFILES[self]

    @property
    def is_eco_friendly(self) -> bool:
        return self is not TransportMode.PRIVATE_CAR


_EMISSION_FACTORS = {
    TransportMode.PRIVATE_CAR: 171,
    TransportMode.PUBLIC_BUS: 104,
    TransportMode.TRAIN: 41,
}

_LABELS = {
    TransportMode.PRIVATE_CAR: "Private Car",
    TransportMode.PUBLIC_BUS: "Public Bus",
    TransportMode.TRAIN: "Train/Metro",
}

_DESCRIPTIONS = {
    TransportMode.PRIVATE_CAR: "Personal vehicle - highest emissions per passenger",
    TransportMode.PUBLIC_BUS: "Shared public transport - 39% lower emissions than private car",
    TransportMode.TRAIN: "Electric rail transport - 76% lower emissions than private car",
}

_PROFILES = {
    TransportMode.PRIVATE_CAR: "driving-car",
    TransportMode.PUBLIC_BUS: "driving-hgv",
    TransportMode.TRAIN: "driving-car",
}


@dataclass(slots=True, frozen=True)
class RouteResult:
    points: tuple[tuple[float, float], ...]
    distance_km: float
    duration_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class Equivalents:
    smartphone_charges: int
    miles_driven: float
    lightbulb_hours: int
    short_flights: float
    tree_years: float


@dataclass(slots=True, frozen=True)
class EmissionsReport:
    mode: TransportMode
    distance_km: float
    trip_co2_kg: float
    baseline_car_co2_kg: float
    saved_co2_kg: float
    savings_percent: float
    tree_years_equivalent: float
    equivalents: Equivalents
