"""Carbon arithmetic for a trip.

Every function here is total: invalid input (negative, NaN, infinite or
non-numeric) degrades to zero instead of raising. Rounding is half away from
zero on the decimal representation of the float, so ``0.125`` rounds to
``0.13`` at two places.
"""

from __future__ import annotations

import math
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from eco_route.services.types import EmissionsReport, Equivalents, TransportMode

BASELINE_MODE = TransportMode.PRIVATE_CAR
TREE_YEARLY_ABSORPTION_KG = 21.0
SMARTPHONE_CHARGES_PER_KG = 100
KG_PER_MILE_DRIVEN = 0.411
LIGHTBULB_HOURS_PER_KG = 120
KG_PER_SHORT_FLIGHT = 90.0


def _non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _decimal(value: float) -> Decimal:
    try:
        return Decimal(repr(value))
    except InvalidOperation:
        return Decimal(0)


def round_half_up(value: float, places: int) -> float:
    exponent = Decimal(1).scaleb(-places)
    try:
        return float(_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # Beyond decimal precision; the float is already coarser than ``places``.
        return value


def _floor_scaled(value: float, factor: int) -> int:
    return int((_decimal(value) * factor).to_integral_value(rounding=ROUND_FLOOR))


def carbon_for(distance_km: Any, mode: TransportMode) -> float:
    """kg of CO2 for ``distance_km`` travelled in ``mode``, to 2 decimals."""
    distance = _non_negative(distance_km)
    if distance == 0:
        return 0.0
    return round_half_up(distance * mode.emission_factor / 1000, 2)


def savings(distance_km: Any, mode: TransportMode) -> float:
    """kg of CO2 saved versus making the same trip by private car."""
    if mode is BASELINE_MODE:
        return 0.0
    baseline = carbon_for(distance_km, BASELINE_MODE)
    return max(0.0, round_half_up(baseline - carbon_for(distance_km, mode), 2))


def savings_percent(mode: TransportMode) -> float:
    baseline = BASELINE_MODE.emission_factor
    percent = (baseline - mode.emission_factor) / baseline * 100
    return round_half_up(max(0.0, percent), 1)


def tree_years_equivalent(kg_co2: Any) -> float:
    """Years of absorption by one mature tree needed to offset ``kg_co2``."""
    kg = _non_negative(kg_co2)
    if kg <= 0:
        return 0.0
    return round_half_up(kg / TREE_YEARLY_ABSORPTION_KG, 2)


def equivalents(kg_co2: Any) -> Equivalents:
    kg = _non_negative(kg_co2)
    return Equivalents(
        smartphone_charges=_floor_scaled(kg, SMARTPHONE_CHARGES_PER_KG),
        miles_driven=round_half_up(kg / KG_PER_MILE_DRIVEN, 1),
        lightbulb_hours=_floor_scaled(kg, LIGHTBULB_HOURS_PER_KG),
        short_flights=round_half_up(kg / KG_PER_SHORT_FLIGHT, 2),
        tree_years=tree_years_equivalent(kg),
    )


def emissions_report(distance_km: Any, mode: TransportMode) -> EmissionsReport:
    distance = _non_negative(distance_km)
    saved = savings(distance, mode)
    return EmissionsReport(
        mode=mode,
        distance_km=distance,
        trip_co2_kg=carbon_for(distance, mode),
        baseline_car_co2_kg=carbon_for(distance, BASELINE_MODE),
        saved_co2_kg=saved,
        savings_percent=savings_percent(mode),
        tree_years_equivalent=tree_years_equivalent(saved),
        equivalents=equivalents(saved),
    )


def format_emissions(kg_co2: Any) -> str:
    kg = _non_negative(kg_co2)
    if kg < 0.01:
        return "0 g"
    if kg < 1:
        grams = (_decimal(kg) * 1000).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return f"{int(grams)} g"
    return f"{round_half_up(kg, 2):.2f} kg"
