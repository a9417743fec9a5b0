from __future__ import annotations

from eco_route.services.emissions import format_emissions
from eco_route.services.types import EmissionsReport


def report_lines(report: EmissionsReport) -> list[str]:
    lines = [
        f"Mode: {report.mode.label} ({report.mode.emission_factor} g CO2/km per passenger)",
        f"  {report.mode.description}",
        f"Trip emissions: {format_emissions(report.trip_co2_kg)} CO2",
        f"Same trip by private car: {format_emissions(report.baseline_car_co2_kg)} CO2",
    ]
    if not report.mode.is_eco_friendly:
        lines.append("No savings: the private car is the baseline.")
        return lines

    equivalents = report.equivalents
    lines += [
        (
            f"Saved: {format_emissions(report.saved_co2_kg)} CO2 "
            f"({report.savings_percent:.1f}% less than driving)"
        ),
        f"Offset equivalent: {report.tree_years_equivalent:.2f} tree-years of absorption",
        (
            f"Also equals {equivalents.smartphone_charges} smartphone charges, "
            f"{equivalents.miles_driven:.1f} miles driven, "
            f"{equivalents.lightbulb_hours} LED bulb hours, "
            f"{equivalents.short_flights:.2f} short flights"
        ),
    ]
    return lines
