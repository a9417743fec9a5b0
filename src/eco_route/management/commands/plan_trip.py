from __future__ import annotations

import asyncio
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from pydantic import ValidationError

from eco_route.management.commands._formatting import report_lines
from eco_route.schemas import (
    PlanTripRequest,
    TripReportResponse,
    emissions_response,
    place_response,
)
from eco_route.services.geocoding import GeocodingClient, SearchField
from eco_route.services.trip import TripController, TripSnapshot
from eco_route.services.types import EmissionsReport, Location, TransportMode


class Command(BaseCommand):
    help = "Route a trip between two places and compare its CO2 with driving a private car."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument("source", help="Free-text starting point")
        parser.add_argument("destination", help="Free-text destination")
        parser.add_argument(
            "--mode",
            choices=[mode.value for mode in TransportMode],
            default=TransportMode.PRIVATE_CAR.value,
            help="Transport mode for the trip",
        )
        parser.add_argument(
            "--json", action="store_true", dest="as_json", help="Print the report as JSON"
        )

    def handle(self, *_: Any, **options: Any) -> None:
        try:
            request = PlanTripRequest(
                source=options["source"],
                destination=options["destination"],
                mode=options["mode"],
            )
        except ValidationError as exc:
            fields = ", ".join(str(error["loc"][0]) for error in exc.errors())
            raise CommandError(f"Invalid trip request: {fields}") from exc

        snapshot, report = asyncio.run(self._plan(request))
        if snapshot.error_message:
            raise CommandError(snapshot.error_message)
        if report is None or snapshot.source is None or snapshot.destination is None:
            raise CommandError("No route was produced")

        if options["as_json"]:
            payload = TripReportResponse(
                source=place_response(snapshot.source),
                destination=place_response(snapshot.destination),
                route_points=len(snapshot.route_points),
                emissions=emissions_response(report),
                total_saved_kg=snapshot.total_saved_kg,
            )
            self.stdout.write(payload.model_dump_json(indent=2))
            return

        self.stdout.write(
            f"Route: {snapshot.source.short_name} -> {snapshot.destination.short_name} "
            f"({snapshot.distance_km:.2f} km)"
        )
        for line in report_lines(report):
            self.stdout.write(line)
        self.stdout.write(
            self.style.SUCCESS(f"Lifetime savings: {snapshot.total_saved_kg:.1f} kg CO2")
        )

    async def _plan(
        self, request: PlanTripRequest
    ) -> tuple[TripSnapshot, EmissionsReport | None]:
        async with TripController(geocoder=GeocodingClient()) as trip:
            source = await self._locate(trip.search_source, request.source)
            destination = await self._locate(trip.search_destination, request.destination)
            await trip.set_mode(TransportMode(request.mode))
            await trip.select_source(source)
            await trip.select_destination(destination)
            return trip.snapshot(), trip.emissions_report()

    @staticmethod
    async def _locate(field: SearchField, query: str) -> Location:
        outcome = await field.handle_input(query)
        if outcome is None:
            raise CommandError(f"{query}: search was cancelled")
        if outcome.error_kind is not None:
            raise CommandError(f"{query}: {outcome.message}")
        if not outcome.results:
            raise CommandError(f"{query}: no matching place found")
        return outcome.results[0]
