from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from pydantic import ValidationError

from eco_route.management.commands._formatting import report_lines
from eco_route.schemas import CarbonReportRequest, emissions_response
from eco_route.services.emissions import emissions_report
from eco_route.services.types import TransportMode


class Command(BaseCommand):
    help = "Estimate trip CO2 for a known distance, without any network access."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument("--distance-km", type=float, required=True, help="Trip distance")
        parser.add_argument(
            "--mode",
            choices=[mode.value for mode in TransportMode],
            default=TransportMode.PRIVATE_CAR.value,
        )
        parser.add_argument(
            "--compare",
            action="store_true",
            help="Report every transport mode instead of only --mode",
        )
        parser.add_argument(
            "--json", action="store_true", dest="as_json", help="Print the report as JSON"
        )

    def handle(self, *_: Any, **options: Any) -> None:
        try:
            request = CarbonReportRequest(
                distance_km=options["distance_km"], mode=options["mode"]
            )
        except ValidationError as exc:
            raise CommandError("Distance must be between 0 and 50000 km") from exc

        modes = list(TransportMode) if options["compare"] else [TransportMode(request.mode)]
        reports = [emissions_report(request.distance_km, mode) for mode in modes]

        if options["as_json"]:
            payload = [emissions_response(report).model_dump(mode="json") for report in reports]
            self.stdout.write(
                json.dumps(payload if options["compare"] else payload[0], indent=2)
            )
            return

        self.stdout.write(f"Distance: {request.distance_km:.2f} km")
        for report in reports:
            self.stdout.write("")
            for line in report_lines(report):
                self.stdout.write(line)
