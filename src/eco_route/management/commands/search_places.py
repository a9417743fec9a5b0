from __future__ import annotations

import asyncio
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from eco_route.exceptions import EcoRouteError
from eco_route.services.geocoding import NO_RESULTS_MESSAGE, GeocodingClient


class Command(BaseCommand):
    help = "Look up candidate places for a free-text query using Nominatim."

    def add_arguments(self, parser: Any) -> None:
        parser.add_argument("query", help="Place to search for (at least 3 characters)")

    def handle(self, *_: Any, **options: Any) -> None:
        try:
            locations = asyncio.run(GeocodingClient().search(options["query"]))
        except EcoRouteError as exc:
            raise CommandError(exc.user_message) from exc

        if not locations:
            self.stdout.write(self.style.WARNING(NO_RESULTS_MESSAGE))
            return

        for index, location in enumerate(locations, start=1):
            self.stdout.write(
                f"{index}. {location.short_name} ({location.lat:.5f}, {location.lon:.5f})"
            )
            self.stdout.write(f"   {location.display_name}")
