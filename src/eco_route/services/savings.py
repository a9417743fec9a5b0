from __future__ import annotations

import logging
import math

from eco_route.models import PersistedValue

logger = logging.getLogger(__name__)

TOTAL_SAVED_KEY = "eco-total-saved"


class SavingsStore:
    """Lifetime kg of CO2 saved, kept as one stringified number."""

    def __init__(self, key: str = TOTAL_SAVED_KEY) -> None:
        self.key = key

    def load(self) -> float:
        raw = (
            PersistedValue.objects.filter(key=self.key).values_list("value", flat=True).first()
        )
        if raw is None:
            return 0.0
        try:
            total = float(raw)
        except ValueError:
            logger.warning("Ignoring non-numeric saved total %r", raw)
            return 0.0
        if not math.isfinite(total) or total < 0:
            logger.warning("Ignoring invalid saved total %r", raw)
            return 0.0
        return total

    def save(self, total_kg: float) -> None:
        if not total_kg > 0:
            return
        PersistedValue.objects.update_or_create(key=self.key, defaults={"value": str(total_kg)})
        logger.info("Lifetime savings now %.2f kg", total_kg)
