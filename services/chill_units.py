"""Chill-unit scoring for temperature readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

# (exclusive upper bound in °C, score), evaluated top to bottom.
CHILL_UNIT_BANDS: Tuple[Tuple[float, float], ...] = (
    (1.111, 0.0),
    (2.222, 0.5),
    (8.889, 1.0),
    (12.222, 0.5),
    (15.556, 0.0),
    (18.333, -0.5),
)
ABOVE_BANDS_SCORE = -1.0


def chill_units(temperature_celsius: Optional[float]) -> float:
    """Score one reading; a missing temperature scores 0."""
    if temperature_celsius is None:
        return 0.0
    for upper_bound, score in CHILL_UNIT_BANDS:
        if temperature_celsius < upper_bound:
            return score
    return ABOVE_BANDS_SCORE


@dataclass
class ChillUnitAccumulator:
    """Running chill-unit total over readings in arrival order."""

    total: float = 0.0

    def add(self, temperature_celsius: Optional[float]) -> Tuple[float, float]:
        units = chill_units(temperature_celsius)
        self.total += units
        return units, self.total
