"""Unit tests for the chill-unit scoring."""

from __future__ import annotations

import pytest

from models.records import ParsedRecord
from services.chill_units import ChillUnitAccumulator, chill_units
from services.export import build_export_rows


@pytest.mark.parametrize(
    ("temperature", "expected"),
    [
        (None, 0.0),
        (-40.0, 0.0),
        (1.110, 0.0),
        (1.111, 0.5),
        (2.221, 0.5),
        (2.222, 1.0),
        (5.0, 1.0),
        (8.888, 1.0),
        (8.889, 0.5),
        (12.221, 0.5),
        (12.222, 0.0),
        (15.555, 0.0),
        (15.556, -0.5),
        (18.332, -0.5),
        (18.333, -1.0),
        (45.0, -1.0),
    ],
)
def test_chill_units_bands(temperature, expected) -> None:
    assert chill_units(temperature) == expected


def test_cumulative_is_running_sum() -> None:
    temperatures = [5.0, 1.5, 20.0, 10.0, None, 16.0]
    records = [
        ParsedRecord(f"t{i}", temperature, 50.0) for i, temperature in enumerate(temperatures)
    ]

    rows = build_export_rows(records)

    previous = 0.0
    for row, temperature in zip(rows, temperatures):
        assert row.chill_units == chill_units(temperature)
        assert row.cumulative_chill_units == previous + row.chill_units
        previous = row.cumulative_chill_units
    assert [row.cumulative_chill_units for row in rows] == [1.0, 1.5, 0.5, 1.0, 1.0, 0.5]


def test_accumulator_add() -> None:
    accumulator = ChillUnitAccumulator()

    assert accumulator.add(5.0) == (1.0, 1.0)
    assert accumulator.add(19.0) == (-1.0, 0.0)
    assert accumulator.total == 0.0


def test_cumulative_of_nothing_is_empty() -> None:
    assert build_export_rows([]) == []
