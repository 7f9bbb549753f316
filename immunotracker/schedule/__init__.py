"""Vaccine schedule definitions."""

from .definitions import (
    VACCINE_CALENDAR,
    VaccineDefinition,
    build_calendar,
    generate_booster_series,
    get_definition,
)

__all__ = [
    "VACCINE_CALENDAR",
    "VaccineDefinition",
    "build_calendar",
    "generate_booster_series",
    "get_definition",
]
