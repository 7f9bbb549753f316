"""National vaccine calendar: ordered, immutable dose definitions."""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VaccineDefinition(BaseModel):
    """A single scheduled vaccine dose with its on-time age window."""

    id: str = Field(..., description="Unique dose identifier")
    name: str = Field(..., description="Display name")
    dose_label: str = Field(..., description="Human-readable age label, e.g. '6 weeks'")
    due_age_weeks: int = Field(..., ge=0, description="Age in weeks at which the dose falls due")
    window: Tuple[int, int] = Field(..., description="On-time window [start_weeks, end_weeks]")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_window(self) -> "VaccineDefinition":
        start, end = self.window
        if start != self.due_age_weeks:
            raise ValueError(
                f"{self.id}: window start {start} must equal due age {self.due_age_weeks}"
            )
        if end < start:
            raise ValueError(f"{self.id}: window end {end} precedes window start {start}")
        return self

    @property
    def window_end(self) -> int:
        return self.window[1]

    @property
    def display_name(self) -> str:
        """Name with dose label, as shown in next-due summaries."""
        return f"{self.name} ({self.dose_label})"


def _dose(
    vaccine_id: str, name: str, due_age_weeks: int, window_end: int, dose_label: str
) -> VaccineDefinition:
    return VaccineDefinition(
        id=vaccine_id,
        name=name,
        dose_label=dose_label,
        due_age_weeks=due_age_weeks,
        window=(due_age_weeks, window_end),
    )


BASE_CALENDAR: Tuple[VaccineDefinition, ...] = (
    # At birth
    _dose("bcg", "BCG", 0, 1, "At Birth"),
    _dose("opv0", "OPV 0", 0, 1, "At Birth"),
    _dose("hepb0", "Hepatitis B", 0, 1, "At Birth"),
    # 6 weeks
    _dose("opv1", "OPV 1", 6, 8, "6 weeks"),
    _dose("penta1", "Penta 1", 6, 8, "6 weeks"),
    _dose("pcv1", "PCV 1", 6, 8, "6 weeks"),
    _dose("rota1", "Rotavirus 1", 6, 8, "6 weeks"),
    # 10 weeks
    _dose("opv2", "OPV 2", 10, 12, "10 weeks"),
    _dose("penta2", "Penta 2", 10, 12, "10 weeks"),
    _dose("pcv2", "PCV 2", 10, 12, "10 weeks"),
    _dose("rota2", "Rotavirus 2", 10, 12, "10 weeks"),
    # 14 weeks
    _dose("opv3", "OPV 3", 14, 16, "14 weeks"),
    _dose("penta3", "Penta 3", 14, 16, "14 weeks"),
    _dose("pcv3", "PCV 3", 14, 16, "14 weeks"),
    _dose("rota3", "Rotavirus 3", 14, 16, "14 weeks"),
    _dose("ipv1", "IPV 1", 14, 16, "14 weeks"),
    # 6 months
    _dose("malaria1", "Malaria 1", 24, 26, "6 months"),
    _dose("vitamina6", "Vitamin A", 24, 26, "6 months"),
    # 7 months
    _dose("malaria2", "Malaria 2", 28, 30, "7 months"),
    _dose("ipv2", "IPV 2", 28, 30, "7 months"),
    # 9 months
    _dose("malaria3", "Malaria 3", 36, 38, "9 months"),
    _dose("mr1", "Measles Rubella 1", 36, 38, "9 months"),
    # 18 months
    _dose("malaria4", "Malaria 4", 72, 74, "18 months"),
    _dose("mr2", "Measles Rubella 2", 72, 74, "18 months"),
    _dose("mena", "Men A", 72, 74, "18 months"),
    _dose("llin", "LLIN", 72, 74, "18 months"),
)

BOOSTER_START_WEEKS = 48
BOOSTER_END_WEEKS = 240
BOOSTER_INTERVAL_WEEKS = 24
BOOSTER_WINDOW_WEEKS = 8


def generate_booster_series(
    prefix: str,
    name: str,
    start_weeks: int,
    end_weeks: int,
    interval_weeks: int,
    window_weeks: int,
) -> List[VaccineDefinition]:
    """Generate a repeating dose every ``interval_weeks`` from start to end inclusive.

    Each dose is identified as ``<prefix>_<age_weeks>`` and labelled with its
    age in months (four weeks to the month).

    Args:
        prefix: Identifier prefix for the generated doses
        name: Display name shared by every dose
        start_weeks: Age of the first dose in weeks
        end_weeks: Age of the last possible dose in weeks
        interval_weeks: Spacing between doses in weeks
        window_weeks: Width of each dose's on-time window

    Returns:
        Dose definitions in ascending age order

    Raises:
        ValueError: If the interval is not positive
    """
    if interval_weeks <= 0:
        raise ValueError("Booster interval must be positive")

    return [
        _dose(f"{prefix}_{age}", name, age, age + window_weeks, f"{age // 4} months")
        for age in range(start_weeks, end_weeks + 1, interval_weeks)
    ]


def build_calendar(
    base: Tuple[VaccineDefinition, ...], boosters: List[VaccineDefinition]
) -> Tuple[VaccineDefinition, ...]:
    """Merge fixed doses and boosters into one calendar ordered by due age.

    The sort is stable, so insertion order breaks ties between doses due at
    the same age.

    Raises:
        ValueError: If two definitions share an identifier
    """
    combined = list(base) + list(boosters)
    seen = set()
    for definition in combined:
        if definition.id in seen:
            raise ValueError(f"Duplicate vaccine id in calendar: {definition.id}")
        seen.add(definition.id)
    return tuple(sorted(combined, key=lambda d: d.due_age_weeks))


VACCINE_CALENDAR: Tuple[VaccineDefinition, ...] = build_calendar(
    BASE_CALENDAR,
    generate_booster_series(
        "vitamina",
        "Vitamin A",
        BOOSTER_START_WEEKS,
        BOOSTER_END_WEEKS,
        BOOSTER_INTERVAL_WEEKS,
        BOOSTER_WINDOW_WEEKS,
    ),
)

_CALENDAR_INDEX: Dict[str, VaccineDefinition] = {d.id: d for d in VACCINE_CALENDAR}


def get_definition(vaccine_id: str) -> Optional[VaccineDefinition]:
    """Look up a dose definition by id, or None if it is not on the calendar."""
    return _CALENDAR_INDEX.get(vaccine_id)
