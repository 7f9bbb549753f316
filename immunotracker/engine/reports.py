"""Facility reports: coverage by age group, defaulters by vaccine, CSV export."""

import csv
import io
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..schedule.definitions import VACCINE_CALENDAR, VaccineDefinition
from ..utils.exceptions import InvalidDateError
from ..utils.helpers import DateLike
from .due_status import (
    age_in_months,
    age_in_weeks,
    due_vaccines,
    next_due_label,
    vaccination_status,
)
from .models import Child, VaccineStatus
from .statistics import assessed_children, percentage

logger = logging.getLogger(__name__)

STATUS_INVALID_DOB = "Invalid Date of Birth"


class AgeGroup(NamedTuple):
    label: str
    min_weeks: int
    max_weeks: int


AGE_GROUPS = (
    AgeGroup("0-12m", 0, 48),
    AgeGroup("12-24m", 48, 96),
    AgeGroup("24-36m", 96, 144),
    AgeGroup("36-48m", 144, 192),
    AgeGroup("48-60m", 192, 240),
)

CSV_FIELDS = [
    "Name",
    "Date of Birth",
    "Sex",
    "Age",
    "Guardian",
    "Contact",
    "Address",
    "Facility",
    "Vaccination Status",
    "Next Due Vaccine",
]


class GroupCoverage(BaseModel):
    label: str
    children: int
    up_to_date: int
    coverage: int


class VaccineDefaulters(BaseModel):
    vaccine: str
    count: int
    percentage: int


def coverage_by_age_group(
    children: Sequence[Child],
    now: DateLike,
    groups: Sequence[AgeGroup] = AGE_GROUPS,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[GroupCoverage]:
    """Coverage rate within each age band, ``min_weeks <= age < max_weeks``."""
    results = []
    for group in groups:
        members = [
            child
            for child in children
            if group.min_weeks <= age_in_weeks(child.dob, now) < group.max_weeks
        ]
        up_to_date = sum(
            1
            for child in members
            if not due_vaccines(child.dob, child.administered_vaccines, now, calendar)
        )
        results.append(
            GroupCoverage(
                label=group.label,
                children=len(members),
                up_to_date=up_to_date,
                coverage=percentage(up_to_date, len(members)),
            )
        )
    return results


def defaulters_by_vaccine(
    children: Sequence[Child],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[VaccineDefaulters]:
    """Overdue counts per vaccine name, largest first.

    Percentages are relative to all children, not only defaulters.
    """
    counts: Counter = Counter()
    for _, pending in assessed_children(children, now, calendar):
        for vaccine in pending:
            if vaccine.status == VaccineStatus.OVERDUE:
                counts[vaccine.name] += 1

    return [
        VaccineDefaulters(vaccine=name, count=count, percentage=percentage(count, len(children)))
        for name, count in counts.most_common()
    ]


def recent_children(children: Sequence[Child], limit: int = 5) -> List[Child]:
    """Most recently registered children first; undated records sort last."""
    return sorted(
        children,
        key=lambda c: c.created_at.timestamp() if c.created_at else float("-inf"),
        reverse=True,
    )[:limit]


def status_labels(child: Child, now: DateLike) -> Tuple[str, str]:
    """Vaccination status and next-due labels; an unassessable birth date gets a marker."""
    try:
        return (
            vaccination_status(child.dob, child.administered_vaccines, now),
            next_due_label(child.dob, child.administered_vaccines, now),
        )
    except InvalidDateError as e:
        logger.warning(f"Cannot assess child {child.id or child.name}: {e.message}")
        return STATUS_INVALID_DOB, ""


def child_export_row(
    child: Child, now: DateLike, facility_names: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    facility = child.facility_name or ""
    if not facility and facility_names and child.facility_id:
        facility = facility_names.get(child.facility_id, "")
    status, next_due = status_labels(child, now)

    return {
        "Name": child.name,
        "Date of Birth": child.dob.isoformat(),
        "Sex": child.sex or "",
        "Age": f"{age_in_months(child.dob, now)} months",
        "Guardian": child.guardian or "",
        "Contact": child.contact or "",
        "Address": child.address or "",
        "Facility": facility,
        "Vaccination Status": status,
        "Next Due Vaccine": next_due,
    }


def export_children_csv(
    children: Sequence[Child],
    now: Optional[DateLike] = None,
    facility_names: Optional[Dict[str, str]] = None,
) -> str:
    """Render children as CSV text with one row per child.

    Args:
        children: Children to export
        now: Reference date for ages and statuses (defaults to today)
        facility_names: Optional facility id to name lookup

    Returns:
        CSV document including a header row
    """
    reference = now if now is not None else datetime.now()
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer, fieldnames=CSV_FIELDS, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n"
    )
    writer.writeheader()
    for child in children:
        writer.writerow(child_export_row(child, reference, facility_names))
    return buffer.getvalue()
