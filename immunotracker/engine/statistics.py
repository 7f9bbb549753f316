"""Aggregate statistics derived from per-child due-status results.

Children whose date of birth lies after ``now`` cannot be assessed. The
aggregates log a warning and leave them out of every count except the
registered total.
"""

import logging
from typing import Iterable, Iterator, List, Sequence, Tuple

from ..schedule.definitions import VACCINE_CALENDAR, VaccineDefinition
from ..utils.exceptions import InvalidDateError
from ..utils.helpers import DateLike, round_half_up, to_date
from .due_status import due_vaccines
from .models import (
    Child,
    DashboardSummary,
    Defaulter,
    DueVaccine,
    UpcomingVaccination,
    VaccineStatus,
)

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_DAYS = 7


def percentage(part: int, total: int) -> int:
    """``part / total`` as a whole percentage rounded half-up; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)


def assessed_children(
    children: Iterable[Child],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> Iterator[Tuple[Child, List[DueVaccine]]]:
    """Each child paired with its outstanding doses, skipping unassessable records."""
    for child in children:
        try:
            pending = due_vaccines(child.dob, child.administered_vaccines, now, calendar)
        except InvalidDateError as e:
            logger.warning(f"Skipping child {child.id or child.name}: {e.message}")
            continue
        yield child, pending


def coverage_rate(
    children: Sequence[Child],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> int:
    """Share of assessed children with no outstanding doses, as a rounded percentage."""
    assessed = 0
    up_to_date = 0
    for _, pending in assessed_children(children, now, calendar):
        assessed += 1
        if not pending:
            up_to_date += 1
    return percentage(up_to_date, assessed)


def find_defaulters(
    children: Iterable[Child],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[Defaulter]:
    """Children with at least one overdue dose, most days overdue first.

    Days overdue are whole days from the earliest overdue due date to ``now``.
    Ties keep input order.
    """
    today = to_date(now)
    defaulters: List[Defaulter] = []

    for child, pending in assessed_children(children, today, calendar):
        overdue = [v for v in pending if v.status == VaccineStatus.OVERDUE]
        if not overdue:
            continue
        earliest = min(v.due_date for v in overdue)
        defaulters.append(
            Defaulter(child=child, overdue=overdue, days_overdue=(today - earliest).days)
        )

    defaulters.sort(key=lambda d: d.days_overdue, reverse=True)
    logger.debug(f"Found {len(defaulters)} defaulters")
    return defaulters


def upcoming_vaccinations(
    children: Iterable[Child],
    now: DateLike,
    days: int = UPCOMING_WINDOW_DAYS,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[UpcomingVaccination]:
    """Due doses whose due date falls on or before ``now + days``, soonest first."""
    today = to_date(now)
    upcoming: List[UpcomingVaccination] = []

    for child, pending in assessed_children(children, today, calendar):
        for vaccine in pending:
            days_left = (vaccine.due_date - today).days
            if vaccine.status == VaccineStatus.DUE and days_left <= days:
                upcoming.append(
                    UpcomingVaccination(child=child, vaccine=vaccine, days_left=days_left)
                )

    upcoming.sort(key=lambda u: u.days_left)
    return upcoming


def dashboard_summary(
    children: Sequence[Child],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> DashboardSummary:
    """Headline counts: children, children with due doses, defaulters, coverage."""
    assessed = 0
    due_count = 0
    defaulter_count = 0
    up_to_date = 0

    for _, pending in assessed_children(children, now, calendar):
        assessed += 1
        if not pending:
            up_to_date += 1
        if any(v.status == VaccineStatus.DUE for v in pending):
            due_count += 1
        if any(v.status == VaccineStatus.OVERDUE for v in pending):
            defaulter_count += 1

    return DashboardSummary(
        total_children=len(children),
        due_vaccinations=due_count,
        defaulters=defaulter_count,
        coverage_rate=percentage(up_to_date, assessed),
    )
