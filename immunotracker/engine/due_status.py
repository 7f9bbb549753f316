"""Due-status classification of scheduled doses.

Every function here is pure: the result depends only on the date of birth,
the administered records and the supplied ``now``. Dates are compared as
calendar dates; a datetime ``now`` is truncated to its date.
"""

from collections.abc import Mapping
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Set, Union

from ..schedule.definitions import VACCINE_CALENDAR, VaccineDefinition
from ..utils.exceptions import InvalidDateError
from ..utils.helpers import DateLike, to_date
from .models import AdministeredRecord, DueVaccine, VaccineStatus


AdministeredInput = Iterable[Union[AdministeredRecord, Mapping]]

STATUS_UP_TO_DATE = "Up to Date"
STATUS_OVERDUE = "Overdue"
STATUS_DUE_SOON = "Due Soon"
STATUS_UPCOMING = "Upcoming"
NEXT_DUE_COMPLETE = "Complete"


def age_in_weeks(dob: DateLike, now: DateLike) -> int:
    """Whole weeks elapsed since birth, floored.

    A date of birth after ``now`` gives a negative result.

    Raises:
        InvalidDateError: If either date cannot be parsed
    """
    return (to_date(now) - to_date(dob)).days // 7


def age_in_months(dob: DateLike, now: DateLike) -> int:
    """Calendar months between birth and ``now``; the day of the month is ignored."""
    born, today = to_date(dob), to_date(now)
    return (today.year - born.year) * 12 + (today.month - born.month)


def _given_ids(administered: Optional[AdministeredInput]) -> Set[str]:
    """Ids of doses whose record is marked administered."""
    given: Set[str] = set()
    for record in administered or ():
        if isinstance(record, AdministeredRecord):
            if record.administered is True:
                given.add(record.vaccine_id)
        elif isinstance(record, Mapping):
            vaccine_id = record.get("vaccineId", record.get("vaccine_id"))
            if vaccine_id is not None and record.get("administered") is True:
                given.add(str(vaccine_id))
    return given


def _checked_age(dob: DateLike, now: DateLike) -> int:
    age = age_in_weeks(dob, now)
    if age < 0:
        raise InvalidDateError(f"Date of birth {dob} is after {now}", dob)
    return age


def _classify(
    definition: VaccineDefinition, dob: DateLike, age_weeks: int
) -> DueVaccine:
    if age_weeks < definition.due_age_weeks:
        status = VaccineStatus.UPCOMING
    elif age_weeks > definition.window_end:
        status = VaccineStatus.OVERDUE
    else:
        status = VaccineStatus.DUE
    return DueVaccine(
        definition=definition,
        due_date=to_date(dob) + timedelta(weeks=definition.due_age_weeks),
        status=status,
    )


def due_vaccines(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[DueVaccine]:
    """Doses the child has reached the age for but has not been given.

    Status is ``overdue`` once the age passes the end of the dose window,
    otherwise ``due``. Output keeps calendar order. Records naming a vaccine
    id that is not on the calendar are ignored.

    Args:
        dob: Date of birth
        administered: Administered-vaccine records (models or raw mappings)
        now: Reference date
        calendar: Dose definitions to evaluate

    Returns:
        Due and overdue doses in calendar order

    Raises:
        InvalidDateError: If a date is unparseable or the birth date is after ``now``
    """
    age = _checked_age(dob, now)
    given = _given_ids(administered)

    return [
        _classify(definition, dob, age)
        for definition in calendar
        if age >= definition.due_age_weeks and definition.id not in given
    ]


def schedule_overview(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> List[DueVaccine]:
    """Every dose not yet given, including ones the child is too young for.

    Doses not yet reached are reported as ``upcoming``; the rest are
    classified exactly as in :func:`due_vaccines`.
    """
    age = _checked_age(dob, now)
    given = _given_ids(administered)
    return [
        _classify(definition, dob, age) for definition in calendar if definition.id not in given
    ]


def next_vaccine(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> Optional[DueVaccine]:
    """First ``due`` dose, else the first outstanding dose of any status, else None."""
    pending = due_vaccines(dob, administered, now, calendar)
    for vaccine in pending:
        if vaccine.status == VaccineStatus.DUE:
            return vaccine
    return pending[0] if pending else None


def is_up_to_date(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> bool:
    return not due_vaccines(dob, administered, now, calendar)


def vaccination_status(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> str:
    """Display label summarising a child's outstanding doses."""
    pending = due_vaccines(dob, administered, now, calendar)
    if not pending:
        return STATUS_UP_TO_DATE
    if any(v.status == VaccineStatus.OVERDUE for v in pending):
        return STATUS_OVERDUE
    if any(v.status == VaccineStatus.DUE for v in pending):
        return STATUS_DUE_SOON
    return STATUS_UPCOMING


def next_due_label(
    dob: DateLike,
    administered: Optional[AdministeredInput],
    now: DateLike,
    calendar: Sequence[VaccineDefinition] = VACCINE_CALENDAR,
) -> str:
    """``"<name> (<dose label>)"`` for the next dose, or ``"Complete"``."""
    upcoming = next_vaccine(dob, administered, now, calendar)
    return upcoming.definition.display_name if upcoming else NEXT_DUE_COMPLETE
