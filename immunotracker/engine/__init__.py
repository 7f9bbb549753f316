"""Due-status engine: per-dose classification and aggregate statistics."""

from .due_status import (
    age_in_months,
    age_in_weeks,
    due_vaccines,
    is_up_to_date,
    next_due_label,
    next_vaccine,
    schedule_overview,
    vaccination_status,
)
from .models import (
    AdministeredRecord,
    Child,
    DashboardSummary,
    Defaulter,
    DueVaccine,
    UpcomingVaccination,
    VaccineStatus,
)
from .statistics import coverage_rate, dashboard_summary, find_defaulters, upcoming_vaccinations

__all__ = [
    "AdministeredRecord",
    "Child",
    "DashboardSummary",
    "Defaulter",
    "DueVaccine",
    "UpcomingVaccination",
    "VaccineStatus",
    "age_in_months",
    "age_in_weeks",
    "coverage_rate",
    "dashboard_summary",
    "due_vaccines",
    "find_defaulters",
    "is_up_to_date",
    "next_due_label",
    "next_vaccine",
    "schedule_overview",
    "upcoming_vaccinations",
    "vaccination_status",
]
