"""Data models for child records and derived due-status results."""

from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..schedule.definitions import VaccineDefinition
from ..utils.helpers import to_date


class VaccineStatus(str, Enum):
    """Due-status of a scheduled dose relative to the child's age."""

    UPCOMING = "upcoming"
    DUE = "due"
    OVERDUE = "overdue"


class AdministeredRecord(BaseModel):
    """A dose marked as given (or explicitly not given) for one child.

    Unknown fields, including records that reference a vaccine id missing from
    the calendar, are kept as-is so nothing is lost on a round trip.
    """

    vaccine_id: str = Field(..., validation_alias=AliasChoices("vaccineId", "vaccine_id"))
    administered: bool = False
    administered_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("administeredDate", "administered_date")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    @field_validator("administered_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return to_date(value)


class Child(BaseModel):
    """Child record as consumed by the engine."""

    id: Optional[str] = None
    name: str = ""
    dob: date
    sex: Optional[str] = None
    guardian: Optional[str] = None
    contact: Optional[str] = None
    address: Optional[str] = None
    facility_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("facility", "facilityId", "facility_id")
    )
    facility_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("facilityName", "facility_name")
    )
    administered_vaccines: List[AdministeredRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("administeredVaccines", "vaccines", "administered_vaccines"),
    )
    created_at: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("dob", mode="before")
    @classmethod
    def _parse_dob(cls, value: Any) -> Any:
        return to_date(value)

    @field_validator("administered_vaccines", mode="before")
    @classmethod
    def _default_vaccines(cls, value: Any) -> Any:
        return [] if value is None else value


class DueVaccine(BaseModel):
    """A scheduled dose that has not been given, with its due date and status.

    Derived from "now" on every query; never persisted.
    """

    definition: VaccineDefinition
    due_date: date
    status: VaccineStatus

    model_config = ConfigDict(frozen=True)

    @property
    def vaccine_id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @field_serializer("due_date")
    def serialize_due_date(self, value: date) -> str:
        return value.isoformat()


class Defaulter(BaseModel):
    """A child with at least one overdue dose."""

    child: Child
    overdue: List[DueVaccine]
    days_overdue: int


class UpcomingVaccination(BaseModel):
    """A due dose falling within the look-ahead window."""

    child: Child
    vaccine: DueVaccine
    days_left: int


class DashboardSummary(BaseModel):
    """Headline figures for a facility dashboard."""

    total_children: int = 0
    due_vaccinations: int = 0
    defaulters: int = 0
    coverage_rate: int = 0
