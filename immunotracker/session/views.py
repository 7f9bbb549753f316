"""Finite state machine over the application's named views."""

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..engine.due_status import age_in_months
from ..engine.models import Child, DashboardSummary, Defaulter, UpcomingVaccination
from ..engine.reports import (
    GroupCoverage,
    VaccineDefaulters,
    coverage_by_age_group,
    defaulters_by_vaccine,
    recent_children,
    status_labels,
)
from ..engine.statistics import dashboard_summary, find_defaulters, upcoming_vaccinations
from ..utils.exceptions import InvalidTransitionError
from .context import AppSession, AuditLogEntry, Facility, SessionManager

logger = logging.getLogger(__name__)


class View(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    DASHBOARD = "dashboard"
    CHILDREN = "children"
    CHILD_FORM = "childForm"
    FACILITY = "facility"
    FACILITY_FORM = "facilityForm"
    REPORTS = "reports"
    AUDIT = "audit"


PUBLIC_VIEWS: FrozenSet[View] = frozenset({View.LOGIN, View.REGISTER})
NAVIGATION_VIEWS: FrozenSet[View] = frozenset(
    {View.DASHBOARD, View.CHILDREN, View.FACILITY, View.REPORTS, View.AUDIT}
)

TRANSITIONS: Dict[View, FrozenSet[View]] = {
    View.LOGIN: frozenset({View.REGISTER, View.DASHBOARD}),
    View.REGISTER: frozenset({View.LOGIN, View.DASHBOARD}),
    View.DASHBOARD: NAVIGATION_VIEWS | {View.CHILD_FORM, View.LOGIN},
    View.CHILDREN: NAVIGATION_VIEWS | {View.CHILD_FORM, View.LOGIN},
    View.FACILITY: NAVIGATION_VIEWS | {View.FACILITY_FORM, View.LOGIN},
    View.REPORTS: NAVIGATION_VIEWS | {View.LOGIN},
    View.AUDIT: NAVIGATION_VIEWS | {View.LOGIN},
    View.CHILD_FORM: frozenset({View.CHILDREN, View.DASHBOARD, View.LOGIN}),
    View.FACILITY_FORM: frozenset({View.FACILITY, View.DASHBOARD, View.LOGIN}),
}


class ChildRow(BaseModel):
    child: Child
    age_months: int
    status: str
    next_due: str


class DashboardModel(BaseModel):
    summary: DashboardSummary
    recent_children: List[Child] = Field(default_factory=list)
    upcoming: List[UpcomingVaccination] = Field(default_factory=list)
    defaulters: List[Defaulter] = Field(default_factory=list)
    total_facilities: Optional[int] = None


class ChildrenModel(BaseModel):
    rows: List[ChildRow] = Field(default_factory=list)
    search: str = ""
    status: str = ""


class FacilityModel(BaseModel):
    facility: Optional[Facility] = None
    facilities: List[Facility] = Field(default_factory=list)
    children_per_facility: Dict[str, int] = Field(default_factory=dict)


class ReportsModel(BaseModel):
    coverage_by_age_group: List[GroupCoverage] = Field(default_factory=list)
    defaulters_by_vaccine: List[VaccineDefaulters] = Field(default_factory=list)


class AuditModel(BaseModel):
    logs: List[AuditLogEntry] = Field(default_factory=list)


class ViewState(BaseModel):
    """The view being shown and the data it was refreshed with."""

    view: View
    model: Optional[BaseModel] = None


def refresh_dashboard(session: AppSession, today: date, **_: Any) -> DashboardModel:
    limit = 10 if session.is_super_admin else 5
    return DashboardModel(
        summary=dashboard_summary(session.children, today),
        recent_children=recent_children(session.children, limit),
        upcoming=upcoming_vaccinations(session.children, today)[:5],
        defaulters=find_defaulters(session.children, today),
        total_facilities=len(session.facilities) if session.is_super_admin else None,
    )


def refresh_children(
    session: AppSession, today: date, search: str = "", status: str = "", **_: Any
) -> ChildrenModel:
    rows = []
    for child in session.filter_children(today, search=search, status=status):
        child_status, next_due = status_labels(child, today)
        rows.append(
            ChildRow(
                child=child,
                age_months=age_in_months(child.dob, today),
                status=child_status,
                next_due=next_due,
            )
        )
    return ChildrenModel(rows=rows, search=search, status=status)


def refresh_facility(session: AppSession, today: date, **_: Any) -> FacilityModel:
    counts: Dict[str, int] = {}
    for child in session.children:
        if child.facility_id:
            counts[child.facility_id] = counts.get(child.facility_id, 0) + 1
    return FacilityModel(
        facility=session.facility, facilities=session.facilities, children_per_facility=counts
    )


def refresh_reports(session: AppSession, today: date, **_: Any) -> ReportsModel:
    return ReportsModel(
        coverage_by_age_group=coverage_by_age_group(session.children, today),
        defaulters_by_vaccine=defaulters_by_vaccine(session.children, today),
    )


def refresh_audit(
    session: AppSession, today: date, action_type: str = "", on_date: Any = None, **_: Any
) -> AuditModel:
    return AuditModel(logs=session.filter_audit_logs(action_type=action_type, on_date=on_date))


RefreshAction = Callable[..., BaseModel]

REFRESH_ACTIONS: Dict[View, RefreshAction] = {
    View.DASHBOARD: refresh_dashboard,
    View.CHILDREN: refresh_children,
    View.FACILITY: refresh_facility,
    View.REPORTS: refresh_reports,
    View.AUDIT: refresh_audit,
}


class ViewStateMachine:
    """Tracks the current view and refreshes data on every transition.

    Views other than login and register need a signed-in session. Moving to
    the login view signs the user out.
    """

    def __init__(
        self,
        sessions: SessionManager,
        today: Callable[[], date] = date.today,
        transitions: Optional[Dict[View, FrozenSet[View]]] = None,
    ):
        self.sessions = sessions
        self.today = today
        self.transitions = transitions or TRANSITIONS
        self.state = ViewState(view=View.LOGIN)

    @property
    def current(self) -> View:
        return self.state.view

    def can_show(self, view: View) -> bool:
        return view == self.current or view in self.transitions.get(self.current, frozenset())

    async def show(self, view: View, **filters: Any) -> ViewState:
        """Move to a view and run its refresh action.

        Args:
            view: Target view
            **filters: Passed to the view's refresh action (search, status, ...)

        Raises:
            InvalidTransitionError: If the view is unknown, the transition is not
                in the table, or the view needs a session and nobody is signed in
        """
        try:
            target = View(view)
        except ValueError as e:
            raise InvalidTransitionError(f"Unknown view: {view}") from e
        if not self.can_show(target):
            raise InvalidTransitionError(
                f"Cannot go from {self.current.value} to {target.value}"
            )

        if target == View.LOGIN:
            await self.sessions.sign_out()
        elif target not in PUBLIC_VIEWS and self.sessions.session is None:
            raise InvalidTransitionError(f"{target.value} requires a signed-in user")

        model = None
        action = REFRESH_ACTIONS.get(target)
        if action is not None:
            session = self.sessions.require_session()
            model = action(session, self.today(), **filters)

        logger.debug(f"View {self.current.value} -> {target.value}")
        self.state = ViewState(view=target, model=model)
        return self.state

    async def refresh(self, **filters: Any) -> ViewState:
        """Re-run the current view's refresh action."""
        return await self.show(self.current, **filters)
