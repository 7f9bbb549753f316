"""Unit tests for immunotracker.session.views module."""

from datetime import date, timedelta
from typing import List, Optional

import pytest

from immunotracker.engine.models import Child
from immunotracker.session.context import Facility, SessionManager, UserIdentity
from immunotracker.session.views import (
    TRANSITIONS,
    AuditModel,
    ChildrenModel,
    DashboardModel,
    FacilityModel,
    ReportsModel,
    View,
    ViewStateMachine,
)
from immunotracker.utils.exceptions import InvalidTransitionError

NOW = date(2025, 6, 2)


class StaticChildren:
    def __init__(self, children: List[Child]):
        self.children = children

    async def list_children(self, facility_id: Optional[str] = None) -> List[Child]:
        return [c for c in self.children if facility_id is None or c.facility_id == facility_id]


class StaticFacilities:
    def __init__(self, facilities: List[Facility]):
        self.facilities = facilities

    async def get_facility_for_user(self, user_id: str) -> Optional[Facility]:
        return next((f for f in self.facilities if f.user_id == user_id), None)

    async def list_facilities(self) -> List[Facility]:
        return list(self.facilities)


@pytest.fixture
def sessions() -> SessionManager:
    children = [
        Child.model_validate(
            {"id": "c1", "name": "Amina", "dob": NOW - timedelta(weeks=70), "facility": "f1"}
        ),
        Child.model_validate({"id": "c2", "name": "Baraka", "dob": NOW, "facility": "f1"}),
    ]
    facilities = [Facility(id="f1", name="Kibera Clinic", user_id="u1")]
    return SessionManager(
        StaticChildren(children), StaticFacilities(facilities), super_admin_emails=["admin@x.org"]
    )


@pytest.fixture
def machine(sessions) -> ViewStateMachine:
    return ViewStateMachine(sessions, today=lambda: NOW)


async def signed_in(machine: ViewStateMachine, email: str = "nurse@x.org") -> ViewStateMachine:
    await machine.sessions.sign_in(UserIdentity(uid="u1", email=email))
    await machine.show(View.DASHBOARD)
    return machine


class TestTransitions:
    """Tests for the transition table and session gating."""

    def test_starts_at_login(self, machine):
        assert machine.current == View.LOGIN

    def test_every_view_can_reach_login_or_is_login(self):
        for view, targets in TRANSITIONS.items():
            assert view == View.LOGIN or View.LOGIN in targets

    @pytest.mark.asyncio
    async def test_register_is_public(self, machine):
        state = await machine.show(View.REGISTER)

        assert state.view == View.REGISTER
        assert state.model is None

    @pytest.mark.asyncio
    async def test_protected_view_needs_session(self, machine):
        with pytest.raises(InvalidTransitionError):
            await machine.show(View.DASHBOARD)
        assert machine.current == View.LOGIN

    @pytest.mark.asyncio
    async def test_disallowed_transition(self, machine):
        assert machine.can_show(View.REPORTS) is False
        with pytest.raises(InvalidTransitionError):
            await machine.show(View.REPORTS)

    @pytest.mark.asyncio
    async def test_form_returns_to_its_list(self, machine):
        await signed_in(machine)
        await machine.show(View.CHILDREN)
        await machine.show(View.CHILD_FORM)

        assert machine.can_show(View.REPORTS) is False
        state = await machine.show(View.CHILDREN)
        assert state.view == View.CHILDREN

    @pytest.mark.asyncio
    async def test_login_signs_out(self, machine):
        await signed_in(machine)

        state = await machine.show(View.LOGIN)

        assert state.view == View.LOGIN
        assert machine.sessions.session is None

    @pytest.mark.asyncio
    async def test_accepts_view_names(self, machine):
        state = await machine.show("register")
        assert state.view == View.REGISTER

    @pytest.mark.asyncio
    async def test_unknown_view_name(self, machine):
        with pytest.raises(InvalidTransitionError):
            await machine.show("settings")
        assert machine.current == View.LOGIN


class TestRefresh:
    """Tests for the data refreshed on entering a view."""

    @pytest.mark.asyncio
    async def test_dashboard(self, machine):
        await signed_in(machine)
        model = machine.state.model

        assert isinstance(model, DashboardModel)
        assert model.summary.total_children == 2
        assert [d.child.id for d in model.defaulters] == ["c1"]
        assert model.total_facilities is None

    @pytest.mark.asyncio
    async def test_super_admin_dashboard_counts_facilities(self, machine):
        await signed_in(machine, email="admin@x.org")
        assert machine.state.model.total_facilities == 1

    @pytest.mark.asyncio
    async def test_children_rows(self, machine):
        await signed_in(machine)

        state = await machine.show(View.CHILDREN, status="overdue")

        assert isinstance(state.model, ChildrenModel)
        [row] = state.model.rows
        assert row.child.id == "c1"
        assert row.age_months == 17
        assert row.status == "Overdue"
        assert state.model.status == "overdue"

    @pytest.mark.asyncio
    async def test_refresh_reapplies_filters(self, machine):
        await signed_in(machine)
        await machine.show(View.CHILDREN)

        state = await machine.refresh(search="baraka")

        assert [row.child.id for row in state.model.rows] == ["c2"]

    @pytest.mark.asyncio
    async def test_facility(self, machine):
        await signed_in(machine)

        state = await machine.show(View.FACILITY)

        assert isinstance(state.model, FacilityModel)
        assert state.model.facility.name == "Kibera Clinic"
        assert state.model.children_per_facility == {"f1": 2}

    @pytest.mark.asyncio
    async def test_reports_and_audit(self, machine):
        await signed_in(machine)

        reports = await machine.show(View.REPORTS)
        audit = await machine.show(View.AUDIT, action_type="create")

        assert isinstance(reports.model, ReportsModel)
        assert isinstance(audit.model, AuditModel)
        assert audit.model.logs == []


class TestFutureBirthDate:
    """A child registered with a birth date after today must not break the views."""

    @pytest.fixture
    def machine(self) -> ViewStateMachine:
        children = [
            Child.model_validate(
                {"id": "c1", "name": "Amina", "dob": NOW - timedelta(weeks=70), "facility": "f1"}
            ),
            Child.model_validate(
                {"id": "c2", "name": "Typo", "dob": NOW + timedelta(days=365), "facility": "f1"}
            ),
        ]
        sessions = SessionManager(
            StaticChildren(children),
            StaticFacilities([Facility(id="f1", name="Kibera Clinic", user_id="u1")]),
        )
        return ViewStateMachine(sessions, today=lambda: NOW)

    @pytest.mark.asyncio
    async def test_dashboard_skips_child(self, machine):
        await signed_in(machine)
        summary = machine.state.model.summary

        assert summary.total_children == 2
        assert summary.defaulters == 1
        assert summary.coverage_rate == 0

    @pytest.mark.asyncio
    async def test_children_row_is_marked(self, machine):
        await signed_in(machine)

        state = await machine.show(View.CHILDREN)

        rows = {row.child.id: row for row in state.model.rows}
        assert rows["c2"].status == "Invalid Date of Birth"
        assert rows["c2"].next_due == ""
        assert rows["c1"].status == "Overdue"

    @pytest.mark.asyncio
    async def test_status_filter_leaves_child_out(self, machine):
        await signed_in(machine)

        state = await machine.show(View.CHILDREN, status="up-to-date")

        assert state.model.rows == []

    @pytest.mark.asyncio
    async def test_reports(self, machine):
        await signed_in(machine)

        state = await machine.show(View.REPORTS)

        assert isinstance(state.model, ReportsModel)
        assert sum(g.children for g in state.model.coverage_by_age_group) == 1
