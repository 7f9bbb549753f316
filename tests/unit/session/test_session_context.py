"""Unit tests for immunotracker.session.context module."""

from datetime import date, datetime, timedelta
from typing import List, Optional

import pytest

from immunotracker.engine.models import Child
from immunotracker.session.context import (
    AppSession,
    AuditLogEntry,
    Facility,
    OfflineChildRepository,
    SessionManager,
    UserIdentity,
)
from immunotracker.utils.exceptions import InvalidInputError, SessionError

NOW = date(2025, 6, 2)
BIRTH_DOSES = [{"vaccineId": v, "administered": True} for v in ("bcg", "opv0", "hepb0")]


def make_child(child_id: str, weeks_old: int, facility: str = "f1", **extra) -> Child:
    return Child.model_validate(
        {"id": child_id, "dob": NOW - timedelta(weeks=weeks_old), "facility": facility, **extra}
    )


class FakeChildren:
    def __init__(self, children: List[Child]):
        self.children = children
        self.calls: List[Optional[str]] = []

    async def list_children(self, facility_id: Optional[str] = None) -> List[Child]:
        self.calls.append(facility_id)
        if facility_id is None:
            return list(self.children)
        return [c for c in self.children if c.facility_id == facility_id]


class FakeFacilities:
    def __init__(self, facilities: List[Facility]):
        self.facilities = facilities

    async def get_facility_for_user(self, user_id: str) -> Optional[Facility]:
        return next((f for f in self.facilities if f.user_id == user_id), None)

    async def list_facilities(self) -> List[Facility]:
        return list(self.facilities)


class FakeAuditLogs:
    def __init__(self, logs: List[AuditLogEntry]):
        self.logs = logs

    async def list_audit_logs(self, facility_id: Optional[str] = None) -> List[AuditLogEntry]:
        return [log for log in self.logs if facility_id is None or log.facility_id == facility_id]


@pytest.fixture
def facilities() -> List[Facility]:
    return [
        Facility.model_validate({"id": "f1", "name": "Kibera Clinic", "userId": "u1"}),
        Facility.model_validate({"id": "f2", "name": "Mathare Clinic", "userId": "u2"}),
    ]


@pytest.fixture
def children() -> List[Child]:
    return [
        make_child("c1", 0, name="Amina", guardian="Fatuma"),
        make_child("c2", 70, name="Baraka", guardian="Joseph"),
        make_child("c3", 3, name="Chebet", guardian="Amina Wanjiru", vaccines=BIRTH_DOSES),
        make_child("c4", 70, facility="f2", name="Dalmas"),
    ]


@pytest.fixture
def manager(children, facilities) -> SessionManager:
    logs = [
        AuditLogEntry.model_validate(
            {"id": "a1", "actionType": "create", "facilityId": "f1",
             "timestamp": "2025-06-01T09:00:00"}
        ),
        AuditLogEntry.model_validate(
            {"id": "a2", "actionType": "update", "facilityId": "f1",
             "timestamp": "2025-06-02T10:00:00"}
        ),
        AuditLogEntry.model_validate(
            {"id": "a3", "actionType": "create", "facilityId": "f2",
             "timestamp": "2025-06-02T11:00:00"}
        ),
    ]
    return SessionManager(
        FakeChildren(children),
        FakeFacilities(facilities),
        audit_logs=FakeAuditLogs(logs),
        super_admin_emails=["Admin@Health.go.ke"],
    )


class TestSessionManager:
    """Tests for sign-in, reload and sign-out."""

    @pytest.mark.asyncio
    async def test_facility_user_sees_own_facility(self, manager):
        session = await manager.sign_in(UserIdentity(uid="u1", email="nurse@clinic.org"))

        assert session.is_super_admin is False
        assert session.facility.name == "Kibera Clinic"
        assert {c.id for c in session.children} == {"c1", "c2", "c3"}
        assert [log.id for log in session.audit_logs] == ["a1", "a2"]

    @pytest.mark.asyncio
    async def test_super_admin_sees_everything(self, manager):
        session = await manager.sign_in(UserIdentity(uid="root", email="admin@health.go.ke"))

        assert session.is_super_admin is True
        assert session.facility is None
        assert len(session.children) == 4
        assert len(session.facilities) == 2
        assert session.facility_names == {"f1": "Kibera Clinic", "f2": "Mathare Clinic"}

    @pytest.mark.asyncio
    async def test_user_without_facility(self, manager):
        session = await manager.sign_in(UserIdentity(uid="stranger"))

        assert session.facility is None
        assert session.children == []

    @pytest.mark.asyncio
    async def test_sign_out_discards_session(self, manager):
        await manager.sign_in(UserIdentity(uid="u1"))
        await manager.sign_out()

        assert manager.session is None
        with pytest.raises(SessionError):
            manager.require_session()

    @pytest.mark.asyncio
    async def test_second_sign_in_replaces_session(self, manager):
        first = await manager.sign_in(UserIdentity(uid="u1"))
        second = await manager.sign_in(UserIdentity(uid="u2"))

        assert first is not second
        assert manager.session is second
        assert [c.id for c in second.children] == ["c4"]

    @pytest.mark.asyncio
    async def test_reload_picks_up_new_children(self, manager, children):
        await manager.sign_in(UserIdentity(uid="u1"))
        children.append(make_child("c5", 10))

        session = await manager.reload()

        assert "c5" in {c.id for c in session.children}

    @pytest.mark.asyncio
    async def test_reload_requires_session(self, manager):
        with pytest.raises(SessionError):
            await manager.reload()


class TestFilterChildren:
    """Tests for search and status filtering."""

    @pytest.fixture
    def session(self, children) -> AppSession:
        return AppSession(UserIdentity(uid="u1"), children=children)

    def test_no_filters_returns_all(self, session):
        assert len(session.filter_children(NOW)) == 4

    def test_search_matches_name_or_guardian(self, session):
        matches = session.filter_children(NOW, search="  amina ")
        assert [c.id for c in matches] == ["c1", "c3"]

    @pytest.mark.parametrize(
        "status,expected",
        [("up-to-date", ["c3"]), ("due", ["c1"]), ("overdue", ["c2", "c4"])],
    )
    def test_status_filter(self, session, status, expected):
        assert [c.id for c in session.filter_children(NOW, status=status)] == expected

    def test_search_and_status_combine(self, session):
        assert [c.id for c in session.filter_children(NOW, search="bar", status="overdue")] == [
            "c2"
        ]

    def test_unknown_status_rejected(self, session):
        with pytest.raises(InvalidInputError):
            session.filter_children(NOW, status="late")


class TestFilterAuditLogs:
    @pytest.fixture
    def session(self) -> AppSession:
        logs = [
            AuditLogEntry(id="a1", action_type="create", timestamp=datetime(2025, 6, 1, 9)),
            AuditLogEntry(id="a2", action_type="update", timestamp=datetime(2025, 6, 2, 10)),
            AuditLogEntry(id="a3", action_type="create", timestamp=datetime(2025, 6, 2, 11)),
            AuditLogEntry(id="a4", action_type="create"),
        ]
        return AppSession(UserIdentity(uid="u1"), audit_logs=logs)

    def test_by_action_type(self, session):
        assert [log.id for log in session.filter_audit_logs(action_type="create")] == [
            "a1",
            "a3",
            "a4",
        ]

    def test_by_day(self, session):
        assert [log.id for log in session.filter_audit_logs(on_date="2025-06-02")] == ["a2", "a3"]

    def test_combined(self, session):
        logs = session.filter_audit_logs(action_type="create", on_date=date(2025, 6, 2))
        assert [log.id for log in logs] == ["a3"]


class TestOfflineChildRepository:
    """Tests for children held in the offline store."""

    @pytest.mark.asyncio
    async def test_list_by_facility(self, store):
        repo = OfflineChildRepository(store)
        saved = await repo.save_children(
            [
                {"id": "c1", "name": "Amina", "dob": "2025-01-01", "facility": "f1"},
                {"id": "c2", "name": "Baraka", "dob": "2024-05-01", "facility": "f2"},
            ]
        )

        assert saved == 2
        [child] = await repo.list_children("f1")
        assert child.name == "Amina"
        assert child.dob == date(2025, 1, 1)
        assert len(await repo.list_children()) == 2

    @pytest.mark.asyncio
    async def test_facility_aliases_are_indexed(self, store):
        repo = OfflineChildRepository(store)
        await repo.save_child(
            {"id": "c1", "name": "Amina", "dob": "2025-01-01", "facilityId": "f1"}
        )
        await repo.save_child(
            {"id": "c2", "name": "Baraka", "dob": "2024-05-01", "facility_id": "f1"}
        )
        await repo.save_child({"id": "c3", "name": "Chausiku", "dob": "2024-05-01"})

        found = await repo.list_children("f1")

        assert sorted(child.id for child in found) == ["c1", "c2"]
        assert all(child.facility_id == "f1" for child in found)

    @pytest.mark.asyncio
    async def test_invalid_child_rejected(self, store):
        repo = OfflineChildRepository(store)

        with pytest.raises(InvalidInputError):
            await repo.save_child({"id": "c1", "name": "No birth date"})

        assert await repo.list_children() == []
