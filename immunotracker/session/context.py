"""Signed-in application state and the repositories that populate it."""

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional, Protocol, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..engine.due_status import due_vaccines
from ..engine.models import Child, VaccineStatus
from ..store.database import OfflineStore
from ..store.models import ByIndex, RecordType
from ..utils.exceptions import InvalidDateError, InvalidInputError, SessionError
from ..utils.helpers import DateLike, to_date

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("up-to-date", "due", "overdue")


class UserIdentity(BaseModel):
    """Authenticated user as reported by the identity provider."""

    uid: str
    email: str = ""
    display_name: Optional[str] = None


class Facility(BaseModel):
    """Health facility a user administers."""

    id: str
    name: str = ""
    user_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    region: Optional[str] = None
    district: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class AuditLogEntry(BaseModel):
    """One recorded user action."""

    id: Optional[str] = None
    action_type: str = Field(default="", validation_alias=AliasChoices("actionType", "action_type"))
    description: str = ""
    timestamp: Optional[datetime] = None
    facility_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("facilityId", "facility_id")
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ChildRepository(Protocol):
    async def list_children(self, facility_id: Optional[str] = None) -> List[Child]:
        ...


class FacilityRepository(Protocol):
    async def get_facility_for_user(self, user_id: str) -> Optional[Facility]:
        ...

    async def list_facilities(self) -> List[Facility]:
        ...


class AuditLogRepository(Protocol):
    async def list_audit_logs(self, facility_id: Optional[str] = None) -> List[AuditLogEntry]:
        ...


class AppSession:
    """Everything loaded for one signed-in user.

    Created by :meth:`SessionManager.sign_in` and discarded on sign-out; nothing
    here outlives the session.
    """

    def __init__(
        self,
        user: UserIdentity,
        is_super_admin: bool = False,
        facility: Optional[Facility] = None,
        children: Optional[List[Child]] = None,
        facilities: Optional[List[Facility]] = None,
        audit_logs: Optional[List[AuditLogEntry]] = None,
    ):
        self.user = user
        self.is_super_admin = is_super_admin
        self.facility = facility
        self.children: List[Child] = children or []
        self.facilities: List[Facility] = facilities or []
        self.audit_logs: List[AuditLogEntry] = audit_logs or []
        self.signed_in_at = datetime.now()

    @property
    def facility_names(self) -> dict:
        names = {f.id: f.name for f in self.facilities}
        if self.facility is not None:
            names[self.facility.id] = self.facility.name
        return names

    def filter_children(
        self, now: DateLike, search: str = "", status: str = ""
    ) -> List[Child]:
        """Children matching a name or guardian search and a status filter.

        Args:
            now: Reference date for status filtering
            search: Case-insensitive substring of the child's or guardian's name
            status: One of ``up-to-date``, ``due``, ``overdue`` or empty for all

        Raises:
            InvalidInputError: If the status filter is not recognised
        """
        if status and status not in STATUS_FILTERS:
            raise InvalidInputError(f"Unknown status filter: {status}")

        term = search.strip().lower()
        matches = []
        for child in self.children:
            guardian = (child.guardian or "").lower()
            if term and term not in child.name.lower() and term not in guardian:
                continue
            if status:
                try:
                    pending = due_vaccines(child.dob, child.administered_vaccines, now)
                except InvalidDateError:
                    continue
                if status == "up-to-date" and pending:
                    continue
                if status == "due" and not any(v.status == VaccineStatus.DUE for v in pending):
                    continue
                if status == "overdue" and not any(
                    v.status == VaccineStatus.OVERDUE for v in pending
                ):
                    continue
            matches.append(child)
        return matches

    def filter_audit_logs(
        self, action_type: str = "", on_date: Optional[DateLike] = None
    ) -> List[AuditLogEntry]:
        """Audit entries matching an action type and calendar day."""
        day: Optional[date] = to_date(on_date) if on_date else None
        logs = self.audit_logs
        if action_type:
            logs = [log for log in logs if log.action_type == action_type]
        if day is not None:
            logs = [log for log in logs if log.timestamp and log.timestamp.date() == day]
        return logs


class SessionManager:
    """Creates and tears down the application session."""

    def __init__(
        self,
        children: ChildRepository,
        facilities: FacilityRepository,
        audit_logs: Optional[AuditLogRepository] = None,
        super_admin_emails: Iterable[str] = (),
    ):
        self.children = children
        self.facilities = facilities
        self.audit_logs = audit_logs
        self.super_admin_emails = {email.lower() for email in super_admin_emails}
        self._session: Optional[AppSession] = None

    @property
    def session(self) -> Optional[AppSession]:
        return self._session

    def require_session(self) -> AppSession:
        if self._session is None:
            raise SessionError("No user is signed in")
        return self._session

    async def sign_in(self, user: UserIdentity) -> AppSession:
        """Load the user's facility (or every facility for a super admin) and its data."""
        if self._session is not None:
            await self.sign_out()

        session = AppSession(user, is_super_admin=user.email.lower() in self.super_admin_emails)
        await self._load(session)
        self._session = session
        logger.info(
            f"Signed in {user.email or user.uid} "
            f"({'super admin' if session.is_super_admin else 'facility user'}, "
            f"{len(session.children)} children)"
        )
        return session

    async def _load(self, session: AppSession) -> None:
        if session.is_super_admin:
            session.facilities = await self.facilities.list_facilities()
            session.children = await self.children.list_children()
            if self.audit_logs is not None:
                session.audit_logs = await self.audit_logs.list_audit_logs()
            return

        session.facility = await self.facilities.get_facility_for_user(session.user.uid)
        if session.facility is None:
            logger.warning(f"No facility registered for user {session.user.uid}")
            return
        session.children = await self.children.list_children(session.facility.id)
        if self.audit_logs is not None:
            session.audit_logs = await self.audit_logs.list_audit_logs(session.facility.id)

    async def reload(self) -> AppSession:
        """Re-read the signed-in user's data from the repositories."""
        session = self.require_session()
        await self._load(session)
        return session

    async def sign_out(self) -> None:
        if self._session is not None:
            logger.info(f"Signed out {self._session.user.email or self._session.user.uid}")
        self._session = None


class OfflineChildRepository:
    """Children held in the offline store, filtered by facility index."""

    def __init__(self, store: OfflineStore):
        self.store = store

    async def list_children(self, facility_id: Optional[str] = None) -> List[Child]:
        if facility_id is None:
            records = await self.store.get(RecordType.CHILDREN)
        else:
            records = await self.store.get(RecordType.CHILDREN, ByIndex("facility", facility_id))
        return [Child.model_validate(record) for record in records]

    async def save_child(self, record: dict, offline: bool = False) -> str:
        """Store a child record; ``offline`` marks it as pending upload."""
        try:
            child = Child.model_validate(record)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid child record: {e}") from e

        # The facility index reads the "facility" key whatever alias the record used
        stored = dict(record)
        if child.facility_id is not None:
            stored["facility"] = child.facility_id
        return await self.store.put(RecordType.CHILDREN, stored, offline=offline)

    async def save_children(self, records: Sequence[Any]) -> int:
        for record in records:
            await self.save_child(record)
        return len(records)
