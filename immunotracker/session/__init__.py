"""Application session state and view navigation."""

from .context import (
    AppSession,
    AuditLogEntry,
    Facility,
    OfflineChildRepository,
    SessionManager,
    UserIdentity,
)
from .views import TRANSITIONS, View, ViewState, ViewStateMachine

__all__ = [
    "AppSession",
    "AuditLogEntry",
    "Facility",
    "OfflineChildRepository",
    "SessionManager",
    "TRANSITIONS",
    "UserIdentity",
    "View",
    "ViewState",
    "ViewStateMachine",
]
