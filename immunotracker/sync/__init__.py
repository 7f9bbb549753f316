"""Background sync: client notifications, the sync coordinator and control channel.

Import the coordinator and control channel from their modules directly; this
package only re-exports the notification types so the network layer can use
them without a circular import.
"""

from .notifications import (
    ACTIVATED,
    SYNC_COMPLETED,
    UPDATE_AVAILABLE,
    ClientBroadcaster,
    ClientMessage,
    MessageLog,
)

__all__ = [
    "ACTIVATED",
    "SYNC_COMPLETED",
    "UPDATE_AVAILABLE",
    "ClientBroadcaster",
    "ClientMessage",
    "MessageLog",
]
