"""Best-effort delivery of sync events to connected clients."""

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

SYNC_COMPLETED = "SYNC_COMPLETED"
UPDATE_AVAILABLE = "UPDATE_AVAILABLE"
ACTIVATED = "SW_ACTIVATED"


class ClientMessage(BaseModel):
    """Structured message posted to clients."""

    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


ClientCallback = Callable[[ClientMessage], Union[None, Awaitable[None]]]


class ClientBroadcaster:
    """Posts messages to every registered client.

    Delivery is at most once per client and not persisted; a client that
    raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._clients: List[ClientCallback] = []

    def register(self, client: ClientCallback) -> None:
        if client not in self._clients:
            self._clients.append(client)

    def unregister(self, client: ClientCallback) -> None:
        if client in self._clients:
            self._clients.remove(client)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast(
        self, message_type: str, data: Optional[Dict[str, Any]] = None
    ) -> int:
        """Post one message to all clients.

        Returns:
            Number of clients the message was delivered to
        """
        message = ClientMessage(type=message_type, data=data or {})
        delivered = 0

        for client in list(self._clients):
            try:
                result = client(message)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(f"Failed to deliver {message_type} to client")

        logger.debug(f"Broadcast {message_type} to {delivered}/{len(self._clients)} clients")
        return delivered


class MessageLog:
    """Client that keeps every message it receives, newest last."""

    def __init__(self) -> None:
        self.messages: List[ClientMessage] = []

    def __call__(self, message: ClientMessage) -> None:
        self.messages.append(message)

    def of_type(self, message_type: str) -> List[ClientMessage]:
        return [m for m in self.messages if m.type == message_type]


def log_client(message: ClientMessage) -> None:
    """Client that writes messages to the application log."""
    logger.info(f"{message.type}: {message.data}")
