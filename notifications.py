from typing import Set

import structlog
from starlette.websockets import WebSocket, WebSocketState

from schemas import ConnectionEvent, NewTicketEvent, Ticket

logger = structlog.get_logger(__name__)


def format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def is_ready(observer: WebSocket) -> bool:
    return (
        observer.client_state == WebSocketState.CONNECTED
        and observer.application_state == WebSocketState.CONNECTED
    )


class NotificationHub:
    """
    Registry of connected observers with best-effort fan-out.

    Events are sent once to whoever is connected at broadcast time; there
    is no backlog and no acknowledgement.
    """

    def __init__(self):
        self._observers: Set[WebSocket] = set()

    @property
    def count(self) -> int:
        return len(self._observers)

    def register(self, observer: WebSocket) -> None:
        self._observers.add(observer)
        logger.info("observer_registered", observers=self.count)

    def unregister(self, observer: WebSocket) -> None:
        if observer in self._observers:
            self._observers.discard(observer)
            logger.info("observer_unregistered", observers=self.count)

    async def greet(self, observer: WebSocket) -> None:
        await observer.send_text(ConnectionEvent().model_dump_json())

    async def broadcast(self, ticket: Ticket) -> int:
        event = NewTicketEvent(
            ticket=ticket,
            message=(
                f"New {ticket.type} added: {ticket.description}"
                f" - ${format_amount(ticket.amount)}"
            ),
        )
        payload = event.model_dump_json()
        logger.info("broadcast_new_ticket", ticket_id=ticket.id, observers=self.count)

        delivered = 0
        # copy: failed observers are removed while iterating
        for observer in list(self._observers):
            if not is_ready(observer):
                continue
            try:
                await observer.send_text(payload)
            except Exception as e:
                logger.warning("observer_send_failed", error=str(e))
                self.unregister(observer)
            else:
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        for observer in list(self._observers):
            if is_ready(observer):
                try:
                    await observer.close()
                except Exception as e:
                    logger.warning("observer_close_failed", error=str(e))
        self._observers.clear()
