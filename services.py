import math
import re
from datetime import datetime
from typing import Any, List, Mapping, Tuple

import structlog

from database import RecordStore, WriteSerializer
from exceptions import TicketNotFoundError, TicketValidationError
from notifications import NotificationHub
from schemas import StoreSnapshot, Ticket, TicketDraft

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("date", "amount", "type", "category", "description")
TEXT_FIELDS = ("type", "category", "description")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_blank(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, str):
        return not value.strip()
    # amount is the only field allowed to arrive as a number
    return not isinstance(value, (int, float))


def parse_amount(value: Any) -> float:
    if isinstance(value, str):
        value = value.strip()
        # float() would read "1_000" as 1000
        if "_" in value:
            raise TicketValidationError("Invalid amount")
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        raise TicketValidationError("Invalid amount")
    if not math.isfinite(amount) or amount <= 0:
        raise TicketValidationError("Invalid amount")
    return amount


def parse_date(value: str) -> str:
    value = value.strip()
    if not DATE_PATTERN.match(value):
        raise TicketValidationError("Date must be in YYYY-MM-DD format")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise TicketValidationError("Date must be in YYYY-MM-DD format")
    return value


def validate_ticket_fields(
    fields: Mapping[str, Any], max_text_length: int = 200
) -> TicketDraft:
    """
    Check the raw create payload and return the trimmed values.

    Presence of every field is checked first, then the amount, then the
    date and text lengths. Nothing here touches the store.
    """
    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if _is_blank(value):
            raise TicketValidationError("All fields are required")
        if name != "amount" and not isinstance(value, str):
            raise TicketValidationError("All fields are required")

    amount = parse_amount(fields["amount"])
    date = parse_date(fields["date"])

    text = {}
    for name in TEXT_FIELDS:
        value = fields[name].strip()
        if len(value) > max_text_length:
            raise TicketValidationError(
                f"{name.capitalize()} must be less than {max_text_length} characters"
            )
        text[name] = value

    return TicketDraft(date=date, amount=amount, **text)


class TicketService:
    def __init__(
        self,
        store: RecordStore,
        serializer: WriteSerializer,
        hub: NotificationHub,
        max_text_length: int = 200,
    ):
        self.store = store
        self.serializer = serializer
        self.hub = hub
        self.max_text_length = max_text_length

    def list_tickets(self) -> List[Ticket]:
        return self.store.load().tickets

    def get_ticket(self, ticket_id: int) -> Ticket:
        for ticket in self.store.load().tickets:
            if ticket.id == ticket_id:
                return ticket
        raise TicketNotFoundError(ticket_id)

    async def create_ticket(self, fields: Mapping[str, Any]) -> Ticket:
        draft = validate_ticket_fields(fields, self.max_text_length)

        def append(snapshot: StoreSnapshot) -> Tuple[StoreSnapshot, Ticket]:
            ticket = draft.with_id(snapshot.next_id)
            snapshot.tickets.append(ticket)
            snapshot.next_id += 1
            return snapshot, ticket

        ticket = await self.serializer.enqueue(append)
        logger.info("ticket_created", ticket_id=ticket.id, amount=ticket.amount)

        await self.hub.broadcast(ticket)
        return ticket

    async def delete_ticket(self, ticket_id: int) -> Ticket:
        def remove(snapshot: StoreSnapshot) -> Tuple[StoreSnapshot, Ticket]:
            for index, ticket in enumerate(snapshot.tickets):
                if ticket.id == ticket_id:
                    del snapshot.tickets[index]
                    return snapshot, ticket
            # nothing to commit; next_id is left alone
            raise TicketNotFoundError(ticket_id)

        ticket = await self.serializer.enqueue(remove)
        logger.info("ticket_deleted", ticket_id=ticket.id)
        return ticket
