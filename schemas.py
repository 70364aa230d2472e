from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Literal


class Ticket(BaseModel):
    id: int = Field(gt=0)
    date: str
    amount: float = Field(gt=0)
    type: str
    category: str
    description: str


class TicketDraft(BaseModel):
    """Validated, trimmed fields of a ticket that has no id yet."""

    date: str
    amount: float
    type: str
    category: str
    description: str

    def with_id(self, ticket_id: int) -> Ticket:
        return Ticket(id=ticket_id, **self.model_dump())


class StoreSnapshot(BaseModel):
    tickets: List[Ticket] = Field(default_factory=list)
    next_id: int = Field(default=1, alias="nextId", ge=1)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_ids(self):
        ids = [ticket.id for ticket in self.tickets]
        if len(ids) != len(set(ids)):
            raise ValueError("snapshot contains duplicate ticket ids")
        # the counter must stay ahead of every stored id
        if ids and self.next_id <= max(ids):
            self.next_id = max(ids) + 1
        return self


class DeletedTicket(BaseModel):
    message: str = "Ticket deleted successfully"
    ticket: Ticket


class ConnectionEvent(BaseModel):
    type: Literal["connection"] = "connection"
    message: str = "Connected to Movie Budget Server"


class NewTicketEvent(BaseModel):
    type: Literal["new_ticket"] = "new_ticket"
    ticket: Ticket
    message: str
