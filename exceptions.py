class TicketError(Exception):
    """Base class for errors raised by the ticket core."""


class TicketValidationError(TicketError):
    pass


class TicketNotFoundError(TicketError):
    def __init__(self, ticket_id: int):
        super().__init__("Ticket not found")
        self.ticket_id = ticket_id


class PersistenceError(TicketError):
    """Writing the store failed; the previously committed snapshot is intact."""
