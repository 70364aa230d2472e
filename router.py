from fastapi import APIRouter, Body, Depends, HTTPException, Request, WebSocket, status
from typing import Any, List, Optional
import structlog

from exceptions import PersistenceError, TicketNotFoundError, TicketValidationError
from schemas import DeletedTicket, Ticket
from services import TicketService


logger = structlog.get_logger(__name__)

router = APIRouter()


def get_service(request: Request) -> TicketService:
    return request.app.state.ticket_service


def parse_ticket_id(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except ValueError:
        return None


@router.get("/")
def home():
    return {"message": "Welcome to Movie Budget Server"}


@router.get("/tickets", response_model=List[Ticket])
def get_tickets(service: TicketService = Depends(get_service)):
    logger.info("list_tickets")
    return service.list_tickets()


# same listing, used by the reports and insights screens
@router.get("/allTickets", response_model=List[Ticket])
def get_all_tickets(service: TicketService = Depends(get_service)):
    logger.info("list_all_tickets")
    return service.list_tickets()


@router.get("/ticket/{ticket_id}", response_model=Ticket)
def get_ticket(ticket_id: str, service: TicketService = Depends(get_service)):
    logger.info("get_ticket", ticket_id=ticket_id)
    parsed_id = parse_ticket_id(ticket_id)
    if parsed_id is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    try:
        return service.get_ticket(parsed_id)
    except TicketNotFoundError:
        logger.warning("ticket_not_found", ticket_id=parsed_id)
        raise HTTPException(status_code=404, detail="Ticket not found")


@router.post("/ticket", status_code=status.HTTP_201_CREATED, response_model=Ticket)
async def create_ticket(
    payload: Any = Body(None),
    service: TicketService = Depends(get_service),
):
    logger.info("create_ticket", payload=payload)
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="All fields are required")

    try:
        return await service.create_ticket(payload)
    except TicketValidationError as e:
        logger.warning("ticket_rejected", reason=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError:
        logger.exception("ticket_save_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save ticket",
        )


@router.delete("/ticket/{ticket_id}", response_model=DeletedTicket)
async def delete_ticket(ticket_id: str, service: TicketService = Depends(get_service)):
    logger.info("delete_ticket", ticket_id=ticket_id)
    parsed_id = parse_ticket_id(ticket_id)
    if parsed_id is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    try:
        deleted = await service.delete_ticket(parsed_id)
    except TicketNotFoundError:
        logger.warning("ticket_not_found", ticket_id=parsed_id)
        raise HTTPException(status_code=404, detail="Ticket not found")
    except PersistenceError:
        logger.exception("ticket_delete_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete ticket",
        )

    return DeletedTicket(ticket=deleted)


@router.websocket("/")
async def ticket_events(websocket: WebSocket):
    hub = websocket.app.state.notification_hub
    await websocket.accept()
    hub.register(websocket)
    logger.info("observer_connected", client=str(websocket.client))

    try:
        await hub.greet(websocket)
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            # observers may talk, nothing is answered
            logger.info(
                "observer_message",
                text=message.get("text"),
                size=len(message.get("bytes") or b""),
            )
    finally:
        hub.unregister(websocket)
        logger.info("observer_disconnected", client=str(websocket.client))
