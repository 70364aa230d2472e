from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
import uvicorn

from config import Settings, get_settings
from database import RecordStore, WriteSerializer
from logging_config import configure_logging
from notifications import NotificationHub
from router import router
from services import TicketService

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    store = RecordStore(settings.database_path)
    serializer = WriteSerializer(store)
    hub = NotificationHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        snapshot = store.load()
        if not store.path.exists():
            store.commit(snapshot)
        logger.info(
            "server_started",
            port=settings.port,
            database=str(store.path),
            tickets=len(snapshot.tickets),
            next_id=snapshot.next_id,
        )
        yield
        logger.info("server_shutting_down", observers=hub.count)
        await hub.close_all()
        await serializer.close()
        logger.info("server_closed")

    app = FastAPI(title="Movie Budget Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.notification_hub = hub
    app.state.ticket_service = TicketService(
        store, serializer, hub, max_text_length=settings.max_text_length
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    # the only body the API accepts is the create payload
    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        logger.warning("invalid_request", path=request.url.path)
        return JSONResponse(status_code=400, content={"error": "All fields are required"})

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.error("server_error", path=request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router, tags=["tickets"])
    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
