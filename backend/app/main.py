"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.api.main import api_router
from app.core.config import settings
from app.core.db import engine, init_db
from app.core.errors import WorkflowError
from app.core.logging import setup_logging
from app.services.email_service import SmtpEmailProvider
from app.services.outbox_service import OutboxWorker
from app.services.workflow_service import build_quote_workflow

logger = logging.getLogger(__name__)


def _outbox_handlers(session: Session):
    return build_quote_workflow(session, settings, SmtpEmailProvider.from_settings(settings)).task_handlers()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL)
    if settings.AUTO_CREATE_TABLES:
        with Session(engine) as session:
            init_db(session)

    worker = None
    if settings.OUTBOX_WORKER_ENABLED:
        worker = OutboxWorker(
            session_factory=lambda: Session(engine),
            handlers_factory=_outbox_handlers,
            poll_interval_s=settings.OUTBOX_POLL_INTERVAL_S,
            batch_size=settings.OUTBOX_BATCH_SIZE,
        )
        worker.start()

    yield

    if worker is not None:
        worker.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    logger.info(
        "Request failed",
        extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.public_message})


app.include_router(api_router, prefix=settings.API_V1_STR)
