import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text

from compliance_workflow.config import settings
from compliance_workflow.db.base import engine
from compliance_workflow.routers import compliance_steps
from compliance_workflow.workflow.errors import (
    CapabilityError,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    WorkflowError,
    WorkflowValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[WorkflowError], int]] = [
    (NotFound, 404),
    (InvalidTransition, 409),
    (WorkflowValidationError, 422),
    (CapabilityError, 403),
    (PersistenceFailure, 503),
]


def _status_for(exc: WorkflowError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def create_app() -> FastAPI:
    app = FastAPI(
        title="Compliance Workflow API",
        default_response_class=ORJSONResponse,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(_request: Request, exc: WorkflowError) -> ORJSONResponse:
        status_code = _status_for(exc)
        if isinstance(exc, PersistenceFailure):
            logger.error("Compliance workflow persistence failed", extra={"error": str(exc)})
        return ORJSONResponse(status_code=status_code, content={"detail": str(exc), "error": exc.kind})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(compliance_steps.router)

    return app


app = create_app()
