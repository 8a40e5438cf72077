"""ThesisFlow API application.

Wires the thesis, audit and observability routers, the request-id and
CORS middleware, and the translation of workflow errors into HTTP
responses. Every error body has the shape::

    {"error": "<code>", "message": "<human text>", "details": ...}
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .audit.router import router as audit_router
from .config import Settings, get_settings
from .domain.thesis.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ThesisValidationError,
    ThesisWorkflowError,
)
from .observability.logging_config import configure_logging
from .observability.middleware import REQUEST_ID_HEADER, RequestIDMiddleware
from .observability.router import router as observability_router
from .theses.router import router as theses_router

API_PREFIX = "/api/v1"

logger = logging.getLogger(__name__)

HTTP_STATUS_BY_ERROR: Dict[Type[ThesisWorkflowError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    ThesisValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConflictError: status.HTTP_409_CONFLICT,
    StorageError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_status_for(exc: ThesisWorkflowError) -> int:
    """Status for the most specific registered error class, 400 otherwise."""
    for error_type in type(exc).__mro__:
        if error_type in HTTP_STATUS_BY_ERROR:
            return HTTP_STATUS_BY_ERROR[error_type]
    return status.HTTP_400_BAD_REQUEST


def error_response(status_code: int, error: str, message: str, details: Any = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "details": jsonable_encoder(details)},
    )


async def handle_workflow_error(request: Request, exc: ThesisWorkflowError) -> JSONResponse:
    # Already logged and counted by the workflow engine
    return error_response(http_status_for(exc), exc.error, exc.message, exc.details)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Rejected malformed request",
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "validation_error",
        "Request validation failed",
        field_errors,
    )


async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Database error outside the workflow engine",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        StorageError.error,
        "A database error occurred. Please try again later.",
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred. Please try again later.",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("ThesisFlow API starting", extra={"operation": "startup"})
    yield
    logger.info("ThesisFlow API stopping", extra={"operation": "shutdown"})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    expose_docs = settings.ENVIRONMENT != "production"
    application = FastAPI(
        title="ThesisFlow API",
        description="Thesis lifecycle workflow: draft, submission, review, disposition, publication",
        version=__version__,
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
        lifespan=lifespan,
    )

    application.add_middleware(RequestIDMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    application.add_exception_handler(ThesisWorkflowError, handle_workflow_error)
    application.add_exception_handler(RequestValidationError, handle_request_validation)
    application.add_exception_handler(SQLAlchemyError, handle_database_error)
    application.add_exception_handler(Exception, handle_unexpected_error)

    application.include_router(observability_router)
    application.include_router(theses_router, prefix=API_PREFIX)
    application.include_router(audit_router, prefix=API_PREFIX)

    @application.get("/", include_in_schema=False)
    async def root() -> Dict[str, Any]:
        return {"name": "ThesisFlow API", "version": __version__, "status": "running"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "thesisflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.ENVIRONMENT == "development",
        log_level=_settings.LOG_LEVEL.lower(),
    )
