"""FastAPI Application Entry Point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from idea_sync import __version__
from idea_sync.config import Settings, get_settings
from idea_sync.database import close_db, create_engine, create_session_factory, init_db
from idea_sync.routers import records, tasks, sync
from idea_sync.core.errors import APIError, ErrorCode
from idea_sync.core.middleware import RequestContextMiddleware, get_request_id
from idea_sync.services.credentials import StoredTokenCredentialProvider
from idea_sync.services.record_store import RecordStore
from idea_sync.services.sync_manager import SyncManager
from idea_sync.services.usage import SupabaseUsageReporter
from idea_sync.utils.encryption import EncryptionService
from idea_sync.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


# =============================================================================
# Exception Handlers - Standardized Error Responses
# =============================================================================

def _error_body(request: Request, error: dict) -> dict:
    return {
        "error": error,
        "request_id": get_request_id(request),
        "timestamp": format_timestamp(utcnow()),
    }


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """
    Render APIError subclasses as:

        {
            "error": {"code": ..., "message": ..., "param": ..., "details": [...]},
            "request_id": "req_xxx",
            "timestamp": "2024-01-15T10:30:00.000Z"
        }
    """
    logger.warning(f"[{get_request_id(request)}] API Error: {exc.code.value} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.to_dict()),
        headers=exc.headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """FastAPI request validation errors in the standard error format."""
    details = []
    param = None
    for error in exc.errors():
        loc = error.get("loc") or []
        details.append(f"{' -> '.join(str(part) for part in loc)}: {error.get('msg', 'Invalid value')}")
        if param is None and loc:
            param = str(loc[-1])

    logger.warning(f"[{get_request_id(request)}] Validation Error: {details}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, {
            "code": ErrorCode.VALIDATION_FAILED.value,
            "message": "Request validation failed",
            "param": param,
            "details": details,
        }),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors; internals are only exposed in debug mode."""
    logger.exception(f"[{get_request_id(request)}] Unhandled Exception: {type(exc).__name__}: {exc}")

    error = {"code": ErrorCode.INTERNAL_ERROR.value}
    if request.app.state.settings.debug:
        error["message"] = f"Internal error: {type(exc).__name__}"
        error["details"] = [str(exc)]
    else:
        error["message"] = "An internal error occurred. Please try again later."

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, error),
    )


# =============================================================================
# Application factory
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around a local store and a sync manager created at startup."""
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting idea-sync API...")
        engine = create_engine(settings)
        await init_db(engine)

        store = RecordStore(create_session_factory(engine))
        await store.backfill_identity()

        credentials = StoredTokenCredentialProvider(
            store, EncryptionService(settings.encryption_key), settings
        )
        app.state.store = store
        app.state.credentials = credentials
        app.state.sync_manager = SyncManager(
            store,
            credentials,
            usage_reporter=SupabaseUsageReporter(settings),
            settings=settings,
        )

        yield

        logger.info("Shutting down idea-sync API...")
        await close_db(engine)

    app = FastAPI(
        title="idea-sync API",
        description="Offline-first notes and tasks store with Google Drive sync",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Request context middleware goes on before CORS
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins if not settings.debug else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(records.router, prefix="/api/v1/records", tags=["Records"])
    app.include_router(tasks.router, prefix="/api/v1", tags=["Tasks"])
    app.include_router(sync.router, prefix="/api/v1/sync", tags=["Sync"])

    @app.get("/")
    async def root(request: Request):
        """API root endpoint."""
        return {
            "name": "idea-sync API",
            "version": __version__,
            "status": "running",
            "docs": "/docs",
            "request_id": get_request_id(request),
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for monitoring."""
        return {
            "status": "healthy",
            "is_syncing": request.app.state.sync_manager.is_syncing,
            "timestamp": format_timestamp(utcnow()),
            "request_id": get_request_id(request),
        }

    return app


app = create_app()
