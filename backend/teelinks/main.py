"""FastAPI application bootstrap and router wiring."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker
import uvicorn

from teelinks.api.routers import health, products
from teelinks.core.config import Settings, get_settings
from teelinks.core.errors import CatalogError
from teelinks.core.logging_config import configure_logging
from teelinks.db.session import SessionLocal, create_db_engine
from teelinks.storage.bucket_client import StorageBucketClient

logger = logging.getLogger(__name__)


def build_storage_client(settings: Settings) -> StorageBucketClient:
    return StorageBucketClient(
        base_url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        bucket=settings.storage_bucket,
        timeout=settings.storage_timeout_seconds,
    )


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render domain errors as ``{message, error}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Bad query parameters (e.g. ``page=0``) are client errors, not 422s."""
    logger.warning(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request parameters.", "error": str(exc.errors())},
    )


def build_session_factory(settings: Settings) -> sessionmaker:
    """Reuse the module engine for the process settings, else build one."""
    if settings is get_settings():
        return SessionLocal
    engine = create_db_engine(settings.database_url)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def create_app(
    settings: Settings | None = None,
    storage: StorageBucketClient | None = None,
    session_factory: sessionmaker | None = None,
) -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers.

    Refuses to start when no admin secret is configured, unless
    ``ALLOW_OPEN_ADMIN`` explicitly opts into unauthenticated mutations.
    The settings, storage client and session factory are kept on
    ``app.state``; request dependencies read them from there.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if not settings.admin_secret_key:
        if not settings.allow_open_admin:
            raise RuntimeError(
                "ADMIN_SECRET_KEY is not set. Set it, or set ALLOW_OPEN_ADMIN=true "
                "to run with unprotected admin routes."
            )
        logger.warning(
            "ADMIN_SECRET_KEY is not set and ALLOW_OPEN_ADMIN is enabled: "
            "admin routes are NOT protected."
        )

    storage = storage or build_storage_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.storage.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.session_factory = session_factory or build_session_factory(settings)
    logger.info(f"Storage client initialized for bucket {storage.bucket}")

    logger.info(f"[CORS] Parsed allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(health.router)
    app.include_router(products.router, prefix="/api/products", tags=["products"])

    return app


def run() -> None:
    """Console entry point: serve the API on the configured port."""
    settings = get_settings()
    uvicorn.run("teelinks.main:app", host="0.0.0.0", port=settings.port)


app = create_app()
