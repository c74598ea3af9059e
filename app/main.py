"""
FastAPI Application Entry Point.

Users CRUD Service
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, get_settings
from app.core.database import (
    SessionGuard,
    SessionGuardError,
    create_db_and_tables,
    create_engine,
)
from app.core.logging import configure_logging
from app.users.router import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: Open the session guard, create tables when configured to
    Shutdown: Close the guard and dispose of the engine
    """
    settings: Settings = app.state.settings
    engine = create_engine(settings)
    guard = SessionGuard(
        engine,
        size=settings.guard_pool_size,
        acquire_timeout=settings.guard_acquire_timeout,
    )
    app.state.session_guard = guard

    # A database that is down at startup leaves the guard closed; requests
    # then answer 503 instead of the process refusing to start
    try:
        await guard.open()
        if settings.create_schema:
            await create_db_and_tables(guard)
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database initialization failed: {}", e)
        await guard.close()

    logger.info("{} {} started", settings.app_name, settings.app_version)
    yield

    await guard.close()
    await engine.dispose()
    logger.info("{} stopped", settings.app_name)


def create_application(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
## Users CRUD Service

Create, read, update and delete user records stored in a relational table.

### Notes:
- Ids are chosen by the caller
- Updates overwrite first name, last name and email; the path id wins over the body id
- Updating or deleting a missing id succeeds as a no-op unless `REPORT_MISSING_ROWS` is set
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(users_router, prefix="/users")
    app.include_router(users_router, prefix="/usuarios", include_in_schema=False)

    @app.get("/", tags=["health"])
    async def root():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
        }

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """Detailed health check endpoint."""
        guard: SessionGuard = request.app.state.session_guard
        try:
            async with guard.acquire() as connection:
                await connection.execute(text("SELECT 1"))
            database = "connected"
        except (SQLAlchemyError, SessionGuardError) as e:
            logger.warning("Health check could not reach the database: {}", e)
            database = "unavailable"

        return {
            "status": "healthy",
            "database": database,
        }

    return app


app = create_application()
