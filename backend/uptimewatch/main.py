"""Main FastAPI application: API plus the background check scheduler."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import close_db, create_engine, create_session_factory, init_db
from .dependencies import AppServices, build_services
from .errors import (
    AuthError,
    ConfigError,
    ForbiddenError,
    InputError,
    NotFoundError,
    QuotaError,
    StorageError,
    UptimeError,
)
from .routers import checks_router, status_router, tokens_router, users_router
from .services.storage import MemoryGateway, SqlGateway

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InputError: 400,
    ConfigError: 400,
    QuotaError: 400,
    AuthError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    StorageError: 500,
}


def _status_for(exc: UptimeError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    engine = None
    if app.state.services is None:
        if settings.storage_backend == "memory":
            gateway = MemoryGateway()
            logger.info("Using in-memory storage")
        else:
            engine = create_engine()
            await init_db(engine)
            gateway = SqlGateway(create_session_factory(engine))
            logger.info("Database initialized")
        app.state.services = build_services(gateway, settings)

    services: AppServices = app.state.services

    # A partial registry would silently skip checks: refuse to start instead
    await services.registry.load()

    services.scheduler.start()
    logger.info("Scheduler started")

    yield

    # Shutdown
    services.scheduler.stop()
    await services.scheduler.drain()
    await services.gateway.close()
    if engine is not None:
        await close_db(engine)
    logger.info("Shutdown complete")


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` replaces the storage-backed wiring built at startup.
    """
    app = FastAPI(
        title="uptimewatch",
        description="Monitor HTTP and HTTPS endpoints and get alerted when they go up or down",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UptimeError)
    async def uptime_error_handler(request: Request, exc: UptimeError):
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_errors(exc)},
        )

    app.include_router(users_router)
    app.include_router(tokens_router)
    app.include_router(checks_router)
    app.include_router(status_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request):
        current: Optional[AppServices] = request.app.state.services
        return {
            "status": "healthy",
            "checks": len(current.registry) if current else 0,
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors reduced to location and message."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
