"""
FastAPI application entry point for the provisioning server.

Runs two surfaces in one process:
- The device gateway, a TCP listener answering registration lines
- The HTTP control API for listing connections and pushing messages
"""
import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from device_gateway import DeviceGateway
from .api.compat import router as compat_router
from .api.v1 import api_router
from .application.services import RegistrationService
from .config import AppSettings, get_settings
from .domain.exceptions import DeviceNotFound, DomainException, FormatError, StoreError
from .infrastructure.database import DatabaseManager, SqlDeviceStore

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure process-wide logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Builds the store, the registration service and the device gateway,
    and tears them down in reverse order.
    """
    settings: AppSettings = app.state.settings

    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    database = DatabaseManager(settings.database)
    try:
        await database.init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        await database.close()
        raise

    store = SqlDeviceStore(
        database.session_factory,
        max_retries=settings.registration.max_transaction_retries,
        retry_backoff=settings.registration.retry_backoff,
    )
    registration_service = RegistrationService(
        store,
        settings.registration,
        accept_escaped_terminator=settings.gateway.connection.accept_escaped_terminator,
    )
    gateway = DeviceGateway(registration_service.handle_line, settings.gateway)

    try:
        await gateway.start()
    except OSError:
        await database.close()
        raise

    app.state.database = database
    app.state.device_store = store
    app.state.registration_service = registration_service
    app.state.gateway = gateway
    app.state.connection_registry = gateway.registry

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await gateway.stop()
    await database.close()
    logger.info("Shutdown complete")


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Device provisioning control API - connection listing and message push",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Operator tooling calls from browsers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Register routes
    register_routes(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        if isinstance(exc, DeviceNotFound):
            status_code = status.HTTP_404_NOT_FOUND
        elif isinstance(exc, FormatError):
            status_code = status.HTTP_400_BAD_REQUEST
        elif isinstance(exc, StoreError):
            logger.error(f"Store error on {request.url.path}: {exc}")
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        else:
            status_code = status.HTTP_400_BAD_REQUEST

        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url.path}")

        body = {"error": "INTERNAL_ERROR", "message": "Internal server error"}
        if app.state.settings.debug:
            body.update(message=str(exc), type=type(exc).__name__)

        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_routes(app: FastAPI) -> None:
    """Register API routes."""
    settings: AppSettings = app.state.settings

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            'name': settings.app_name,
            'version': settings.app_version,
            'message': 'Device provisioning server is running',
        }

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Check application health."""
        database = getattr(request.app.state, 'database', None)
        gateway = getattr(request.app.state, 'gateway', None)

        db_ok = await database.health_check() if database is not None else False
        gateway_ok = gateway is not None and gateway.is_running

        body = {
            'status': 'healthy' if db_ok and gateway_ok else 'unhealthy',
            'services': {
                'database': 'up' if db_ok else 'down',
                'gateway': 'up' if gateway_ok else 'down',
            },
            'version': settings.app_version,
            'environment': settings.environment,
        }
        if gateway is not None:
            body['gateway'] = gateway.get_stats()

        return body

    app.include_router(api_router)
    app.include_router(compat_router)


# Create application instance
app = create_app()


def run() -> None:
    """Run the provisioning server under uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)

    uvicorn.run(
        "provisioning.main:app",
        host=settings.http.host,
        port=settings.http.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
