"""FastAPI application entry point for Pantry Auth."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pantry_auth import __version__
from pantry_auth.api.routes import auth_error_handler, router
from pantry_auth.config import get_settings
from pantry_auth.exceptions import AuthError
from pantry_auth.services import AuthServices, build_services

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting Pantry Auth v{__version__}")
    settings = get_settings()
    logger.info(f"Debug mode: {settings.debug}")

    services: AuthServices | None = getattr(app.state, "services", None)
    if services is None:
        services = build_services(settings)
        app.state.services = services

    await services.start()

    yield

    # Shutdown
    await services.stop()
    logger.info("Shutting down Pantry Auth")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pantry Auth",
        description="Identity and session lifecycle for the pantry app",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "pantry_auth.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
