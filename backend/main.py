"""
FastAPI application entry point for the storefront identity service.

Receives Clerk webhooks and keeps the local users table in sync with Clerk.

Shared resources (settings, Clerk client, database engine) are created in
the lifespan, stored on app.state and injected into routes with Depends.
Tests pass their own instances to create_app.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from src.api.routes import webhooks_clerk
from src.config.settings import Settings, get_settings
from src.database.session import create_db_engine, create_session_factory, init_db
from src.integrations.clerk.client import ClerkClient, get_clerk_client
from src.platform.secrets import SecretRedactingFilter, mask_secret

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(SecretRedactingFilter())
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    clerk_client: Optional[ClerkClient] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration (default: loaded from the environment)
        clerk_client: Pre-built Clerk client; created from settings if omitted
        session_factory: Pre-built session factory; created from DATABASE_URL
            if omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        # Startup
        logger.info("Starting storefront identity API", extra={"environment": settings.environment})

        app.state.settings = settings

        if settings.webhook_secret_configured:
            logger.info(
                "Clerk webhook secret configured",
                extra={"secret_hint": mask_secret(settings.webhook_secret)},
            )
        else:
            logger.error(
                "CLERK_WEBHOOK_SECRET is not set. Every Clerk webhook will be "
                "answered with 500 until it is configured."
            )

        owns_clerk_client = clerk_client is None
        app.state.clerk_client = clerk_client or get_clerk_client(
            secret_key=settings.clerk_secret_key,
            base_url=settings.clerk_api_url,
            timeout=settings.clerk_api_timeout_seconds,
        )

        engine = None
        app.state.session_factory = session_factory
        if session_factory is None:
            if settings.database_url:
                engine = create_db_engine(settings.database_url)
                init_db(engine)
                app.state.session_factory = create_session_factory(engine)
            else:
                logger.error(
                    "DATABASE_URL is not set. User webhooks will be answered with 500."
                )

        yield

        # Shutdown
        logger.info("Shutting down storefront identity API")
        if owns_clerk_client:
            await app.state.clerk_client.close()
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title="Storefront Identity API",
        description="Synchronizes storefront users from Clerk webhooks",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include Clerk webhook routes (uses Svix signature verification, not JWT)
    app.include_router(webhooks_clerk.router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions with proper logging."""
        logger.error(
            "Unhandled exception",
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("ENV") == "development"
    )
