"""
Volunteer Hub API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from volunteer_hub.api.v1 import router as api_v1_router
from volunteer_hub.core.config import get_settings
from volunteer_hub.core.database import async_session_factory, init_db
from volunteer_hub.core.errors import DomainError, domain_error_handler
from volunteer_hub.core.logging import configure_logging
from volunteer_hub.core.notifications import build_notifier

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Volunteer Hub",
        description="Organization membership and event volunteering workflows.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(DomainError, domain_error_handler)

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database answers a trivial query."""
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        configure_logging(settings.log_level, settings.log_format)
        if settings.debug:
            await init_db()
        app.state.notifier = build_notifier(settings)
        await app.state.notifier.start()
        log.info("Volunteer Hub starting", mail_transport=settings.mail_transport)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Volunteer Hub shutting down")
        notifier = getattr(app.state, "notifier", None)
        if notifier is not None:
            await notifier.stop()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
