"""
FastAPI application for the G-TEAD Commander's Marketplace.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.core.config import Settings, settings as default_settings
from marketplace.core.database import create_session_factory, engine_from_settings, init_db
from marketplace.core.errors import register_exception_handlers
from marketplace.core.logging_config import setup_logging
from marketplace.routes import (
    applications,
    auth,
    challenges,
    chat,
    matching,
    profile,
    solutions,
    stats,
    uploads,
)
from marketplace.services.ai_service import AIService
from marketplace.services.file_storage import create_file_storage
from marketplace.services.identity_providers import build_identity_providers
from marketplace.services.llm_client import LLMClient
from marketplace.services.session_store import create_session_store
from marketplace.storage import create_storage

logger = logging.getLogger(__name__)


def build_state(app: FastAPI, settings: Settings) -> None:
    """Construct the shared services and keep them on ``app.state``."""
    settings.validate_auth_configuration()

    session_factory = None
    if settings.STORAGE_BACKEND.lower() == "database":
        logger.info("Initializing database...")
        engine = engine_from_settings(settings)
        init_db(engine)
        session_factory = create_session_factory(engine)
        app.state.engine = engine

    app.state.settings = settings
    app.state.storage = create_storage(settings, session_factory)
    app.state.session_store = create_session_store(settings, session_factory)
    app.state.ai_service = AIService(LLMClient.from_settings(settings), settings)
    app.state.identity_providers = build_identity_providers(settings)
    app.state.file_storage = create_file_storage(settings)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
        logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION}")
        build_state(app, settings)
        expired = app.state.session_store.purge_expired()
        if expired:
            logger.info(f"Purged {expired} expired sessions")
        yield
        logger.info("Shutting down application...")
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            engine.dispose()

    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    prefix = settings.API_PREFIX
    app.include_router(auth.router, prefix=prefix, tags=["auth"])
    app.include_router(challenges.router, prefix=f"{prefix}/challenges", tags=["challenges"])
    app.include_router(solutions.router, prefix=f"{prefix}/solutions", tags=["solutions"])
    app.include_router(applications.router, prefix=f"{prefix}/applications", tags=["applications"])
    app.include_router(uploads.router, prefix=f"{prefix}/upload", tags=["uploads"])
    app.include_router(uploads.files_router, prefix="/uploads", tags=["uploads"])
    app.include_router(chat.router, prefix=f"{prefix}/chat", tags=["chat"])
    app.include_router(matching.router, prefix=prefix, tags=["ai"])
    app.include_router(stats.router, prefix=f"{prefix}/stats", tags=["stats"])
    app.include_router(profile.router, prefix=f"{prefix}/profile", tags=["profile"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("marketplace.main:app", host="0.0.0.0", port=8000, reload=True)
