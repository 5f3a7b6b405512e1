"""
GTD Assistant - FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import close_db, init_db
from app.core.exceptions import register_exception_handlers
from app.core.logging import RequestLoggingMiddleware, setup_logging
from app.api import ai, auth, health, next_actions, projects, tasks
from app.services.completion import create_completion_service

# Initialize logging
setup_logging(
    log_level="DEBUG" if settings.debug else settings.log_level,
    log_dir=settings.log_dir or None,
    json_logs=settings.log_json,
    app_name="gtd",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Completion provider: {settings.completion_provider}")
    await init_db()
    logger.info("Database initialized")
    app.state.completion_service = create_completion_service()

    yield

    # Shutdown
    logger.info("Shutting down...")
    service = getattr(app.state, "completion_service", None)
    if service is not None:
        await service.close()
    await close_db()
    logger.info("Cleanup complete")


app = FastAPI(
    title=settings.app_name,
    description="Natural-language GTD task management assistant",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=list({settings.frontend_url, *settings.cors_origins}),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix=f"{settings.api_prefix}/auth", tags=["Auth"])
app.include_router(ai.router, prefix=f"{settings.api_prefix}/ai", tags=["AI"])
app.include_router(tasks.router, prefix=f"{settings.api_prefix}/tasks", tags=["Tasks"])
app.include_router(projects.router, prefix=f"{settings.api_prefix}/projects", tags=["Projects"])
app.include_router(
    next_actions.router, prefix=f"{settings.api_prefix}/next-actions", tags=["Next Actions"]
)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
