"""
FastAPI application entry point.

WHAT: Main application setup and wiring
WHY: Host the marketplace engine over HTTP
HOW: Create FastAPI app, register middleware, routers, handlers
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .core.config import settings
from .core.context import MarketContext
from .core.database import init_db, close_db
from .core.persistence import SaveGameStore
from .utils.logger import setup_logging, get_logger
from .middleware.error_handler import register_exception_handlers
from .api.v1.router import api_router

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    WHAT: Startup and shutdown logic
    WHY: One MarketContext per host session, DB opened and closed cleanly
    HOW: Async context manager for FastAPI lifespan
    """
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    init_db()
    app.state.market = MarketContext.from_settings()
    app.state.saves = SaveGameStore()
    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application")
    close_db()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Build the application with middleware, handlers and routes."""
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )

    # CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(application)

    # Include API router
    application.include_router(api_router)

    @application.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running"
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "usedmarket.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
