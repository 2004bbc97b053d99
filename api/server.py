"""FastAPI server for Order Scrub.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import (
    health,
    auth,
    order_scrub,
)
from core import config
from core.observability.logging import configure_logging, get_logger
from storage.db import init_db

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    init_db()
    logger.info(
        "Order Scrub API starting up",
        extra_fields={"environment": config.ORDER_SCRUB_ENV, "db_path": str(config.DB_PATH)},
    )
    
    yield
    
    # Shutdown
    logger.info("Order Scrub API shutting down")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and hide their details from the client."""
    logger.error(
        "Unhandled error",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra_fields={"method": request.method, "path": request.url.path},
    )
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Order Scrub API",
        description="Reconciles JobBoss open orders against customer order lists",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.add_exception_handler(Exception, unhandled_exception_handler)
    
    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(auth.router, prefix="/api", tags=["Authentication"])
    app.include_router(order_scrub.router, prefix="/api", tags=["Order Scrub"])
    
    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
