"""
FastAPI main application for the Reading Log Books API.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient

from books_api.auth import AuthGate
from books_api.books import router as books_router
from books_api.config import APIConfig
from books_api.database import MongoBookStore
from books_api.models import ErrorResponse, HealthResponse

# Setup logging
logger = structlog.get_logger(__name__)

DESCRIPTION = """
A small REST API for keeping a log of the books you have finished reading.

## Authentication

Listing a user's books (`GET /books/mybooks`) requires a signed token:

```
Authorization: Bearer your_token_here
```

A missing or invalid token is answered with `403 Forbidden`.
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: APIConfig = app.state.config
    logger.info("Starting Reading Log Books API")

    client = None
    if app.state.book_store is None:
        try:
            client = AsyncIOMotorClient(
                config.mongodb_url,
                serverSelectionTimeoutMS=int(config.store_timeout_seconds * 1000),
            )
            database = client[config.mongodb_database]

            # Test connection
            await database.command("ping")
            logger.info("Database connection established", database=config.mongodb_database)

            store = MongoBookStore(database, config.mongodb_collection)
            await store.ensure_indexes()
            app.state.book_store = store

        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            if client is not None:
                client.close()
            raise

    yield

    # Shutdown
    logger.info("Shutting down Reading Log Books API")
    if client is not None:
        app.state.book_store = None
        client.close()


def create_app(config: Optional[APIConfig] = None, store: Optional[MongoBookStore] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings to use; read from the environment when omitted
        store: Book store to use; a MongoDB connection is opened on startup when omitted

    Returns:
        Configured FastAPI application
    """
    config = config or APIConfig()

    app = FastAPI(
        title=config.api_title,
        description=DESCRIPTION,
        version=config.api_version,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.auth_gate = AuthGate(
        secret=config.access_token_secret.get_secret_value(),
        algorithm=config.jwt_algorithm,
        leeway=config.jwt_leeway_seconds,
    )
    app.state.book_store = store

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=str(exc.detail),
                status_code=exc.status_code
            ).model_dump(),
            headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if config.debug else None,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            ).model_dump()
        )

    # Health check endpoint (no authentication required)
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        db_status = "unavailable"
        store = request.app.state.book_store
        if store is not None:
            try:
                health_info = await asyncio.wait_for(store.health_check(), timeout=config.store_timeout_seconds)
                db_status = health_info.get("status", "unknown")
            except asyncio.TimeoutError:
                logger.error("Health check timed out", timeout_seconds=config.store_timeout_seconds)
                db_status = "timeout"

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=config.api_version,
            database_status=db_status
        )

    app.include_router(books_router)

    return app
