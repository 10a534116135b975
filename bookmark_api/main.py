"""
Lester v1 - Bookmark API Main Application

FastAPI application exposing workspaces, bookmarks, tags, tag jobs and the
operation log merge.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_config, load_env
from shared.errors import (
    FatalStoreError,
    InvalidInputError,
    NotFoundError,
    StoreError,
)
from shared.log_setup import configure_logging

from . import __version__
from .db import close_store, get_store, init_store
from .models import ErrorResponse, HealthResponse
from .routes import (
    bookmarks_router,
    jobs_router,
    sync_router,
    tags_router,
    workspaces_router,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Bookmark API starting...")
    init_store()

    yield

    close_store()
    logger.info("Bookmark API shutting down")


app = FastAPI(
    title="Lester Bookmark API",
    description="Bookmarks grouped into workspaces, tagged asynchronously",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(workspaces_router)
app.include_router(bookmarks_router)
app.include_router(tags_router)
app.include_router(jobs_router)
app.include_router(sync_router)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return error_response(400, str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return error_response(404, str(exc) or "not found")


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if isinstance(exc, FatalStoreError):
        logger.critical(f"Store is unusable while handling {request.url.path}: {exc}")
    else:
        logger.error(f"Store failure while handling {request.url.path}: {exc}")
    return error_response(500, str(exc))


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check():
    """Health check endpoint."""
    db_status = "connected" if get_store().ping() else "disconnected"

    return HealthResponse(
        status="healthy" if db_status == "connected" else "degraded",
        version=__version__,
        database=db_status,
    )


def main():
    """Run the API with uvicorn"""
    import uvicorn

    load_env()
    cfg = get_config()
    configure_logging(cfg.app.log_level, cfg.app.log_format)
    uvicorn.run(app, host=cfg.service.host, port=cfg.service.port)


# Run with: lester-api, or uvicorn bookmark_api.main:app --port 7316
if __name__ == "__main__":
    main()
