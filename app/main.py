"""
FastAPI Application - Back-office API
Authentication, authorization and todo management for the store back office
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.core.cache import close_cache
from app.core.database import AsyncSessionLocal, create_tables
from app.core.exception_handlers import register_exception_handlers
from app.core.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    new_request_id,
    set_request_context,
)
from app.core.permission_sync import sync_permissions
from app.services import todo_events  # noqa: F401  registers domain event handlers

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events"""
    configure_logging()
    logger.info(
        "api_starting",
        environment=settings.ENVIRONMENT,
        cache=settings.CACHE_TYPE,
        database=settings.DATABASE_URL.split("@")[-1],
    )
    await create_tables()
    async with AsyncSessionLocal() as db:
        await sync_permissions(db)
    yield
    await close_cache()
    logger.info("api_shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Back-office API: authentication, authorization and todo management",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)

register_exception_handlers(app)


@app.middleware("http")
async def request_context(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Assign a request id, expose it in the response and in every log line."""
    request_id = new_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_context(request_id)
    try:
        response = await call_next(request)
    finally:
        clear_request_context()
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API information"""
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "healthy"}


# Import and include routers
from app.api.v1 import router as api_v1_router  # noqa: E402

app.include_router(api_v1_router)
