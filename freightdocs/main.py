from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from freightdocs.config import settings
from freightdocs.api.v1.router import api_router
from freightdocs.database import init_db, async_session_factory
from freightdocs.services.cache_service import get_cache
from freightdocs.services.number_formatter import DocumentNumberFormatter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Validate the configured number formats
    - Create missing tables (production schemas are managed by Alembic)
    - Initialize the cache backend
    """
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    # Raises ValueError on a bad CRT_NUMBER_FORMAT / MIC_DTA_NUMBER_FORMAT
    DocumentNumberFormatter()
    await init_db()
    get_cache()
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


API_DESCRIPTION = """
Issues CRT and MIC/DTA documents for licensed international road carriers.

### Error Codes

| Code | Description |
|------|-------------|
| 404 | Not Found - carrier or CRT doesn't exist |
| 409 | Conflict - duplicate license expiry, carrier in use, sequence contention |
| 422 | Unprocessable Entity - ineligible route, invalid license, route mismatch |
| 500 | Internal Server Error - nothing was issued |

Error bodies carry `message`, `error_code` and `details`.
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """JSON body for unexpected errors, with CORS headers so browsers can read it."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    content = {
        "message": str(exc) if settings.DEBUG else "Internal server error",
        "error_code": "INTERNAL_ERROR",
        "details": {
            "type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        },
    }
    response = JSONResponse(status_code=500, content=content)

    origin = request.headers.get("origin", "")
    if origin in settings.cors_origins_list or "*" in settings.cors_origins_list:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"

    return response


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {e}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
