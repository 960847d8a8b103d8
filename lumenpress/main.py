"""
FastAPI application entry point.
Main application instance with middleware, error mapping and route configuration.
"""
from fastapi import FastAPI, Request, status, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import logging

from lumenpress.config import settings
from lumenpress.errors import (
    ConfigurationError,
    ContentError,
    ContentRootMissing,
    Forbidden,
    MalformedContent,
    NotFound,
    SlugCollision,
    StorageUnavailable,
)
from lumenpress.routes import cms, content, gallery_auth, images
from lumenpress.storage.base import StorageAdapter
from lumenpress.storage.factory import get_storage
from lumenpress.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS Middleware Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],  # Includes X-CMS-Password and If-None-Match
    expose_headers=["ETag"],
    max_age=3600,  # Cache preflight requests for 1 hour
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path and response status for every request."""
    method = request.method
    path = request.url.path
    logger.debug(f"Incoming {method} request to {path}")

    try:
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code} for {method} {path}")
        return response
    except Exception as e:
        logger.error(
            f"Error processing {method} {path}: {str(e)}\n"
            f"  Error type: {type(e).__name__}",
            exc_info=True
        )
        raise


# Include routers
app.include_router(content.router, prefix="/api", tags=["content"])
app.include_router(gallery_auth.router, prefix="/api", tags=["gallery"])
app.include_router(images.router, prefix="/api", tags=["images"])
app.include_router(cms.router, prefix="/api", tags=["CMS"])


# Exception Handlers
CONTENT_ERROR_STATUS = [
    (NotFound, status.HTTP_404_NOT_FOUND, "Not found"),
    (Forbidden, status.HTTP_403_FORBIDDEN, "Forbidden"),
    (SlugCollision, status.HTTP_409_CONFLICT, "Slug collision"),
    (ContentRootMissing, status.HTTP_503_SERVICE_UNAVAILABLE, "Content root missing"),
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE, "Storage unavailable"),
    (MalformedContent, 422, "Malformed content"),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Configuration error"),
]


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    """Map engine errors to HTTP status codes."""
    status_code, label = status.HTTP_500_INTERNAL_SERVER_ERROR, "Content error"
    for error_type, code, name in CONTENT_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code, label = code, name
            break

    message = f"{label} on {request.method} {request.url.path}: {exc}"
    if status_code >= 500:
        logger.error(message)
    elif isinstance(exc, Forbidden):
        logger.warning(message)
    else:
        logger.info(message)

    content = {"error": label, "detail": exc.message}
    if isinstance(exc, SlugCollision):
        content["paths"] = exc.paths
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions (401, 403, 404, etc.)."""
    logger.warning(
        f"HTTPException on {request.method} {request.url.path}: "
        f"{exc.status_code} {exc.detail}"
    )

    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "detail": str(exc.detail)}

    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def jsonable_errors(exc: RequestValidationError) -> list:
    # Error contexts may hold exception instances
    return [
        {key: value for key, value in error.items() if key in ("type", "loc", "msg")}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Handle request validation errors."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation error",
            "detail": jsonable_errors(exc)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}:\n"
        f"  Error: {str(exc)}\n"
        f"  Error type: {type(exc).__name__}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )


# Root Endpoints
@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/storage")
def health_check_storage(storage: StorageAdapter = Depends(get_storage)):
    """
    Storage health check endpoint.
    Reports the active backend and whether the content root is reachable.
    """
    try:
        root_exists = storage.root_exists()
    except StorageUnavailable as e:
        logger.error(f"Storage health check failed: {str(e)}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "storage": storage.backend_name,
                "status": "unhealthy",
                "error": "Storage backend unreachable"
            }
        )

    if not root_exists:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "storage": storage.backend_name,
                "location": storage.describe(),
                "status": "unhealthy",
                "error": "Content root does not exist"
            }
        )

    return {
        "storage": storage.backend_name,
        "location": storage.describe(),
        "status": "healthy"
    }


@app.on_event("startup")
async def startup_event():
    """Log the storage backend selection on startup."""
    logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")
    try:
        storage = get_storage()
    except ConfigurationError as e:
        logger.error(f"Storage is misconfigured: {e}")
        return
    logger.info(f"Content index path: {settings.INDEX_PATH} on {storage.describe()}")
