from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

import httpx
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.exceptions import ErrorCode, GraduationError, error_response, user_message_for
from app.core.logging_config import logger
from app.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.api.v1.router import api_router
from app.services.asset_store import get_asset_store
from app.services.document_store import create_document_store


def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    mode = settings.STORAGE_MODE.lower()
    if mode not in ("local", "s3", "minio"):
        errors.append(f"STORAGE_MODE '{settings.STORAGE_MODE}' is not one of local, s3, minio")
    elif mode in ("s3", "minio") and not settings.AWS_ACCESS_KEY_ID:
        warnings.append("AWS_ACCESS_KEY_ID not set - relying on the default credential chain")

    if settings.is_production():
        if mode == "local":
            errors.append("STORAGE_MODE is 'local' in production")
        if settings.DATABASE_URL.startswith("sqlite"):
            errors.append("DATABASE_URL points at sqlite in production")

    if not settings.REDIS_URL:
        warnings.append("REDIS_URL not set - rate limits are kept per process")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] ✓ Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Storage mode: {settings.STORAGE_MODE}")
    logger.info("=" * 60)

    validate_critical_config()

    app.state.store = await create_document_store()
    app.state.assets = get_asset_store()
    app.state.http_client = httpx.AsyncClient(follow_redirects=True)
    logger.info("[Startup] Document store, asset store and HTTP client ready")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await app.state.http_client.aclose()
    await app.state.store.close()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Collaborative graduation booklets: editing coordination and PDF booklet assembly",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time"],
)


# Exception handlers
@app.exception_handler(GraduationError)
async def graduation_error_handler(request: Request, exc: GraduationError):
    if exc.status_code >= 500:
        logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    else:
        logger.warning(f"[API] {exc.code.value}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": ErrorCode.VALIDATION_ERROR.value,
            "message": errors[0]["message"] if errors else "Invalid request",
            "userMessage": user_message_for(ErrorCode.VALIDATION_ERROR),
            "details": {"errors": errors},
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": ErrorCode.INTERNAL_ERROR.value,
            "message": str(exc) if settings.DEBUG else "An error occurred",
            "userMessage": user_message_for(ErrorCode.INTERNAL_ERROR),
        }
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": f"/api/{settings.API_VERSION}/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")

# Serve locally stored assets when not using S3/MinIO
if settings.STORAGE_MODE.lower() == "local":
    app.mount(
        urlsplit(settings.LOCAL_ASSET_BASE_URL).path or "/assets",
        StaticFiles(directory=settings.local_storage_path, check_dir=False),
        name="assets",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
