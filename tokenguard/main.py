"""FastAPI application entry point"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded

from tokenguard import __version__
from tokenguard.api import auth, health, revocation
from tokenguard.api.deps import close_remote_checker
from tokenguard.config import settings
from tokenguard.database import init_db
from tokenguard.middleware.rate_limit import limiter
from tokenguard.services.reaper import ReaperService
from tokenguard.utils.errors import ApiError, RevocationStoreError, ServiceUnavailableError
from tokenguard.utils.logger import logger, setup_logging

# Setup logging
setup_logging(settings.LOG_LEVEL)


def _error_body(error: str, message: str) -> dict:
    return {"success": False, "error": error, "message": message}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    logger.info("TokenGuard starting up", extra={
        "version": __version__,
        "log_level": settings.LOG_LEVEL,
        "rate_limiting": settings.RATE_LIMIT_ENABLED,
        "monitoring": settings.METRICS_ENABLED,
        "reaper": settings.REAPER_ENABLED,
        "remote_checker": bool(settings.REVOCATION_CHECK_URL),
    })
    init_db()

    reaper = ReaperService(settings)
    if settings.REAPER_ENABLED:
        await reaper.start()
    app.state.reaper = reaper

    yield

    # Shutdown
    if reaper.running:
        await reaper.stop()
    close_remote_checker()
    logger.info("TokenGuard shutting down")


# Create FastAPI app
app = FastAPI(
    title="TokenGuard",
    description="Token lifecycle manager with a shared JWT revocation ledger",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ===== Middleware Setup =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Monitoring middleware
if settings.METRICS_ENABLED:
    from tokenguard.middleware.monitoring import MonitoringMiddleware
    app.add_middleware(MonitoringMiddleware)

    # Prometheus metrics
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/health/ready", "/health/live"],
        inprogress_name="tokenguard_requests_inprogress",
        inprogress_labels=True
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# Rate limiting (the limiter is a no-op when RATE_LIMIT_ENABLED is false)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit exceeded errors"""
    logger.warning(
        "Rate limit exceeded",
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=429,
        content=_error_body("RATE_LIMIT_EXCEEDED", "Too many requests. Please try again later."),
    )

# ===== Route Setup =====

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(revocation.router)


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "service": "TokenGuard",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
        "health": "/health",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None
    }


# ===== Error Handlers =====

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Render domain errors as ``{success, error, message}``"""
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.error_code, exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are 400s, not 422s"""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content=_error_body("VALIDATION_ERROR", message))


@app.exception_handler(RevocationStoreError)
async def revocation_store_error_handler(request: Request, exc: RevocationStoreError):
    """Ledger unavailable: fail closed without leaking storage details"""
    logger.error(
        f"Revocation ledger unavailable: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method
        },
    )
    error = ServiceUnavailableError("Token revocation service temporarily unavailable")
    return JSONResponse(status_code=error.status_code, content=_error_body(error.error_code, error.message))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught errors"""
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method
        },
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content=_error_body("SERVER_ERROR", "An unexpected error occurred."),
    )
