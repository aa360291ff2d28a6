"""
Main FastAPI Application

Entry point for the Zaltyko academy management API.
Configures middleware, routes, error handlers, and startup/shutdown events.

Every error leaves the API as {"error": CODE, "message": ..., "details"?}.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
from contextlib import asynccontextmanager

from zaltyko import __version__
from zaltyko.config import get_settings
from zaltyko.database import engine, init_db, SessionLocal
from zaltyko.middleware.tenant import TenantMiddleware
from zaltyko.middleware.rate_limit import RateLimitMiddleware
from zaltyko.utils.logging import setup_logging, get_logger, log_security_event
from zaltyko.core.exceptions import AppError, TenantIsolationError
from zaltyko.services.plans import ensure_default_plans

from zaltyko.api.endpoints import (
    auth,
    profile,
    academies,
    athletes,
    guardians,
    coaches,
    groups,
    classes,
    class_sessions,
    enrollments,
    attendance,
    charges,
    billing_items,
    discounts,
    billing,
    events,
    public,
    reports,
    invitations,
    notifications,
    audit_logs,
    super_admin,
    cron,
)

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)

HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting Zaltyko API in {settings.ENVIRONMENT} mode")

    # Production schemas are migrated outside the app
    if settings.ENVIRONMENT == "development":
        logger.warning("Initializing database tables (dev mode)")
        init_db()
        db = SessionLocal()
        try:
            ensure_default_plans(db)
        finally:
            db.close()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Zaltyko API",
    description="Multi-tenant management for gymnastics academies: athletes, classes, attendance, fees and plans",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# SECURITY: Only the web app may call the API with credentials outside development
allowed_origins = ["*"] if settings.ENVIRONMENT == "development" else [settings.APP_URL]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = str(time.time() - start_time)
    return response


# Middleware runs in reverse order of registration: the tenant hint and
# request id are set before rate limiting sees the request
app.add_middleware(RateLimitMiddleware)
app.add_middleware(TenantMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(TenantIsolationError)
async def tenant_isolation_error_handler(request: Request, exc: TenantIsolationError):
    """
    Cross-tenant access attempt.

    CRITICAL: These are logged as security events; they mean a client sent
    ids of another tenant.
    """
    log_security_event(
        "tenant_isolation_violation",
        {
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None),
            "code": exc.code,
        },
        logger
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code}: {exc.message}",
            extra={"path": request.url.path, "tenant_id": getattr(request.state, "tenant_id", None)}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
        headers=exc.headers
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors (unknown route, wrong method) in the same error shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"), "message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request",
            "details": jsonable_encoder(exc.errors(), exclude={"ctx", "input"}),
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Don't expose internal errors in production.
    Log full details but return generic error to client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )

    body = {"error": "INTERNAL_ERROR", "message": "Internal server error"}
    if settings.DEBUG:
        body["details"] = {"type": type(exc).__name__, "message": str(exc)}
    return JSONResponse(status_code=500, content=body)


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint for load balancers.

    TODO: Report database and Redis connectivity once deployments check
    liveness and readiness separately.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


# All API routes live under /api; tenancy exemptions match on these paths
for module in (
    auth,
    profile,
    academies,
    athletes,
    guardians,
    coaches,
    groups,
    classes,
    class_sessions,
    enrollments,
    attendance,
    charges,
    billing_items,
    billing,
    events,
    public,
    invitations,
    notifications,
    audit_logs,
    super_admin,
    cron,
):
    app.include_router(module.router, prefix="/api")

app.include_router(discounts.router, prefix="/api")
app.include_router(discounts.scholarships_router, prefix="/api")
app.include_router(reports.router, prefix="/api")
app.include_router(reports.dashboard_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    logger.info("=" * 80)
    logger.info("Zaltyko API")
    logger.info("=" * 80)
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info("=" * 80)

    uvicorn.run(
        "zaltyko.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
