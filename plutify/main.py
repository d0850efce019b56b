import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import all models so every table is registered with Base before create_all
from . import (
    models,  # noqa: F401
    models_billing,  # noqa: F401
    models_documents,  # noqa: F401
    models_integrations,  # noqa: F401
    models_onboarding,  # noqa: F401
    models_tasks,  # noqa: F401
)
from .config import ALLOWED_ORIGINS
from .database import Base, engine, get_db
from .domain.admin.router import router as admin_router
from .domain.billing.router import router as billing_router
from .domain.documents.router import router as documents_router
from .domain.engagement_letters.router import router as engagement_letters_router
from .domain.integrations.amazon import router as amazon_router
from .domain.integrations.quickbooks import router as quickbooks_router
from .domain.integrations.shopify import router as shopify_router
from .domain.notifications.router import router as notifications_router
from .domain.onboarding.router import router as onboarding_router
from .domain.questionnaire.router import router as questionnaire_router
from .domain.settings.router import router as settings_router
from .domain.staff.router import router as staff_router
from .domain.task_templates.router import router as task_templates_router
from .domain.tasks.router import router as tasks_router
from .domain.users.router import router as users_router
from .domain.zapier.router import router as zapier_router
from .responses import envelope, error_body
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✅ Database tables created successfully")
    except Exception as e:
        # Another worker may have created the tables first
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"❌ Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        if get_redis_client() is not None:
            logger.info("✅ Redis connection established")
        else:
            logger.info("REDIS_URL not set - rate limiting uses process memory only")
    except Exception as e:
        logger.warning(f"⚠️ Redis connection failed - rate limiting will operate in fail-open mode: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Plutify API", version="1.0.0", lifespan=lifespan)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTPException as the error envelope"""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert validation errors on the Authorization header to 401 authentication errors;
    everything else stays a 422 with field-level messages
    """
    errors = exc.errors()
    for error in errors:
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(f"🔒 Authentication failed for {request.url.path}: missing or invalid Authorization header")
            return JSONResponse(
                status_code=401,
                content={
                    "success": False,
                    "data": None,
                    "message": "Not authenticated. Please provide a valid Bearer token in the Authorization header.",
                    "error": "TOKEN_REQUIRED",
                },
            )

    logger.warning(f"⚠️ Validation error for {request.url.path}: {errors}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "data": None,
            "message": "Validation failed",
            "errors": [
                {
                    "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                    "message": error.get("msg", "Invalid value"),
                }
                for error in errors
            ],
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "data": None, "message": "Internal server error"},
    )


# ============================================================================
# MIDDLEWARE
# ============================================================================


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise
    duration_ms = (time.time() - start_time) * 1000
    if response.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
    return response


if SECURITY_HEADERS_ENABLED:
    app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health", "/docs", "/openapi.json"])
    logger.info("Security headers enabled")
else:
    logger.warning("⚠️ Security headers DISABLED - only use in development!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)


# ============================================================================
# ROUTES
# ============================================================================

API_PREFIX = "/api"

app.include_router(users_router, prefix=API_PREFIX)
app.include_router(admin_router, prefix=API_PREFIX)
app.include_router(staff_router, prefix=API_PREFIX)
app.include_router(tasks_router, prefix=API_PREFIX)
app.include_router(documents_router, prefix=API_PREFIX)
app.include_router(task_templates_router, prefix=API_PREFIX)
app.include_router(settings_router, prefix=API_PREFIX)
app.include_router(notifications_router, prefix=API_PREFIX)
app.include_router(questionnaire_router, prefix=API_PREFIX)
app.include_router(zapier_router, prefix=API_PREFIX)
app.include_router(engagement_letters_router, prefix=API_PREFIX)
app.include_router(onboarding_router, prefix=API_PREFIX)
app.include_router(quickbooks_router, prefix=API_PREFIX)
app.include_router(shopify_router, prefix=API_PREFIX)
app.include_router(amazon_router, prefix=API_PREFIX)
app.include_router(billing_router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return envelope({"name": "Plutify API", "version": app.version}, "Plutify API is running")


@app.get("/health")
async def health(db: Session = Depends(get_db)):
    """Liveness plus a database round trip"""
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy", "database": {"connected": True}}
    except Exception as e:
        logger.error(f"❌ Health check database query failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": {"connected": False, "error": str(e)}},
        )


@app.get("/health/redis")
async def redis_health():
    """Redis connectivity, used by the rate limiter and the job queue"""
    from .rate_limiter import get_redis_client

    try:
        redis_client = get_redis_client()
        if redis_client is None:
            return {"status": "disabled", "redis": {"connected": False}}

        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000

        info = redis_client.info()
        return {
            "status": "healthy",
            "redis": {
                "connected": True,
                "response_time_ms": round(response_time, 2),
                "version": info.get("redis_version", "unknown"),
            },
        }
    except Exception as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}
