import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

# Import all models to ensure they're registered with SQLAlchemy Base
# This is needed for relationships between models in different files
from . import (
    models,  # noqa: F401
    models_affiliate,  # noqa: F401
    models_calendar,  # noqa: F401
    models_crm,  # noqa: F401
    models_learning,  # noqa: F401
    models_salvage,  # noqa: F401
    models_sponsor,  # noqa: F401
)
from .database import Base, engine, get_db
from .domain.affiliates.router import router as affiliates_router
from .domain.calendar.router import admin_router as admin_calendar_router
from .domain.calendar.router import connections_router as calendar_connections_router
from .domain.calendar.router import operations_router as operations_calendar_router
from .domain.crm.router import router as crm_router
from .domain.learning.router import router as learning_router
from .domain.salvage.router import router as salvage_router
from .domain.sponsors.router import router as sponsors_router
from .routes.highlevel_webhooks import router as highlevel_webhooks_router
from .routes.stripe_webhooks import router as stripe_webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    from .rate_limiter import get_redis_client

    if get_redis_client():
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - rate limiting and caching run in process memory")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Diver Well Training API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors with exception contexts rendered as strings"""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://diverwell.com,https://www.diverwell.com,http://localhost:5173,http://localhost:3000",
).split(",")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Routes
app.include_router(salvage_router)
app.include_router(learning_router)
app.include_router(sponsors_router)
app.include_router(affiliates_router)
app.include_router(crm_router)
app.include_router(operations_calendar_router)
app.include_router(calendar_connections_router)
app.include_router(admin_calendar_router)
app.include_router(stripe_webhooks_router)
app.include_router(highlevel_webhooks_router)


@app.get("/")
def root():
    return {"message": "Diver Well Training API is running"}


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"❌ Database health check failed: {str(e)}")
        database = "unavailable"
    return {"status": "healthy" if database == "connected" else "degraded", "database": database}
