# main.py — TaskScope API entry point
# Mounts the auth and task routers, maps TaskScopeError subclasses to their
# HTTP status, and keeps credentials out of validation error bodies.

import os
import json
import uuid
import time
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from database import DATABASE_URL, init_db, close_db, get_db_session
from errors import TaskScopeError
from telemetry import setup_telemetry, SERVICE_VERSION

# Logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
)
logger = logging.getLogger("taskscope")


def _check_startup_config() -> None:
    """Warn about settings that are unsafe outside development."""
    if len(os.getenv("JWT_SECRET_KEY", "")) < 32:
        logger.warning("JWT_SECRET_KEY is unset or shorter than 32 characters; tokens will not survive a restart")
    if os.getenv("ENVIRONMENT") == "production" and DATABASE_URL.startswith("sqlite"):
        logger.warning("Running production against SQLite")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting TaskScope v{SERVICE_VERSION}...")
    await init_db()
    _check_startup_config()
    # Initialise OpenTelemetry (no-op if OTEL_EXPORTER_OTLP_ENDPOINT not set)
    setup_telemetry(app)
    yield
    logger.info("Shutting down TaskScope...")
    await close_db()


app = FastAPI(
    title="TaskScope",
    description="Multi-tenant task tracking with role and organization scoped access",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ============================================================
# CORS
# ============================================================

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:4200,http://localhost:3000"
    ).split(",")
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# ============================================================
# MIDDLEWARE: Request IDs + API headers
# ============================================================

@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Content-Type-Options"] = "nosniff"
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"({time.perf_counter() - start:.3f}s) [rid={request_id[:8]}]"
    )
    return response


# ============================================================
# EXCEPTION HANDLERS
# ============================================================

@app.exception_handler(TaskScopeError)
async def task_scope_exception_handler(request: Request, exc: TaskScopeError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "request_id": getattr(request.state, "request_id", None),
        },
        headers=headers,
    )


REDACTED_FIELDS = {"password"}


def _redact(value):
    """Mask credential fields anywhere inside a submitted value."""
    if isinstance(value, dict):
        return {
            k: "***" if k in REDACTED_FIELDS else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = list(err.get("loc", []))
        clean_err = {
            "type": str(err.get("type", "unknown")),
            "loc": loc,
            "msg": str(err.get("msg", "")),
        }
        # Submitted passwords never leave the server, even nested in a body echo
        if "input" in err and not REDACTED_FIELDS.intersection(map(str, loc)):
            submitted = _redact(err["input"])
            try:
                json.dumps(submitted)
                clean_err["input"] = submitted
            except (TypeError, ValueError):
                clean_err["input"] = str(submitted)
        errors.append(clean_err)

    return JSONResponse(
        status_code=422,
        content={
            "detail": errors,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "request_id": getattr(request.state, "request_id", None),
        },
    )


# ============================================================
# ROUTERS
# ============================================================

from routers import auth, tasks  # noqa: E402

app.include_router(auth.router)
app.include_router(tasks.router)


# ============================================================
# HEALTH & ROOT
# ============================================================

@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db_session)):
    """Liveness plus a round-trip to the database."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except (SQLAlchemyError, OSError):
        logger.exception("Health check could not reach the database")
        db_status = "unavailable"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": SERVICE_VERSION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "database": db_status,
    }


@app.get("/")
async def root():
    return {"name": "TaskScope", "version": SERVICE_VERSION, "health": "/health"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 3333)),
        reload=os.getenv("ENVIRONMENT") != "production",
    )
