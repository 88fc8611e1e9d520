"""FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database import Base, SessionLocal, engine, ensure_sqlite_directory
from .domain_errors import DomainError
from .logging_config import configure_logging
from .problem_details import domain_error_handler
from .routers import approvals, audit, auth, categories, dashboard, profiles, projects, requests, stock, users
from .use_cases.user_admin import ensure_seed_admin

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# Production safety checks (fail closed on insecure config).
if settings.ENV.lower() == "production" and settings.JWT_SECRET_KEY == "change-me-in-production":
    raise RuntimeError("JWT_SECRET_KEY must be set in production.")
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard).")


def init_local_store() -> None:
    """Create tables and the default admin for single-box installs."""
    ensure_sqlite_directory(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_seed_admin(
            db,
            email=settings.SEED_ADMIN_EMAIL,
            password=settings.SEED_ADMIN_PASSWORD,
            full_name=settings.SEED_ADMIN_NAME,
        )
    finally:
        db.close()


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    if settings.AUTO_CREATE_SCHEMA:
        init_local_store()
    logger.info("api.started env=%s database=%s", settings.ENV, engine.url.get_backend_name())
    yield


# Create app
app = FastAPI(
    title="Material Procurement",
    version=APP_VERSION,
    description="Material requests, approvals and stock ledger for construction projects",
    lifespan=lifespan,
)
app.add_exception_handler(DomainError, domain_error_handler)

# CORS
cors_methods = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
cors_headers = ["Authorization", "Content-Type"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
)

# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(profiles.router, prefix="/api")
app.include_router(projects.router, prefix="/api")
app.include_router(categories.router, prefix="/api")
app.include_router(requests.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")
app.include_router(stock.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(audit.router, prefix="/api")


@app.get("/api/system/health")
def health_check():
    """Health check endpoint."""
    database = "ok"
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": APP_VERSION,
        "database": database,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "Material Procurement API",
        "version": APP_VERSION,
        "docs": "/docs"
    }
