"""
CarePublish API - FastAPI application entry point.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import models  # noqa: F401  (registers tables on Base)
from .config import get_settings
from .database import engine, Base
from .limiter import limiter
from .logging_config import api_logger
from .middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from .responses import ApiException, api_exception_handler
from .routes import (
    auth_router,
    facility_router,
    health_router,
    notifications_router,
    permissions_router,
    publishing_router,
    tasks_router,
)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    # In production, use migrations instead
    Base.metadata.create_all(bind=engine)
    api_logger.info("CarePublish API started", environment=settings.environment)
    yield
    api_logger.info("CarePublish API stopped")


app = FastAPI(
    title="CarePublish API",
    description="Content approval and publishing workflow for healthcare facilities",
    version="1.0.0",
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(ApiException, api_exception_handler)

app.add_middleware(SecurityHeadersMiddleware)

if settings.debug:
    app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    max_age=3600,
)

app.include_router(auth_router)
app.include_router(facility_router)
app.include_router(health_router)
app.include_router(notifications_router)
app.include_router(permissions_router)
app.include_router(publishing_router)
app.include_router(tasks_router)


@app.get("/")
def root():
    return {
        "message": "CarePublish API",
        "docs": "/api/docs" if settings.debug else "Disabled in production",
    }
