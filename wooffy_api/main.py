from sqlalchemy import text

from wooffy_api.core.errors import ApiError
from wooffy_api.core.observability import (
    api_error_handler,
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from wooffy_api.core.config import settings
from wooffy_api.db.session import engine
from wooffy_api.routers import admin, email_verification, jobs, members, redemptions, users

app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description=(
        "Server-side functions for the Wooffy membership platform.\n\n"
        "Member-facing routes take the identity provider's bearer token. "
        "Scheduled routes under `/functions/v1` expect `X-Cron-Secret` when `CRON_SECRET` is set."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "redemptions", "description": "Offer and birthday-offer redemption at a business."},
        {"name": "members", "description": "Member card verification for businesses."},
        {"name": "email", "description": "Email verification and password reset links."},
        {"name": "jobs", "description": "Scheduled housekeeping and side effect retries."},
        {"name": "admin", "description": "Administrator-only operations and audit trail."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["*"]
allow_all_origins = "*" in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-cron-secret", "x-request-id"],
)

app.include_router(redemptions.router)
app.include_router(members.router)
app.include_router(email_verification.router)
app.include_router(jobs.router)
app.include_router(users.router)
app.include_router(admin.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
