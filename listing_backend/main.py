# ---------------------------------------------------------
# listing_backend/main.py
# Listing Marketplace - HTTP API
#
# Run: uvicorn listing_backend.main:app --reload (from repo root)
#
# - /api/auth        : register, login, me
# - /api/properties  : search, detail, broker CRUD, featured, visits
# - /api/brokers     : directory, own profile, profile completion
# - /api/admin       : broker verification queue, stats
# - /api/messages    : direct messages, conversations
# - /api/visits      : visit requests
# ---------------------------------------------------------

from __future__ import annotations

import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from listing_backend import routes_admin, routes_auth, routes_brokers, routes_messages, routes_properties, routes_visits
from listing_backend.config import ADMIN_EMAIL, ADMIN_PASSWORD, CORS_ORIGINS, IS_PROD, log_settings, validate_settings
from listing_backend.db import get_db_connection, get_engine, init_db
from listing_backend.errors import Conflict, MarketplaceError, ServerError
from listing_backend.logging_config import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Listing Marketplace Backend", version="1.0")

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes_auth.router)
app.include_router(routes_properties.router)
app.include_router(routes_brokers.router)
app.include_router(routes_admin.router)
app.include_router(routes_messages.router)
app.include_router(routes_visits.router)


# ---------------------------------------------------------
# Error rendering
# ---------------------------------------------------------
@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("[DB] Constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
    error = Conflict()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("[DB] Storage failure on %s %s", request.method, request.url.path)
    error = ServerError()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


# ---------------------------------------------------------
# Startup
# ---------------------------------------------------------
@app.on_event("startup")
def startup() -> None:
    setup_logging()
    validate_settings()
    log_settings()
    get_engine()
    init_db()

    if ADMIN_EMAIL and ADMIN_PASSWORD:
        with get_db_connection() as conn:
            routes_auth.ensure_admin(conn, ADMIN_EMAIL, ADMIN_PASSWORD)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
