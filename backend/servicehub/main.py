import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from servicehub.auth import parse_csv_env
from servicehub.dependencies import get_gateway
from servicehub.models import ReadyResponse
from servicehub.routers import auth, bookings, reviews, services
from servicehub.services.identity import FirebaseIdentityVerifier, IdentityVerifier
from servicehub.services.storage import COLLECTIONS, StorageGateway, select_gateway

logger = logging.getLogger(__name__)

API_ENDPOINTS = [
    "POST /api/auth/firebase-login",
    "GET /api/auth/verify (Protected)",
    "POST /api/auth/logout (Protected)",
    "GET /api/services",
    "POST /api/services (Protected)",
    "GET /api/services/:id",
    "GET /api/services/provider/:email (Protected)",
    "PUT /api/services/:id (Protected)",
    "DELETE /api/services/:id (Protected)",
    "GET /api/bookings (Admin)",
    "GET /api/bookings/user/:email (Protected)",
    "GET /api/bookings/provider/:email (Protected)",
    "POST /api/bookings (Protected)",
    "PUT /api/bookings/:id/status (Protected)",
    "DELETE /api/bookings/:id (Protected)",
    "GET /api/search/:query",
    "GET /api/bookings/stats",
    "GET /api/reviews/recent",
    "GET /api/reviews/stats",
    "POST /api/reviews (Protected)",
    "GET /api/reviews/service/:serviceId",
    "GET /api/reviews/user/:email (Protected)",
]


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        if exc.status_code == 404 and detail == "Not Found":
            detail = "Route not found"
        return JSONResponse(status_code=exc.status_code, content={"error": str(detail)}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    gateway: Optional[StorageGateway] = None,
    verifier: Optional[IdentityVerifier] = None,
) -> FastAPI:
    """Build the API.

    When ``gateway`` is omitted the storage backend is chosen once during
    startup (MongoDB, or the in-memory fallback when it is unreachable).
    """
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        selected_here = app.state.gateway is None
        if selected_here:
            app.state.gateway = select_gateway()
        yield
        if selected_here:
            app.state.gateway.close()
            app.state.gateway = None

    app = FastAPI(title="ServiceHub Pro API", version="1.0.0", lifespan=lifespan)
    app.state.gateway = gateway
    app.state.verifier = verifier or FirebaseIdentityVerifier()

    cors_origins = parse_csv_env("CORS_ORIGINS", "*")
    allow_any_origin = len(cors_origins) == 1 and cors_origins[0] == "*"
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        # Browsers reject wildcard CORS with credentials enabled.
        allow_credentials=not allow_any_origin,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    trusted_hosts = parse_csv_env("TRUSTED_HOSTS", "*")
    if not (len(trusted_hosts) == 1 and trusted_hosts[0] == "*"):
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=trusted_hosts)

    _install_error_handlers(app)

    app.include_router(auth.router, prefix="/api")
    app.include_router(services.router, prefix="/api")
    app.include_router(bookings.router, prefix="/api")
    app.include_router(reviews.router, prefix="/api")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/ready", response_model=ReadyResponse)
    def ready(request: Request):
        store = get_gateway(request)
        return ReadyResponse(
            database=store.backend_name,
            stats={name: store.count(name) for name in COLLECTIONS},
            endpoints=API_ENDPOINTS,
        )

    return app


app = create_app()
