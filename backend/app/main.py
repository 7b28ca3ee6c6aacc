"""FastAPI application entry point.

create_app() assembles the account service: logging, security headers,
credentialed CORS for the frontend, error-envelope handlers, rate limiting,
the v1 router and /health.

Run with: uvicorn app.main:app
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.database import dispose_engine
from app.core.errors import APIError
from app.core.logging_config import configure_logging
from app.core.rate_limiting import limiter, rate_limit_exceeded_handler
from app.core.responses import ErrorDetail, ErrorResponse

logger = structlog.get_logger()

# Sent on every response. The API serves JSON only, so nothing may frame,
# embed or load resources from it.
_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Embedder-Policy": "require-corp",
    "Cross-Origin-Resource-Policy": "same-origin",
}

_HSTS = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add _SECURITY_HEADERS, no-store on /api/ and HSTS in production.

    API bodies carry user records and access tokens, so they are never
    cached. HSTS assumes TLS terminates at a reverse proxy.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers.update(_SECURITY_HEADERS)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, max-age=0"
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = _HSTS
        return response


# =============================================================================
# Exception handlers
# =============================================================================


def _error_response(
    status_code: int, code: str, message: str, details: list[dict] | None = None
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump())


def api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body/query/path validation failures become 400 with details.

    Only loc, msg and type are echoed; the rejected input value is not, so a
    password that failed a length check is never reflected back.
    """
    details = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return _error_response(400, "VALIDATION_ERROR", "Request validation failed", details)


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback, tell the client nothing."""
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def _register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)


# =============================================================================
# Application factory
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logger.info("Account service starting", environment=settings.environment)
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Account Service API",
        version="1.0.0",
        description="User accounts, authentication and token lifecycle",
        lifespan=lifespan,
    )

    # Starlette runs the last-added middleware first; CORS has to answer
    # preflights before anything else sees the request.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        # The refresh cookie only travels on credentialed requests
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

    _register_exception_handlers(app)
    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        return {"status": "healthy"}

    return app


app = create_app()
