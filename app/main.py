"""FastAPI application entry point for the URL shortener service.

This module configures and initializes the FastAPI application with
lifecycle management, error handlers, metrics and route registration.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ startup:    │
    │ init_db()   │
    │ services    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ lifespan()  │
    │ shutdown:   │
    │ drain clicks│
    │ close_db()  │
    └─────────────┘

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn app.main:app --host 0.0.0.0 --port 8000

**Step 2 — Make API calls**::
    curl -X POST http://localhost:8000/shorten \
         -H "Content-Type: application/json" \
         -d '{"url": "https://example.com"}'

    curl -i http://localhost:8000/<short_code>

Key Behaviours
===============
- Database tables are created automatically on startup.
- Click increments still in flight at shutdown are awaited (bounded) before
  the engine is disposed.
- Request body errors answer 400; store failures answer 500 with a generic
  message and are logged with the request id.
- Requests are rate limited per client IP (global, plus a stricter limit on
  POST /shorten); over the limit they answer 429 with Retry-After.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import get_settings
from app.database import close_db, init_db
from app.dependencies import _service_manager
from app.exceptions import ShortURLNotFoundError, StoreError
from app.ratelimit import FixedWindowRateLimiter, get_client_ip, rate_limit_headers, too_many_requests
from app.routes import router

settings = get_settings()
logger = logging.getLogger("urlshortener.app")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    _service_manager.initialize()
    await init_db()
    logger.info(f"Application '{settings.APP_NAME}' started ({settings.APP_ENV})")
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()
    logger.info("Application shut down")


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="URL shortener with click tracking",
    lifespan=lifespan,
)


RATE_LIMIT_EXEMPT_PATHS = frozenset({"/health", "/metrics"})

global_limiter = FixedWindowRateLimiter(
    "global", settings.RATE_LIMIT_GLOBAL_MAX, settings.RATE_LIMIT_WINDOW_SECONDS
)
shorten_limiter = FixedWindowRateLimiter(
    "shorten", settings.RATE_LIMIT_SHORTEN_MAX, settings.RATE_LIMIT_WINDOW_SECONDS
)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next) -> Response:
    if not settings.RATE_LIMIT_ENABLED or request.url.path in RATE_LIMIT_EXEMPT_PATHS:
        return await call_next(request)

    client_ip = get_client_ip(request, trust_forwarded=settings.RATE_LIMIT_TRUST_FORWARDED)
    result = global_limiter.hit(client_ip)
    if result.allowed and request.method == "POST" and request.url.path == "/shorten":
        result = shorten_limiter.hit(client_ip)

    if not result.allowed:
        logger.warning(f"Rate limit exceeded for {client_ip} on {request.method} {request.url.path}")
        return too_many_requests(result)

    response = await call_next(request)
    response.headers.update(rate_limit_headers(result))
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id", "-")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        detail = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(ShortURLNotFoundError)
async def not_found_exception_handler(request: Request, exc: ShortURLNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Short URL not found"})


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(
        f"[{_request_id(request)}] Store failure on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"[{_request_id(request)}] Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
    excluded_handlers=["/metrics"],
).instrument(app).expose(app, include_in_schema=False)

app.include_router(router)
