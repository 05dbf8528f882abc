"""FastAPI route definitions for the URL shortener REST API.

This module provides all HTTP endpoints with dependency injection, domain
error translation and response serialization.

API Endpoint Overview
=====================
::
    GET    /health
        └─ HealthResponse (200) or 503

    GET    /urls?skip=&limit=
        └─ list[URLResponse] (200)

    GET    /stats/:short_code
        └─ URLResponse (200) or 404

    POST   /shorten
        ├─ URLCreate (request body)
        └─ URLResponse (200) or 400/409/500

    PUT    /:short_code
        ├─ URLUpdate (request body)
        └─ URLResponse (200) or 400/404

    DELETE /:short_code
        └─ URLResponse of the deleted row (200) or 404

    GET    /:short_code
        └─ 302 Redirect or 404

Key Behaviours
===============
- Static routes are registered before the ``/{short_code}`` catch-alls.
- Domain errors are mapped to status codes here. Unknown codes raise
  ShortURLNotFoundError and store failures fall through; both are answered
  by the application-level handlers in app.main.
- The redirect is returned without waiting for the click to be counted.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from app.dependencies import RequestContext, get_request_context, get_url_service
from app.enums import HealthStatus
from app.exceptions import (
    CouldNotGenerateUniqueCodeError,
    CustomCodeTakenError,
    InvalidInputError,
    ShortURLNotFoundError,
)
from app.schemas import ErrorResponse, HealthResponse, URLCreate, URLResponse, URLUpdate
from app.url_service import URLShorteningService

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(response: Response, ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    if db_status is not HealthStatus.HEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return HealthResponse(status=db_status, database=db_status)


@router.get("/urls", response_model=list[URLResponse], tags=["urls"])
async def list_urls(
    skip: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=1000),
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> list[URLResponse]:
    urls = await service.list_all(skip=skip, limit=limit)
    return [URLResponse.from_model(url, ctx.settings.BASE_URL) for url in urls]


@router.get(
    "/stats/{short_code}",
    response_model=URLResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["urls"],
)
async def get_stats(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLResponse:
    url = await service.get_stats(short_code)
    if url is None:
        ctx.logger.warning(f"Stats not found for short code: {short_code}")
        raise ShortURLNotFoundError(short_code)
    return URLResponse.from_model(url, ctx.settings.BASE_URL)


@router.post(
    "/shorten",
    response_model=URLResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["urls"],
)
async def shorten_url(
    payload: URLCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLResponse:
    ctx.logger.info(f"URL shortening requested: {payload.url[:50]}")
    try:
        url = await service.create_short_url(payload.url, payload.custom_code)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CustomCodeTakenError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except CouldNotGenerateUniqueCodeError as exc:
        raise HTTPException(status_code=500, detail="Could not generate unique short code") from exc

    ctx.logger.info(f"URL shortened: {url.short_code} in {ctx.get_duration():.1f}ms")
    return URLResponse.from_model(url, ctx.settings.BASE_URL)


@router.put(
    "/{short_code}",
    response_model=URLResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["urls"],
)
async def update_url(
    short_code: str,
    payload: URLUpdate,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLResponse:
    try:
        url = await service.update_destination(short_code, payload.url)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if url is None:
        raise ShortURLNotFoundError(short_code)
    return URLResponse.from_model(url, ctx.settings.BASE_URL)


@router.delete(
    "/{short_code}",
    response_model=URLResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["urls"],
)
async def delete_url(
    short_code: str,
    ctx: RequestContext = Depends(get_request_context),
    service: URLShorteningService = Depends(get_url_service),
) -> URLResponse:
    url = await service.delete_by_code(short_code)
    if url is None:
        raise ShortURLNotFoundError(short_code)
    return URLResponse.from_model(url, ctx.settings.BASE_URL)


@router.get("/{short_code}", responses={404: {"model": ErrorResponse}}, tags=["redirect"])
async def redirect_to_url(
    short_code: str,
    service: URLShorteningService = Depends(get_url_service),
) -> RedirectResponse:
    original_url = await service.resolve_and_record(short_code)
    if original_url is None:
        raise ShortURLNotFoundError(short_code)
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
