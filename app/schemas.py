"""Pydantic schemas for request/response validation in the URL shortener.

This module defines Pydantic models for API input parsing and output serialization.
URL well-formedness is deliberately *not* checked here: the service validates
URLs so the same rule applies to every caller, and a bad URL answers 400.

Schema Hierarchy
=================
::
    URLCreate (Input)
    ├─ url: str
    └─ custom_code: str | None (alias "customCode")

    URLUpdate (Input)
    └─ url: str

    URLResponse (Output)
    ├─ id: int
    ├─ short_code: str
    ├─ original_url: str
    ├─ short_url: str (computed from BASE_URL)
    ├─ clicks: int
    └─ created_at: datetime

    HealthResponse (Output)
    ├─ status: HealthStatus
    └─ database: HealthStatus

How to Use
===========
**Step 1 — Input parsing**::
    @router.post("/shorten")
    async def shorten_url(payload: URLCreate):
        return await service.create_short_url(payload.url, payload.custom_code)

**Step 2 — Response serialization**::
    return URLResponse.from_model(url, settings.BASE_URL)

Key Behaviours
===============
- An empty ``custom_code`` is treated as absent.
- Models are configured for ORM attribute mapping.
- FastAPI automatically generates OpenAPI docs from these schemas.

Classes:
    URLCreate:  Input schema for URL shortening requests.
    URLUpdate:  Input schema for destination updates.
    URLResponse:  Output schema for every record-returning endpoint.
    HealthResponse:  Output schema for health checks.
    ErrorResponse:  Body of every error response.
"""

import datetime

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.enums import HealthStatus
from app.models import URL

__all__ = [
    "URLCreate",
    "URLUpdate",
    "URLResponse",
    "HealthResponse",
    "ErrorResponse",
]


class URLCreate(BaseModel):
    url: str
    custom_code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("custom_code", "customCode"),
    )

    @field_validator("custom_code")
    @classmethod
    def blank_custom_code_is_absent(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class URLUpdate(BaseModel):
    url: str


class URLResponse(BaseModel):
    id: int
    short_code: str
    original_url: str
    short_url: str
    clicks: int
    created_at: datetime.datetime

    @classmethod
    def from_model(cls, url: URL, base_url: str) -> "URLResponse":
        return cls(
            id=url.id,
            short_code=url.short_code,
            original_url=url.original_url,
            short_url=f"{base_url.rstrip('/')}/{url.short_code}",
            clicks=int(url.clicks),
            created_at=url.created_at,
        )


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus


class ErrorResponse(BaseModel):
    detail: str
