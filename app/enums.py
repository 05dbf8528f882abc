"""Shared enums for the URL shortener application.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CodeSource"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    DEDUPLICATED = "deduplicated"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    EXHAUSTED = "exhausted"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CodeSource(StrEnum):
    """Where a short code came from, used as a metrics label."""

    GENERATED = "generated"
    CUSTOM = "custom"
