"""URL Shortener Service Layer - Core Business Logic

This module holds the assignment protocol (how a URL gets its short code),
the redirect/accounting path and the lifecycle operations over stored
mappings.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    Service Layer                            │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │   URL Service   │  │  Code Generator │  │ ClickRecorder│ │
    │  │                 │  │                 │  │              │ │
    │  │ • Create URLs   │  │ • nanoid        │  │ • create_task│ │
    │  │ • Resolve codes │  │ • 62-char       │  │ • clicks + 1 │ │
    │  │ • Update/Delete │  │   alphabet      │  │ • swallow    │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                                        │
                ▼                                        ▼
    ┌─────────────────────────────────────────────────────────────┐
    │          PostgreSQL  (urls, UNIQUE(short_code))             │
    └─────────────────────────────────────────────────────────────┘

Assignment Protocol
-------------------
::
    ┌─────────────┐
    │ create_short │
    │ _url(url, c) │
    └──────┬──────┘
           ▼
    ┌─────────────┐   custom code?   ┌──────────────┐
    │ validate URL │ ───── YES ─────▶ │ single INSERT │──▶ unique violation
    └──────┬──────┘                  └──────────────┘    → CustomCodeTaken
           │ NO
           ▼
    ┌─────────────┐  found  ┌──────────────┐
    │ find by URL  │ ──────▶ │ return as-is │
    └──────┬──────┘         └──────────────┘
           ▼
    ┌─────────────┐
    │ for attempt │ ◀──── unique violation (fresh code every time)
    │ in 1..5:    │
    │  INSERT     │ ────▶ other failure: propagate
    └──────┬──────┘
           ▼
    CouldNotGenerateUniqueCode

Key Behaviours
===============
- The unique index is the only arbiter of code ownership; there is no
  in-process lock and no "is it free?" pre-check.
- Anonymous shortening is idempotent per exact URL string, except when two
  first-time submissions race (both may insert). This is accepted.
- Redirect never waits on click accounting.

"""

import time
from typing import Optional

from prometheus_client import Counter, Histogram
from sqlalchemy.ext.asyncio import AsyncSession

from app import repository
from app.clicks import ClickRecorder
from app.config import Settings
from app.enums import CodeSource, RequestStatus
from app.exceptions import (
    CouldNotGenerateUniqueCodeError,
    CustomCodeTakenError,
    DuplicateShortCodeError,
    InvalidInputError,
)
from app.models import URL
from app.shortcode import generate_short_code, is_valid_short_code
from app.validation import is_valid_url

__all__ = ["MAX_RETRIES", "RESERVED_CODES", "URLShorteningService"]


# ============================================================================
# CONSTANTS AND CONFIGURATION
# ============================================================================

MAX_RETRIES = 5

# Fixed routes that a GET /{code} could never reach
RESERVED_CODES = frozenset({"urls", "shorten", "stats", "health", "metrics", "docs", "redoc"})

INVALID_URL_MESSAGE = "Invalid URL. Must start with http:// or https://"


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

URL_CREATION_REQUESTS_TOTAL = Counter(
    "url_shortener_creation_requests_total",
    "Total URL creation requests",
    ["status", "source"],
)
URL_CREATION_DURATION = Histogram(
    "url_shortener_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "url_shortener_short_code_collisions_total",
    "Generated short codes rejected by the unique index",
)
URL_REDIRECT_REQUESTS_TOTAL = Counter(
    "url_shortener_redirect_requests_total",
    "Total URL redirect requests",
    ["status"],
)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class URLShorteningService:
    """Core service class for URL shortening operations.

    One instance serves one request: it holds that request's database
    session and logger, plus the process-wide click recorder.

    Example:
        >>> service = URLShorteningService.from_context(ctx)
        >>> url = await service.create_short_url("https://example.com")
        >>> print(f"Shortened: {url.short_code}")
    """

    def __init__(self, ctx: 'RequestContext'):
        self._db: AsyncSession = ctx.database
        self._clicks: ClickRecorder = ctx.click_recorder
        self._logger = ctx.logger
        self._settings: Settings = ctx.settings
        self._ctx = ctx

    @classmethod
    def from_context(cls, ctx: 'RequestContext') -> 'URLShorteningService':
        return cls(ctx)

    # ========================================================================
    # ASSIGNMENT PROTOCOL
    # ========================================================================

    async def create_short_url(self, original_url: str, custom_code: Optional[str] = None) -> URL:
        """Create (or reuse) a short URL.

        Args:
            original_url: Absolute http(s) URL to shorten
            custom_code: Optional caller-chosen code; skips de-duplication

        Returns:
            URL: The stored mapping, possibly a pre-existing one

        Raises:
            InvalidInputError: Malformed URL or custom code (before any store access)
            CustomCodeTakenError: ``custom_code`` already belongs to another mapping
            CouldNotGenerateUniqueCodeError: Every generated code collided
            StoreError: Any other store failure, unchanged
        """
        source = CodeSource.CUSTOM if custom_code is not None else CodeSource.GENERATED
        start_time = time.perf_counter()
        status = RequestStatus.ERROR
        try:
            self._validate_url(original_url)
            if custom_code is not None:
                self._validate_custom_code(custom_code)
                url = await self._insert_custom(original_url, custom_code)
                status = RequestStatus.SUCCESS
                return url

            existing = await repository.find_by_original_url(self._db, original_url)
            if existing is not None:
                self._logger.info(f"Short URL already existed: '{existing.short_code}' for {original_url[:50]}")
                status = RequestStatus.DEDUPLICATED
                return existing

            url = await self._insert_generated(original_url)
            status = RequestStatus.SUCCESS
            return url

        except InvalidInputError:
            status = RequestStatus.VALIDATION_ERROR
            raise
        except CustomCodeTakenError:
            status = RequestStatus.CONFLICT
            raise
        except CouldNotGenerateUniqueCodeError:
            status = RequestStatus.EXHAUSTED
            raise
        finally:
            duration = time.perf_counter() - start_time
            URL_CREATION_DURATION.observe(duration)
            URL_CREATION_REQUESTS_TOTAL.labels(status=status, source=source).inc()

    async def _insert_custom(self, original_url: str, custom_code: str) -> URL:
        try:
            url = await repository.insert_url(self._db, original_url, custom_code)
        except DuplicateShortCodeError as exc:
            self._logger.warning(f"Custom code collision: '{custom_code}'")
            raise CustomCodeTakenError(custom_code) from exc
        self._logger.info(f"URL created with custom code: {custom_code} -> {original_url[:50]}")
        return url

    async def _insert_generated(self, original_url: str) -> URL:
        length = self._settings.SHORT_CODE_LENGTH
        for attempt in range(1, MAX_RETRIES + 1):
            short_code = generate_short_code(length)
            try:
                url = await repository.insert_url(self._db, original_url, short_code)
            except DuplicateShortCodeError:
                SHORT_CODE_COLLISIONS_TOTAL.inc()
                self._logger.info(f"Generated code '{short_code}' collided (attempt {attempt}/{MAX_RETRIES})")
                continue
            self._logger.info(f"URL created: {short_code} -> {original_url[:50]}")
            return url

        self._logger.error(
            f"Exhausted {MAX_RETRIES} attempts generating a unique {length}-character code; "
            "code space may be too small for the table"
        )
        raise CouldNotGenerateUniqueCodeError(MAX_RETRIES)

    # ========================================================================
    # REDIRECT / ACCOUNTING PATH
    # ========================================================================

    async def resolve_and_record(self, short_code: str) -> Optional[str]:
        """Resolve a code to its destination and count the click in the background.

        Returns:
            Optional[str]: The original URL, or None for an unknown code
        """
        url = await repository.find_by_short_code(self._db, short_code)
        if url is None:
            URL_REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            self._logger.warning(f"Redirect 404: short code not found: {short_code}")
            return None

        self._clicks.record(url.id)
        URL_REDIRECT_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        return url.original_url

    # ========================================================================
    # LIFECYCLE OPERATIONS
    # ========================================================================

    async def update_destination(self, short_code: str, new_url: str) -> Optional[URL]:
        """Point an existing code at a new URL.

        Raises:
            InvalidInputError: ``new_url`` is malformed; nothing is written
        """
        self._validate_url(new_url)
        url = await repository.update_original_url(self._db, short_code, new_url)
        if url is None:
            self._logger.warning(f"Update 404: short code not found: {short_code}")
        else:
            self._logger.info(f"Destination updated: {short_code} -> {new_url[:50]}")
        return url

    async def delete_by_code(self, short_code: str) -> Optional[URL]:
        url = await repository.delete_by_code(self._db, short_code)
        if url is None:
            self._logger.warning(f"Delete 404: short code not found: {short_code}")
        else:
            self._logger.info(f"Short URL deleted: {short_code}")
        return url

    async def get_stats(self, short_code: str) -> Optional[URL]:
        return await repository.find_by_short_code(self._db, short_code)

    async def list_all(self, skip: int = 0, limit: Optional[int] = None) -> list[URL]:
        """All mappings, newest first. ``limit=None`` returns the whole table."""
        return await repository.list_urls(self._db, skip=skip, limit=limit)

    # ========================================================================
    # VALIDATION HELPERS
    # ========================================================================

    @staticmethod
    def _validate_url(candidate: str) -> None:
        if not is_valid_url(candidate):
            raise InvalidInputError(INVALID_URL_MESSAGE)

    @staticmethod
    def _validate_custom_code(custom_code: str) -> None:
        if not is_valid_short_code(custom_code):
            raise InvalidInputError("Custom code must be 1-64 alphanumeric characters")
        if custom_code in RESERVED_CODES:
            raise InvalidInputError(f"Custom code '{custom_code}' is reserved")
