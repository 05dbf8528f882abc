"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject the database session, the
click recorder and a request-scoped logger into the API endpoints, using a
singleton for the resources that outlive a single request.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.clicks import ClickRecorder
from app.config import Settings, get_settings
from app.database import async_session, get_db
from app.url_service import URLShorteningService

__all__ = [
    "RequestContext",
    "ServiceManager",
    "get_click_recorder",
    "get_request_context",
    "get_service_manager",
    "get_url_service",
]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Holds the resources that don't need to be created per request: settings,
    the configured ``urlshortener`` logger and the click recorder with its
    set of in-flight increments.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger(self.settings)
            self.click_recorder = ClickRecorder(async_session)
            self._initialized = True

    @staticmethod
    def _setup_logger(settings: Settings) -> logging.Logger:
        """Setup logger once; module loggers are children of it."""
        logger = logging.getLogger("urlshortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
        logger.setLevel(settings.LOG_LEVEL.upper())
        return logger

    async def cleanup(self) -> None:
        """Let pending click increments finish before the engine goes away."""
        if self._initialized:
            await self.click_recorder.drain(timeout=self.settings.CLICK_DRAIN_TIMEOUT_SECONDS)
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view of the shared resources.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        click_recorder: Recorder used for fire-and-forget click increments
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    click_recorder: ClickRecorder
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with the request context attached to every record."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        _service_manager.initialize()
    return _service_manager


async def get_click_recorder(manager: ServiceManager = Depends(get_service_manager)) -> ClickRecorder:
    return manager.click_recorder


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
    click_recorder: ClickRecorder = Depends(get_click_recorder),
) -> RequestContext:
    """Build the request context, reusing an ``X-Request-ID`` header when present."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id

    return RequestContext(
        database=db,
        service_manager=manager,
        click_recorder=click_recorder,
        request_id=request_id,
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


def get_url_service(ctx: RequestContext = Depends(get_request_context)) -> URLShorteningService:
    return URLShorteningService.from_context(ctx)
