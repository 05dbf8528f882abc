"""Fire-and-forget click accounting.

Flow Diagram — ClickRecorder.record()
=====================================
::
    ┌─────────────┐
    │  Redirect    │
    │  resolved    │
    └──────┬──────┘
           ▼
    ┌─────────────┐      returns immediately,
    │ create_task │ ───▶ redirect is sent
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ own session │
    │ clicks + 1  │
    └──────┬──────┘
    FAILED? │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌──────────┐
│ commit  │  │ log +    │
│         │  │ count    │
└─────────┘  └──────────┘

Key Behaviours
===============
- The increment runs in its own session so it never shares a transaction
  with the request that triggered it.
- Errors are logged and counted, never re-raised.
- In-flight tasks are referenced until done so the event loop cannot
  garbage-collect them; ``drain()`` awaits whatever is still pending.
"""

import asyncio
import logging

from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import repository

__all__ = ["ClickRecorder"]

logger = logging.getLogger("urlshortener.clicks")

CLICK_INCREMENTS_TOTAL = Counter(
    "url_shortener_click_increments_total",
    "Click increments by outcome",
    ["outcome"],
)


class ClickRecorder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, url_id: int) -> asyncio.Task:
        """Schedule ``clicks + 1`` for ``url_id`` without waiting for it."""
        task = asyncio.create_task(self._increment(url_id), name=f"click:{url_id}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding increments, at most ``timeout`` seconds."""
        if not self._pending:
            return
        pending = list(self._pending)
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning("%d click increments still pending after drain", len(not_done))

    async def _increment(self, url_id: int) -> None:
        try:
            async with self._session_factory() as session:
                updated = await repository.increment_clicks(session, url_id)
        except Exception:
            CLICK_INCREMENTS_TOTAL.labels(outcome="failed").inc()
            logger.exception("Failed to increment clicks for url id %s", url_id)
            return

        if updated:
            CLICK_INCREMENTS_TOTAL.labels(outcome="success").inc()
        else:
            # Deleted between lookup and increment
            CLICK_INCREMENTS_TOTAL.labels(outcome="missing").inc()
            logger.debug("Click for url id %s dropped, row no longer exists", url_id)
