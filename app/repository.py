"""Mapping store: every query the service runs against the ``urls`` table.

Each function takes the caller's ``AsyncSession`` and commits its own writes.
Insert failures caused by the ``short_code`` unique index surface as
``DuplicateShortCodeError``; every other SQLAlchemy failure is wrapped in
``StoreError``. Nothing here decides what a collision *means*.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import DuplicateShortCodeError, StoreError
from app.models import URL

__all__ = [
    "delete_by_code",
    "find_by_original_url",
    "find_by_short_code",
    "increment_clicks",
    "insert_url",
    "is_unique_violation",
    "list_urls",
    "update_original_url",
]

logger = logging.getLogger("urlshortener.repository")

PG_UNIQUE_VIOLATION = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Tell a unique-constraint failure apart from NOT NULL, FK and friends."""
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == PG_UNIQUE_VIOLATION or getattr(orig, "pgcode", None) == PG_UNIQUE_VIOLATION:
        return True
    # sqlite3 exposes the extended result code name on Python 3.11+
    if getattr(orig, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
        return True
    return "UNIQUE constraint failed" in str(orig)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(f"{operation} failed") from exc


async def find_by_short_code(db: AsyncSession, short_code: str) -> URL | None:
    with _store_errors("find_by_short_code"):
        result = await db.execute(select(URL).where(URL.short_code == short_code).limit(1))
        return result.scalar_one_or_none()


async def find_by_original_url(db: AsyncSession, original_url: str) -> URL | None:
    with _store_errors("find_by_original_url"):
        result = await db.execute(select(URL).where(URL.original_url == original_url).order_by(URL.id).limit(1))
        return result.scalar_one_or_none()


async def insert_url(db: AsyncSession, original_url: str, short_code: str) -> URL:
    """Insert one mapping; the unique index decides whether the code is free."""
    url = URL(original_url=original_url, short_code=short_code)
    try:
        db.add(url)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if is_unique_violation(exc):
            raise DuplicateShortCodeError(short_code) from exc
        raise StoreError("insert_url failed") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StoreError("insert_url failed") from exc

    with _store_errors("insert_url"):
        await db.refresh(url)
    return url


async def update_original_url(db: AsyncSession, short_code: str, original_url: str) -> URL | None:
    stmt = (
        update(URL)
        .where(URL.short_code == short_code)
        .values(original_url=original_url)
        .returning(URL)
        .execution_options(populate_existing=True)
    )
    with _store_errors("update_original_url"):
        result = await db.execute(stmt)
        url = result.scalar_one_or_none()
        await db.commit()
    return url


async def delete_by_code(db: AsyncSession, short_code: str) -> URL | None:
    """Physically delete a mapping and return the row as it was."""
    stmt = delete(URL).where(URL.short_code == short_code).returning(URL)
    with _store_errors("delete_by_code"):
        result = await db.execute(stmt)
        url = result.scalar_one_or_none()
        await db.commit()
    return url


async def list_urls(db: AsyncSession, skip: int = 0, limit: int | None = None) -> list[URL]:
    stmt = select(URL).order_by(URL.created_at.desc(), URL.id.desc()).offset(skip)
    if limit is not None:
        stmt = stmt.limit(limit)
    with _store_errors("list_urls"):
        result = await db.execute(stmt)
        return list(result.scalars().all())


async def increment_clicks(db: AsyncSession, url_id: int) -> bool:
    """``clicks = clicks + 1`` evaluated by the store. Returns False if the row is gone."""
    stmt = (
        update(URL)
        .where(URL.id == url_id)
        .values(clicks=URL.clicks + 1)
        .execution_options(synchronize_session=False)
    )
    with _store_errors("increment_clicks"):
        result = await db.execute(stmt)
        await db.commit()
    return result.rowcount > 0
