"""Mapping store tests against a real database."""

import pytest
from sqlalchemy.exc import IntegrityError

from app import repository
from app.exceptions import DuplicateShortCodeError


@pytest.mark.asyncio
async def test_insert_assigns_identity_and_defaults(db_session):
    url = await repository.insert_url(db_session, "https://example.com", "abc1234")

    assert url.id is not None
    assert url.clicks == 0
    assert url.created_at is not None


@pytest.mark.asyncio
async def test_insert_duplicate_short_code(db_session):
    await repository.insert_url(db_session, "https://example.com/a", "dup1234")

    with pytest.raises(DuplicateShortCodeError) as excinfo:
        await repository.insert_url(db_session, "https://example.com/b", "dup1234")

    assert excinfo.value.short_code == "dup1234"
    # Session is usable again after the rollback
    assert await repository.find_by_short_code(db_session, "dup1234") is not None


@pytest.mark.asyncio
async def test_ids_are_monotonic(db_session):
    first = await repository.insert_url(db_session, "https://example.com/1", "one1111")
    second = await repository.insert_url(db_session, "https://example.com/2", "two2222")
    assert second.id > first.id


@pytest.mark.asyncio
async def test_find_by_original_url_is_exact(db_session):
    await repository.insert_url(db_session, "https://example.com/a", "exact11")

    assert await repository.find_by_original_url(db_session, "https://example.com/a") is not None
    assert await repository.find_by_original_url(db_session, "https://example.com/a/") is None
    assert await repository.find_by_original_url(db_session, "https://EXAMPLE.com/a") is None


@pytest.mark.asyncio
async def test_increment_is_store_side(db_session, session_factory):
    url = await repository.insert_url(db_session, "https://example.com", "inc1234")

    async with session_factory() as other:
        assert await repository.increment_clicks(other, url.id) is True
        assert await repository.increment_clicks(other, url.id) is True

    await db_session.refresh(url)
    assert url.clicks == 2


@pytest.mark.asyncio
async def test_increment_missing_row(db_session):
    assert await repository.increment_clicks(db_session, 999_999) is False


def test_unique_violation_detection_postgres():
    class FakeAsyncpgError(Exception):
        def __init__(self, message, sqlstate):
            super().__init__(message)
            self.sqlstate = sqlstate

    assert repository.is_unique_violation(
        IntegrityError("INSERT", {}, FakeAsyncpgError("duplicate key value", "23505"))
    )
    assert not repository.is_unique_violation(
        IntegrityError("INSERT", {}, FakeAsyncpgError("null value in column", "23502"))
    )


def test_unique_violation_detection_sqlite_message():
    class FakeSqliteError(Exception):
        pass

    assert repository.is_unique_violation(
        IntegrityError("INSERT", {}, FakeSqliteError("UNIQUE constraint failed: urls.short_code"))
    )
    assert not repository.is_unique_violation(
        IntegrityError("INSERT", {}, FakeSqliteError("NOT NULL constraint failed: urls.original_url"))
    )
