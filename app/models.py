"""SQLAlchemy ORM models for the URL shortener application.

This module defines the database schema using SQLAlchemy declarative models.
The unique index on ``short_code`` is the concurrency-control primitive for
code assignment, not just a lookup optimisation.

Data Model Layout
=================
::
    urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ original_url (TEXT NOT NULL)
    ├─ short_code (VARCHAR(64) NOT NULL, UNIQUE INDEX idx_urls_short_code)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ clicks (BIGINT NOT NULL DEFAULT 0)

How to Use
===========
**Step 1 — Import**::
    from app.models import URL

**Step 2 — Query URLs**::
    result = await db.execute(select(URL).where(URL.short_code == "abc1234"))
    url = result.scalar_one_or_none()

**Step 3 — Count a click (atomic, store-side arithmetic)**::
    await db.execute(update(URL).where(URL.id == url.id).values(clicks=URL.clicks + 1))
    await db.commit()

Key Behaviours
===============
- short_code is unique and case-sensitive; it never changes after insert.
- created_at is set once by the database.
- clicks starts at 0 and is only ever incremented by one per redirect.

Classes:
    URL:  Represents a shortened URL mapping with click tracking.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.shortcode import MAX_SHORT_CODE_LENGTH

__all__ = ["URL"]


class URL(Base):
    __tablename__ = "urls"
    __table_args__ = (Index("idx_urls_short_code", "short_code", unique=True),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    short_code: Mapped[str] = mapped_column(String(MAX_SHORT_CODE_LENGTH), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    clicks: Mapped[int] = mapped_column(BigInteger, default=0, server_default="0", nullable=False)

    def __repr__(self) -> str:
        return f"<URL(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"
