"""
Entity for tracking individual scrape jobs.
One row is written per scrape invocation (manga_info, chapters or pages).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from manga_scraper.entities.base import Base


class ScrapeJob(Base):
    """
    Tracks one scrape invocation and its retry bookkeeping.

    Lifecycle: processing -> completed, or on failure retry_count += 1 and
    the job becomes pending (retries left) or failed (retries exhausted).
    Nothing re-runs pending jobs automatically; they wait for a manual retry.
    """

    __tablename__ = "scrape_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_type: Mapped[str] = mapped_column(String(20), nullable=False)  # manga_info, chapters, pages
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, processing, completed, failed
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    manga_id: Mapped[int | None] = mapped_column(
        ForeignKey("manga.id"), nullable=True, index=True
    )

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
