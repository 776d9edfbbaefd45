"""
Entities for scraped manga, their chapters and chapter pages.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from manga_scraper.entities.base import Base


class Manga(Base):
    """
    A manga/manhwa/manhua series.

    ``slug`` is the natural key: re-scraping the same series URL updates
    this row instead of inserting a new one. The view/favorite/chapter
    counters belong to the reading site and are never written by the scraper.
    """

    __tablename__ = "manga"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    banner_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)  # ongoing, completed
    genres: Mapped[list | None] = mapped_column(JSON, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    artist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    country: Mapped[str | None] = mapped_column(String(20), nullable=True)
    alternative_titles: Mapped[list | None] = mapped_column(JSON, nullable=True)

    source: Mapped[str] = mapped_column(String(100), nullable=False)
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    last_scraped_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    favorites: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chapter_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    chapters: Mapped[list["Chapter"]] = relationship(back_populates="manga")


class Chapter(Base):
    """One chapter of a manga. ``(manga_id, chapter_number)`` is unique."""

    __tablename__ = "chapters"
    __table_args__ = (
        UniqueConstraint("manga_id", "chapter_number", name="uq_chapters_manga_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    manga_id: Mapped[int] = mapped_column(
        ForeignKey("manga.id"), nullable=False, index=True
    )
    chapter_number: Mapped[float] = mapped_column(Float, nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    release_date: Mapped[str | None] = mapped_column(String(100), nullable=True)  # as shown by the site
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    manga: Mapped[Manga] = relationship(back_populates="chapters")
    pages: Mapped[list["ChapterPage"]] = relationship(
        back_populates="chapter", order_by="ChapterPage.page_number"
    )


class ChapterPage(Base):
    """One page image of a chapter. ``(chapter_id, page_number)`` is unique."""

    __tablename__ = "chapter_pages"
    __table_args__ = (
        UniqueConstraint("chapter_id", "page_number", name="uq_chapter_pages_chapter_page"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chapter_id: Mapped[int] = mapped_column(
        ForeignKey("chapters.id"), nullable=False, index=True
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    chapter: Mapped[Chapter] = relationship(back_populates="pages")
