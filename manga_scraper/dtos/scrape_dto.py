"""
DTOs for scrape requests, extraction results and scrape job records.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JobType(StrEnum):
    manga_info = "manga_info"
    chapters = "chapters"
    pages = "pages"


class JobStatus(StrEnum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class MangaInfo(BaseModel):
    """Best-effort metadata pulled from a manga page. Missing fields stay empty."""

    title: str = ""
    cover: str | None = None
    description: str = ""
    status: str = "completed"
    author: str | None = None
    artist: str | None = None
    rating: float | None = None
    genres: list[str] = Field(default_factory=list)


class ChapterStub(BaseModel):
    chapter_number: float
    title: str
    source_url: str
    release_date: str | None = None


class PageStub(BaseModel):
    page_number: int
    image_url: str


class ChapterListing(BaseModel):
    """Chapter stubs plus how many list elements the page had.

    ``partial`` is set when parsing stopped early on a broken element.
    """

    chapters: list[ChapterStub] = Field(default_factory=list)
    total_elements: int = 0
    partial: bool = False


class ScrapeRequest(BaseModel):
    """Body of POST /scrape."""

    url: str = Field(..., min_length=1)
    job_type: JobType = Field(..., alias="jobType")
    chapter_id: int | None = Field(None, alias="chapterId")
    source: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class ScrapeResult(BaseModel):
    """What one orchestrator run produced."""

    job_id: int
    job_type: JobType
    data: Any = None
    manga_id: int | None = None
    pages_count: int = 0
    total_found: int = 0
    partial: bool = False


class ScrapeJobRead(BaseModel):
    """DTO for reading scrape job data."""

    id: int
    job_type: str
    status: str
    source_url: str
    manga_id: int | None
    retry_count: int
    max_retries: int
    error_message: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
