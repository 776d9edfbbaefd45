"""
DTOs for manga, chapter and chapter page records.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# Column widths of the manga, chapters and chapter_pages tables.
SLUG_MAX = 255
TITLE_MAX = 500
NAME_MAX = 255
URL_MAX = 1000
RELEASE_DATE_MAX = 100
SOURCE_MAX = 100


class MangaCreate(BaseModel):
    """DTO for upserting a manga row from a manga_info scrape."""

    slug: str = Field(..., min_length=1, max_length=SLUG_MAX, description="Natural key parsed from the source URL")
    title: str = Field(..., max_length=TITLE_MAX)
    description: str | None = None
    cover_url: str | None = Field(None, max_length=URL_MAX)
    status: str = Field("ongoing", pattern="^(ongoing|completed)$")
    genres: list[str] = Field(default_factory=list)
    author: str | None = Field(None, max_length=NAME_MAX)
    artist: str | None = Field(None, max_length=NAME_MAX)
    rating: float | None = Field(None, ge=0)
    source: str = Field(..., min_length=1, max_length=SOURCE_MAX)
    source_url: str = Field(..., min_length=1, max_length=URL_MAX)
    last_scraped_at: datetime | None = None


class MangaRead(BaseModel):
    """DTO for reading manga data."""

    id: int
    slug: str
    title: str
    description: str | None
    cover_url: str | None
    banner_url: str | None
    status: str | None
    genres: list[str] | None
    author: str | None
    artist: str | None
    rating: float | None
    year: int | None
    country: str | None
    alternative_titles: list[str] | None
    source: str
    source_url: str
    last_scraped_at: datetime | None
    views: int
    favorites: int
    chapter_count: int

    model_config = ConfigDict(from_attributes=True)


class ChapterCreate(BaseModel):
    """DTO for upserting a chapter row keyed by (manga_id, chapter_number)."""

    manga_id: int
    chapter_number: float = Field(..., ge=0)
    title: str | None = Field(None, max_length=TITLE_MAX)
    source_url: str = Field(..., min_length=1, max_length=URL_MAX)
    release_date: str | None = Field(None, max_length=RELEASE_DATE_MAX)


class ChapterRead(BaseModel):
    """DTO for reading chapter data."""

    id: int
    manga_id: int
    chapter_number: float
    title: str | None
    source_url: str
    release_date: str | None
    views: int

    model_config = ConfigDict(from_attributes=True)


class ChapterPageCreate(BaseModel):
    """DTO for upserting a page row keyed by (chapter_id, page_number)."""

    chapter_id: int
    page_number: int = Field(..., ge=1)
    image_url: str = Field(..., min_length=1, max_length=URL_MAX)


class ChapterPageRead(BaseModel):
    """DTO for reading chapter page data."""

    id: int
    chapter_id: int
    page_number: int
    image_url: str

    model_config = ConfigDict(from_attributes=True)
