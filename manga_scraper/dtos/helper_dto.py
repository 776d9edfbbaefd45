"""
DTOs for the Cloudflare bypass and AI metadata extraction helpers.
"""

from pydantic import BaseModel, ConfigDict, Field


class BypassRequest(BaseModel):
    """Body of POST /cloudflare-bypass."""

    url: str = Field(..., min_length=1)
    wait_for_selector: str | None = Field(None, alias="waitForSelector")
    timeout: int | None = Field(None, gt=0, description="Upstream timeout in milliseconds")

    model_config = ConfigDict(populate_by_name=True)


class BypassResult(BaseModel):
    html: str
    status: int = 200
    method: str


class ExtractRequest(BaseModel):
    """Body of POST /extract-manga-info."""

    url: str = Field(..., min_length=1)
    manga_id: int | None = Field(None, alias="mangaId")

    model_config = ConfigDict(populate_by_name=True)


class MangaMetadata(BaseModel):
    """Structured output the LLM is constrained to."""

    title: str
    description: str | None = None
    genres: list[str] = Field(default_factory=list)
    author: str | None = None
    artist: str | None = None
    status: str | None = Field(None, pattern="^(ongoing|completed)$")
    year: int | None = None
    country: str | None = Field(None, pattern="^(japan|korea|china|other)$")
    alternative_titles: list[str] = Field(default_factory=list)
