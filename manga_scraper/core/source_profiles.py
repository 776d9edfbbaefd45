"""Source profiles: a site's base URL plus the CSS selectors used to read it.

Selector fields arrive as free-form comma-separated strings (that is how
administrators type them). They are split once at load time into ordered
tuples; the extractor tries each selector in turn and the first match wins.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Selectors = tuple[str, ...]


def split_selectors(raw: Any) -> Selectors:
    """``".a, .b ,, .c"`` -> ``(".a", ".b", ".c")``. Lists are accepted as-is."""
    if raw is None:
        return ()
    if isinstance(raw, str):
        parts = raw.split(",")
    else:
        parts = list(raw)
    return tuple(p.strip() for p in parts if p and str(p).strip())


class SelectorSet(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    title: Selectors
    cover: Selectors = ()
    description: Selectors = ()
    status: Selectors = ()
    genres: Selectors = ()
    author: Selectors = ()
    artist: Selectors = ()
    rating: Selectors = ()
    chapter_list: Selectors = Field(
        validation_alias=AliasChoices("chapterList", "chapter_list", "chapters"),
    )
    chapter_title: Selectors = ("a",)
    chapter_url: Selectors = ("a",)
    chapter_date: Selectors = ()
    page_images: Selectors

    @field_validator("*", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Selectors:
        return split_selectors(value)

    @field_validator("title", "chapter_list", "page_images")
    @classmethod
    def _required(cls, value: Selectors) -> Selectors:
        if not value:
            raise ValueError("at least one selector is required")
        return value


class SourceProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    base_url: str = Field(..., min_length=1)
    selectors: SelectorSet

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_config(cls, name: str, base_url: str, config: dict | None) -> "SourceProfile":
        """Build a profile from a stored ``{"selectors": {...}}`` config blob."""
        selectors = (config or {}).get("selectors", {})
        return cls(name=name, base_url=base_url, selectors=SelectorSet.model_validate(selectors))


def normalize_source_name(name: str) -> str:
    return "-".join(name.strip().lower().split())


# Madara-theme WordPress sites share most of this layout.
LEKMANGA = SourceProfile(
    name="lekmanga",
    base_url="https://lekmanga.net",
    selectors=SelectorSet(
        title=".post-title h1, h1.entry-title, .post-title h3",
        cover=".summary_image img",
        description=".summary__content, .description-summary, .manga-excerpt",
        status=".post-status .summary-content, .post-content_item .summary-content",
        genres=".genres-content a, a[rel=tag]",
        author=".author-content a, .author-content",
        artist=".artist-content a, .artist-content",
        rating=".post-total-rating .score, span.score",
        chapter_list="li.wp-manga-chapter, .chapter-li",
        chapter_title="a",
        chapter_url="a",
        chapter_date=".chapter-release-date",
        page_images=".reading-content img, img.wp-manga-chapter-img, .page-break img",
    ),
)

BUILTIN_PROFILES: dict[str, SourceProfile] = {LEKMANGA.name: LEKMANGA}
