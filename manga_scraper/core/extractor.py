"""Selector-driven extraction of manga metadata, chapter lists and page images.

Everything here is a pure function over a parsed document and a
SourceProfile; no I/O happens in this module. Third-party HTML is
unreliable, so every field is best-effort: a selector that matches nothing
yields an empty value rather than an error.
"""

import logging
import re
from typing import Iterator, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from manga_scraper.core.source_profiles import Selectors, SourceProfile
from manga_scraper.dtos.scrape_dto import ChapterListing, ChapterStub, MangaInfo, PageStub

logger = logging.getLogger(__name__)

NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")
URL_CHAPTER_NUMBER_RE = re.compile(r"chapter[-_/\s]*(\d+(?:\.\d+)?)", re.IGNORECASE)

ONGOING_MARKERS = ("ongoing", "مستمر")
IMAGE_URL_ATTRS = ("src", "data-src", "data-lazy-src")
# Lazy-load stand-ins, never real page content.
PLACEHOLDER_MARKERS = ("loading", "placeholder")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def _select_first(root: Tag, selectors: Selectors) -> Optional[Tag]:
    for sel in selectors:
        el = root.select_one(sel)
        if el is not None:
            return el
    return None


def _select_all(root: Tag, selectors: Selectors) -> list[Tag]:
    """Elements matched by the first selector that matches anything."""
    for sel in selectors:
        found = root.select(sel)
        if found:
            return found
    return []


def _first_text(root: Tag, selectors: Selectors) -> str:
    for sel in selectors:
        el = root.select_one(sel)
        if el is None:
            continue
        text = el.get_text(" ", strip=True)
        if text:
            return text
    return ""


def _image_of(el: Tag) -> Optional[Tag]:
    return el if el.name == "img" else el.find("img")


def _attr(el: Tag, names: tuple[str, ...]) -> str:
    for name in names:
        value = (el.get(name) or "").strip()
        if value:
            return value
    return ""


def resolve_url(base_url: str, href: str) -> str:
    return urljoin(base_url.rstrip("/") + "/", href.strip())


def parse_rating(text: str) -> Optional[float]:
    match = NUMBER_RE.search(text or "")
    return float(match.group(1)) if match else None


def normalize_status(text: str) -> str:
    lowered = (text or "").lower()
    return "ongoing" if any(m in lowered for m in ONGOING_MARKERS) else "completed"


def extract_manga_info(doc: BeautifulSoup, profile: SourceProfile) -> MangaInfo:
    sel = profile.selectors

    cover = None
    for s in sel.cover:
        el = doc.select_one(s)
        img = _image_of(el) if el is not None else None
        src = _attr(img, ("src", "data-src")) if img is not None else ""
        if src:
            cover = resolve_url(profile.base_url, src)
            break

    genres = [
        text
        for text in (el.get_text(" ", strip=True) for el in _select_all(doc, sel.genres))
        if text
    ]

    return MangaInfo(
        title=_first_text(doc, sel.title),
        cover=cover,
        description=_first_text(doc, sel.description),
        status=normalize_status(_first_text(doc, sel.status)),
        author=_first_text(doc, sel.author) or None,
        artist=_first_text(doc, sel.artist) or None,
        rating=parse_rating(_first_text(doc, sel.rating)),
        genres=genres,
    )


def chapter_number_from(title: str, url: str, fallback: float) -> float:
    """Title number, else the number after "chapter" in the URL, else *fallback*."""
    match = NUMBER_RE.search(title or "")
    if match:
        return float(match.group(1))
    match = URL_CHAPTER_NUMBER_RE.search(url or "")
    if match:
        return float(match.group(1))
    return float(fallback)


def _parse_chapter_element(
    el: Tag, index: int, total: int, profile: SourceProfile
) -> Optional[ChapterStub]:
    sel = profile.selectors
    link = el if el.name == "a" else _select_first(el, sel.chapter_url)
    href = (link.get("href") or "").strip() if link is not None else ""
    if not href:
        return None

    title_el = _select_first(el, sel.chapter_title) or link
    title = title_el.get_text(" ", strip=True)
    url = resolve_url(profile.base_url, href)

    return ChapterStub(
        # newest-first lists without numeric cues fall back to reverse DOM position
        chapter_number=chapter_number_from(title, url, total - index),
        title=title,
        source_url=url,
        release_date=_first_text(el, sel.chapter_date) or None,
    )


def iter_chapter_stubs(doc: BeautifulSoup, profile: SourceProfile) -> Iterator[ChapterStub]:
    elements = _select_all(doc, profile.selectors.chapter_list)
    total = len(elements)
    for index, el in enumerate(elements):
        stub = _parse_chapter_element(el, index, total, profile)
        if stub is None:
            logger.debug("Skipping chapter element %d: no link", index)
            continue
        yield stub


def extract_chapter_list(doc: BeautifulSoup, profile: SourceProfile) -> list[ChapterStub]:
    return list(iter_chapter_stubs(doc, profile))


def extract_chapter_listing(doc: BeautifulSoup, profile: SourceProfile) -> ChapterListing:
    """Like extract_chapter_list, but keeps what parsed before a broken element."""
    total = len(_select_all(doc, profile.selectors.chapter_list))
    chapters: list[ChapterStub] = []
    try:
        for stub in iter_chapter_stubs(doc, profile):
            chapters.append(stub)
    except Exception:
        if not chapters:
            raise
        logger.warning(
            "Chapter list for %s broke after %d of %d elements",
            profile.name, len(chapters), total, exc_info=True,
        )
        return ChapterListing(chapters=chapters, total_elements=total, partial=True)
    return ChapterListing(chapters=chapters, total_elements=total)


def extract_page_images(doc: BeautifulSoup, profile: SourceProfile) -> list[PageStub]:
    urls: list[str] = []
    for el in _select_all(doc, profile.selectors.page_images):
        img = _image_of(el)
        src = _attr(img, IMAGE_URL_ATTRS) if img is not None else ""
        if not src:
            continue
        if any(m in src.lower() for m in PLACEHOLDER_MARKERS):
            continue
        urls.append(resolve_url(profile.base_url, src))

    # Numbered after filtering so accepted pages are always 1..N.
    return [PageStub(page_number=i, image_url=url) for i, url in enumerate(urls, start=1)]
