"""
LLM-assisted metadata extraction for manga pages the selector profiles
cannot parse.

Page text comes from the hosted scraping API (markdown) when configured,
otherwise from a direct fetch stripped down to visible text. The LLM is
forced to answer through a single tool call whose schema mirrors
MangaMetadata.
"""

import json
import logging
from typing import Optional

import requests
from bs4 import BeautifulSoup
from pydantic import ValidationError
from sqlalchemy.orm import Session

from manga_scraper.core.config import Settings, settings as default_settings
from manga_scraper.core.exceptions import ExtractionError, RateLimited, ScraperError
from manga_scraper.core.scraper_utils import build_browser_headers, get_random_user_agent
from manga_scraper.dtos.helper_dto import MangaMetadata
from manga_scraper.repositories.manga_repo import MangaRepository

logger = logging.getLogger(__name__)

MAX_PAGE_TEXT = 15000
MAX_PROMPT_TEXT = 12000
MIN_PAGE_TEXT = 100
TOOL_NAME = "extract_manga_info"

SYSTEM_PROMPT = (
    "You extract manga and manhwa details from Arabic and English web pages. "
    "From the page content, extract: title, description (cleaned up and well written), "
    "genres (list of genre names), author, artist, status (ongoing or completed), "
    "release year, country of origin (japan, korea, china or other) and alternative titles. "
    "Only report what the page actually states; leave anything else empty."
)

EXTRACT_TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Extract structured manga information from page content",
        "parameters": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Manga title"},
                "description": {"type": "string", "description": "Story description"},
                "genres": {"type": "array", "items": {"type": "string"}, "description": "Genres"},
                "author": {"type": "string", "description": "Author name"},
                "artist": {"type": "string", "description": "Artist name"},
                "status": {
                    "type": "string",
                    "enum": ["ongoing", "completed"],
                    "description": "Publication status",
                },
                "year": {"type": "number", "description": "Release year"},
                "country": {
                    "type": "string",
                    "enum": ["japan", "korea", "china", "other"],
                    "description": "Country of origin",
                },
                "alternative_titles": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Alternative titles",
                },
            },
            "required": ["title"],
            "additionalProperties": False,
        },
    },
}

# Fields copied onto the manga row when the LLM returned something for them.
UPDATABLE_FIELDS = (
    "description",
    "genres",
    "author",
    "artist",
    "status",
    "year",
    "country",
    "alternative_titles",
)


def visible_text(html: str, limit: int = MAX_PAGE_TEXT) -> str:
    """Collapse an HTML document to its visible text."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())[:limit]


class MangaInfoExtractor:
    def __init__(
        self,
        session: Session,
        config: Optional[Settings] = None,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or default_settings
        self._owns_http = http is None
        self.http = http or requests.Session()
        self.manga_repo = MangaRepository(session)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "MangaInfoExtractor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def extract(self, url: str, manga_id: Optional[int] = None) -> MangaMetadata:
        """
        Extract manga metadata from a page and optionally apply it.

        Args:
            url: Page to read
            manga_id: If given, non-empty fields are written to this manga

        Returns:
            MangaMetadata as returned by the LLM

        Raises:
            ExtractionError: Page too short, LLM failure or no tool call
            RateLimited: The LLM gateway answered 429
        """
        if not self.config.LLM_API_KEY:
            raise ScraperError("LLM_API_KEY not configured")

        logger.info("Extracting manga info from %s", url)
        content = self._page_text(url)
        if len(content) < MIN_PAGE_TEXT:
            raise ExtractionError("Could not extract page content")

        metadata = self._ask_llm(content)
        logger.info("Extracted metadata for '%s'", metadata.title)

        if manga_id is not None:
            self._apply(manga_id, metadata)
        return metadata

    def _page_text(self, url: str) -> str:
        if self.config.FIRECRAWL_API_KEY:
            try:
                res = self.http.post(
                    self.config.FIRECRAWL_API_URL,
                    json={
                        "url": url,
                        "formats": ["markdown"],
                        "onlyMainContent": True,
                        "waitFor": 3000,
                    },
                    headers={"Authorization": f"Bearer {self.config.FIRECRAWL_API_KEY}"},
                    timeout=self.config.SCRAPE_REQUEST_TIMEOUT + 30,
                )
                if res.ok:
                    payload = res.json()
                    markdown = (payload.get("data") or {}).get("markdown") or payload.get("markdown") or ""
                    if markdown:
                        logger.debug("Firecrawl returned %d chars", len(markdown))
                        return markdown
            except (requests.RequestException, ValueError) as e:
                logger.warning("Firecrawl markdown request failed: %s", e)

        logger.info("Falling back to a direct fetch of %s", url)
        try:
            res = self.http.get(
                url,
                headers=build_browser_headers(get_random_user_agent()),
                timeout=self.config.SCRAPE_REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("Direct fetch of %s failed: %s", url, e)
            return ""
        return visible_text(res.text)

    def _ask_llm(self, content: str) -> MangaMetadata:
        try:
            res = self.http.post(
                self.config.LLM_GATEWAY_URL,
                json={
                    "model": self.config.LLM_MODEL,
                    "messages": [
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": f"Extract the manga details from this content:\n\n{content[:MAX_PROMPT_TEXT]}",
                        },
                    ],
                    "tools": [EXTRACT_TOOL],
                    "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
                },
                headers={"Authorization": f"Bearer {self.config.LLM_API_KEY}"},
                timeout=self.config.SCRAPE_REQUEST_TIMEOUT * 2,
            )
        except requests.RequestException as e:
            logger.error("LLM request failed: %s", e)
            raise ExtractionError("AI extraction failed", status_code=500) from e

        if res.status_code == 429:
            raise RateLimited("Rate limit exceeded, please try again later")
        if not res.ok:
            logger.error("LLM gateway error %d: %s", res.status_code, res.text[:500])
            raise ExtractionError("AI extraction failed", status_code=500)

        try:
            choices = res.json().get("choices") or [{}]
            tool_calls = (choices[0].get("message") or {}).get("tool_calls") or []
            arguments = tool_calls[0]["function"]["arguments"] if tool_calls else None
        except (ValueError, KeyError, TypeError, AttributeError):
            arguments = None
        if not arguments:
            raise ExtractionError("AI could not extract information")

        try:
            return MangaMetadata.model_validate(json.loads(arguments))
        except (ValueError, ValidationError) as e:
            logger.warning("LLM returned unusable arguments: %s", e)
            raise ExtractionError("AI could not extract information") from e

    def _apply(self, manga_id: int, metadata: MangaMetadata) -> None:
        values = {
            field: getattr(metadata, field)
            for field in UPDATABLE_FIELDS
            if getattr(metadata, field)
        }
        if not values:
            return
        manga = self.manga_repo.apply_metadata(manga_id, values)
        if manga is None:
            logger.warning("Manga %d not found, metadata not applied", manga_id)
        else:
            logger.info("Applied %s to manga %d", ", ".join(sorted(values)), manga_id)
