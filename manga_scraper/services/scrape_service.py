"""
Scrape orchestrator: one call = one tracked scrape job.

Architecture:
    ScrapeService -> ScrapeJobRepository     -> scrape_jobs
    ScrapeService -> ResilientFetcher        -> third-party site
    ScrapeService -> extractor               -> MangaInfo / ChapterStub / PageStub
    ScrapeService -> Manga/Chapter/PageRepos -> manga, chapters, chapter_pages

Job lifecycle:  processing -> completed
                processing -> pending | failed   (retry_count += 1)
Every run ends with exactly one of those transitions. Pending jobs are not
picked up again by anything in this service; re-running is a manual action.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from manga_scraper.core.config import Settings, settings as default_settings
from manga_scraper.core.exceptions import (
    NON_RETRYABLE_ERRORS,
    ChapterNotFound,
    FetchError,
    MangaNotFound,
    ScraperError,
)
from manga_scraper.core.extractor import (
    extract_chapter_listing,
    extract_manga_info,
    extract_page_images,
    parse_html,
)
from manga_scraper.core.fetcher import ResilientFetcher
from manga_scraper.core.source_profiles import SourceProfile
from manga_scraper.dtos.manga_dto import (
    NAME_MAX,
    RELEASE_DATE_MAX,
    TITLE_MAX,
    URL_MAX,
    ChapterCreate,
    ChapterPageCreate,
    ChapterPageRead,
    ChapterRead,
    MangaCreate,
    MangaRead,
)
from manga_scraper.dtos.scrape_dto import JobType, ScrapeResult
from manga_scraper.repositories.manga_repo import (
    ChapterPageRepository,
    ChapterRepository,
    MangaRepository,
)
from manga_scraper.repositories.scrape_job_repo import ScrapeJobRepository
from manga_scraper.services.cloudflare_bypass_service import CloudflareBypassService
from manga_scraper.services.source_registry import SourceProfileRegistry

logger = logging.getLogger(__name__)

MANGA_SLUG_RE = re.compile(r"/manga/([^/?#]+)")
CANCELLED_MESSAGE = "cancelled"


def extract_slug(url: str) -> str:
    """Slug from ``/manga/<slug>/``, else the last non-empty path segment."""
    match = MANGA_SLUG_RE.search(url)
    if match:
        return match.group(1)
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[-1] if segments else ""


def clip(value: Optional[str], limit: int) -> Optional[str]:
    """Cut scraped text down to a column width."""
    if value is None or len(value) <= limit:
        return value
    return value[:limit].rstrip()


def _fitting_url(url: Optional[str]) -> Optional[str]:
    # Over-long URLs are dropped, not cut.
    return url if url and len(url) <= URL_MAX else None


class ScrapeService:
    """
    Runs manga_info, chapters and pages jobs with job tracking.

    Collaborators are injected so tests (and the queue processor) can swap
    the fetcher or the bypass helper without touching module globals.
    """

    def __init__(
        self,
        session: Session,
        *,
        registry: Optional[SourceProfileRegistry] = None,
        fetcher: Optional[ResilientFetcher] = None,
        bypass: Optional[CloudflareBypassService] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.config = config or default_settings
        self.registry = registry or SourceProfileRegistry(session)
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or ResilientFetcher()
        self.bypass = bypass
        self.job_repo = ScrapeJobRepository(session)
        self.manga_repo = MangaRepository(session)
        self.chapter_repo = ChapterRepository(session)
        self.page_repo = ChapterPageRepository(session)

    def close(self) -> None:
        """Release the HTTP session of a fetcher this service created."""
        if self._owns_fetcher:
            self.fetcher.close()

    async def run(
        self,
        job_type: JobType | str,
        url: str,
        source: Optional[str] = None,
        chapter_id: Optional[int] = None,
    ) -> ScrapeResult:
        """
        Execute one scrape job.

        Args:
            job_type: manga_info, chapters or pages
            url: Manga page URL (manga_info/chapters) or chapter URL (pages)
            source: Source profile name, defaults to settings.DEFAULT_SOURCE
            chapter_id: Required for pages jobs

        Returns:
            ScrapeResult with the upserted rows in ``data``

        Raises:
            ValueError: If a pages job has no chapter_id
            ScraperError: On fetch or lookup failure (after job bookkeeping)
        """
        job_type = JobType(job_type)
        if job_type is JobType.pages and chapter_id is None:
            raise ValueError("chapterId is required for pages jobs")
        source = source or self.config.DEFAULT_SOURCE

        job = self.job_repo.create_job(
            job_type.value, url, max_retries=self.config.SCRAPE_MAX_RETRIES
        )
        job_id = job.id
        logger.info("Scrape job %d started: %s %s (source=%s)", job_id, job_type, url, source)

        try:
            profile = self.registry.get(source)
            if job_type is JobType.manga_info:
                result = await self._scrape_manga_info(job_id, url, profile)
            elif job_type is JobType.chapters:
                result = await self._scrape_chapters(job_id, url, profile)
            else:
                result = await self._scrape_pages(job_id, chapter_id, profile)
            self.job_repo.mark_completed(job_id, manga_id=result.manga_id)
        except asyncio.CancelledError:
            self.session.rollback()
            self.job_repo.record_failure(job_id, CANCELLED_MESSAGE)
            logger.warning("Scrape job %d cancelled", job_id)
            raise
        except Exception as e:
            self.session.rollback()
            failed = self.job_repo.record_failure(
                job_id,
                str(e) or type(e).__name__,
                retryable=not isinstance(e, NON_RETRYABLE_ERRORS),
            )
            logger.error(
                "Scrape job %d failed (%s, retry %d/%d): %s",
                job_id,
                failed.status if failed else "unknown",
                failed.retry_count if failed else 0,
                failed.max_retries if failed else 0,
                e,
            )
            raise

        logger.info("Scrape job %d completed", job_id)
        return result

    async def _fetch(self, url: str, profile: SourceProfile) -> str:
        try:
            return await asyncio.to_thread(self.fetcher.fetch, url, profile)
        except FetchError as e:
            if not (e.is_challenge and self.config.SCRAPE_BYPASS_ON_CHALLENGE):
                raise
            logger.warning("Escalating %s to the Cloudflare bypass helper", url)
            if self.bypass is not None:
                result = await asyncio.to_thread(self.bypass.bypass, url)
            else:
                with CloudflareBypassService(self.config) as bypass:
                    result = await asyncio.to_thread(bypass.bypass, url)
            return result.html

    async def _scrape_manga_info(
        self, job_id: int, url: str, profile: SourceProfile
    ) -> ScrapeResult:
        slug = extract_slug(url)
        if not slug:
            raise ScraperError(f"Cannot derive a manga slug from {url}", status_code=400)

        html = await self._fetch(url, profile)
        info = extract_manga_info(parse_html(html), profile)
        if not info.title:
            logger.warning("No title found on %s with profile %s", url, profile.name)

        manga = self.manga_repo.upsert_from_dto(
            MangaCreate(
                slug=slug,
                title=clip(info.title, TITLE_MAX),
                description=info.description or None,
                cover_url=_fitting_url(info.cover),
                status=info.status,
                genres=info.genres,
                author=clip(info.author, NAME_MAX),
                artist=clip(info.artist, NAME_MAX),
                rating=info.rating,
                source=profile.name,
                source_url=url,
                last_scraped_at=datetime.utcnow(),
            )
        )
        return ScrapeResult(
            job_id=job_id,
            job_type=JobType.manga_info,
            data=MangaRead.model_validate(manga).model_dump(mode="json"),
            manga_id=manga.id,
        )

    async def _scrape_chapters(
        self, job_id: int, url: str, profile: SourceProfile
    ) -> ScrapeResult:
        html = await self._fetch(url, profile)
        listing = extract_chapter_listing(parse_html(html), profile)

        slug = extract_slug(url)
        manga = self.manga_repo.get_by_slug(slug)
        if manga is None:
            raise MangaNotFound(slug)

        stubs = [stub for stub in listing.chapters if _fitting_url(stub.source_url)]
        if len(stubs) < len(listing.chapters):
            logger.warning(
                "Skipped %d chapters of %s with URLs over %d characters",
                len(listing.chapters) - len(stubs), slug, URL_MAX,
            )

        for stub in stubs:
            self.chapter_repo.upsert_from_dto(
                ChapterCreate(
                    manga_id=manga.id,
                    chapter_number=stub.chapter_number,
                    title=clip(stub.title, TITLE_MAX),
                    source_url=stub.source_url,
                    release_date=clip(stub.release_date, RELEASE_DATE_MAX),
                ),
                commit=False,
            )
        self.session.commit()

        partial = listing.partial or len(stubs) < len(listing.chapters)
        numbers = {stub.chapter_number for stub in stubs}
        rows = [c for c in self.chapter_repo.list_for_manga(manga.id) if c.chapter_number in numbers]
        logger.info(
            "Saved %d chapters for %s (%d list elements%s)",
            len(rows), slug, listing.total_elements, ", partial" if partial else "",
        )
        return ScrapeResult(
            job_id=job_id,
            job_type=JobType.chapters,
            data=[ChapterRead.model_validate(c).model_dump(mode="json") for c in rows],
            manga_id=manga.id,
            total_found=listing.total_elements,
            partial=partial,
        )

    async def _scrape_pages(
        self, job_id: int, chapter_id: int, profile: SourceProfile
    ) -> ScrapeResult:
        chapter = self.chapter_repo.get_by_id(chapter_id)
        if chapter is None:
            raise ChapterNotFound(chapter_id)
        manga_id = chapter.manga_id

        html = await self._fetch(chapter.source_url, profile)
        pages = extract_page_images(parse_html(html), profile)
        urls = [page.image_url for page in pages if _fitting_url(page.image_url)]
        if len(urls) < len(pages):
            logger.warning(
                "Skipped %d images of chapter %d with URLs over %d characters",
                len(pages) - len(urls), chapter_id, URL_MAX,
            )

        # Renumbered so stored pages stay 1..N after skipping.
        saved = [
            self.page_repo.upsert_from_dto(
                ChapterPageCreate(chapter_id=chapter_id, page_number=number, image_url=image_url),
                commit=False,
            )
            for number, image_url in enumerate(urls, start=1)
        ]
        self.session.commit()
        logger.info("Saved %d pages for chapter %d", len(saved), chapter_id)

        return ScrapeResult(
            job_id=job_id,
            job_type=JobType.pages,
            data=[ChapterPageRead.model_validate(p).model_dump(mode="json") for p in saved],
            manga_id=manga_id,
            pages_count=len(saved),
        )
