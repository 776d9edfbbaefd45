"""
Background download queue processor.

One invocation handles at most one small batch of queue items and then
returns; more work is picked up by a follow-up invocation (self-chaining)
or by the next scheduled run. All coordination happens through the
background_download_queue table.

Per-invocation flow:
    1. reset items stuck in ``processing`` for longer than the stale threshold
    2. claim up to QUEUE_BATCH_SIZE pending items (priority desc, oldest first)
    3. for each item, until the time budget runs out:
         processing (attempts += 1)
         -> completed            if the chapter already has pages
         -> pages scrape job     otherwise
    4. count what is still pending and hand a follow-up to the scheduler
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from manga_scraper.core.config import Settings, settings as default_settings
from manga_scraper.core.database import SessionLocal
from manga_scraper.dtos.queue_dto import EnqueueResult, QueueRunResult
from manga_scraper.dtos.scrape_dto import JobType
from manga_scraper.entities.download_queue import DownloadQueueItem
from manga_scraper.repositories.download_queue_repo import DownloadQueueRepository
from manga_scraper.repositories.manga_repo import (
    ChapterPageRepository,
    ChapterRepository,
    MangaRepository,
)
from manga_scraper.services.scrape_service import ScrapeService

logger = logging.getLogger(__name__)

NO_PAGES_MESSAGE = "No pages extracted"


class FollowUpScheduler:
    """
    Supervised fire-and-forget scheduling of the next processor invocation.

    The current invocation returns immediately; the follow-up runs as a
    tracked asyncio task whose outcome (including failures) is logged.
    """

    def __init__(self, runner: Callable[[Optional[int]], Awaitable[Any]]) -> None:
        self.runner = runner
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, manga_id: Optional[int], delay: float) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._run_later(manga_id, delay), name=f"download-queue-follow-up:{manga_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("Scheduled follow-up queue run in %.1fs (manga_id=%s)", delay, manga_id)
        return task

    async def _run_later(self, manga_id: Optional[int], delay: float) -> Any:
        await asyncio.sleep(delay)
        return await self.runner(manga_id)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("Follow-up queue run %s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Follow-up queue run %s failed", task.get_name(), exc_info=exc)
        else:
            logger.info("Follow-up queue run %s finished: %s", task.get_name(), task.result())

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class DownloadQueueService:
    """
    Processes background download queue items with a soft time budget.

    Handles:
    - Stale ``processing`` recovery before claiming
    - Skipping chapters whose pages already exist
    - Attempt-aware retry (pending until max_attempts, then failed)
    - Self-chaining while pending work remains
    """

    def __init__(
        self,
        session: Session,
        scrape_service: ScrapeService,
        *,
        scheduler: Optional[FollowUpScheduler] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.scrape_service = scrape_service
        self.scheduler = scheduler
        self.config = config or default_settings
        self.clock = clock
        self.queue_repo = DownloadQueueRepository(session)
        self.page_repo = ChapterPageRepository(session)
        self.chapter_repo = ChapterRepository(session)
        self.manga_repo = MangaRepository(session)

    def close(self) -> None:
        self.scrape_service.close()

    async def process_batch(self, manga_id: Optional[int] = None) -> QueueRunResult:
        """
        Run one bounded batch.

        Args:
            manga_id: Restrict claiming (and the remaining count) to one manga

        Returns:
            QueueRunResult with processed/failed/remaining counts
        """
        started = self.clock()

        recovered = self.queue_repo.reset_stale_processing(
            timedelta(seconds=self.config.QUEUE_STALE_AFTER_SECONDS)
        )
        if recovered:
            logger.warning("[Queue] Reset %d stalled items back to pending", recovered)

        items = self.queue_repo.claim_pending(self.config.QUEUE_BATCH_SIZE, manga_id=manga_id)
        if not items:
            logger.info("[Queue] No pending items")
            return QueueRunResult(message="No pending items")

        logger.info("[Queue] Processing %d items", len(items))
        processed = 0
        failed = 0
        time_exceeded = False

        for idx, item in enumerate(items):
            if self.clock() - started > self.config.QUEUE_TIME_BUDGET_SECONDS:
                logger.info("[Queue] Time budget exhausted, stopping")
                time_exceeded = True
                break

            if await self._process_item(item):
                processed += 1
            else:
                failed += 1

            if idx < len(items) - 1:
                await asyncio.sleep(self.config.QUEUE_ITEM_DELAY_SECONDS)

        # Same scope as the claim, not the whole queue: a scoped run only
        # counts and chains for its own manga.
        remaining = self.queue_repo.count_pending(manga_id=manga_id)
        logger.info(
            "[Queue] Done: %d processed, %d failed, %d remaining", processed, failed, remaining
        )

        chained = False
        if remaining > 0 and not time_exceeded and self.scheduler is not None:
            self.scheduler.schedule(manga_id, self.config.QUEUE_CHAIN_DELAY_SECONDS)
            chained = True

        return QueueRunResult(
            processed=processed,
            failed=failed,
            remaining=remaining,
            message=f"Processed {processed} items",
            time_exceeded=time_exceeded,
            chained=chained,
        )

    async def _process_item(self, item: DownloadQueueItem) -> bool:
        """Returns True when the pages job ran, False when it raised.

        A job that ran but found no pages still counts as processed; the row
        itself is marked failed.
        """
        item = self.queue_repo.mark_processing(item)
        item_id = item.id

        existing = self.page_repo.count_for_chapter(item.chapter_id) if item.chapter_id else 0
        if existing > 0:
            logger.info(
                "[Queue] Chapter %s already has %d pages, marking complete", item.chapter_id, existing
            )
            self.queue_repo.mark_completed(item)
            return True

        try:
            result = await self.scrape_service.run(
                JobType.pages, item.source_url, source=item.source, chapter_id=item.chapter_id
            )
        except Exception as e:
            item = self.queue_repo.get_by_id(item_id)
            message = str(e) or type(e).__name__
            if item.attempts < item.max_attempts:
                self.queue_repo.mark_for_retry(item, message)
                logger.warning(
                    "[Queue] Item %d failed (attempt %d/%d), will retry: %s",
                    item_id, item.attempts, item.max_attempts, message,
                )
            else:
                self.queue_repo.mark_failed(item, message)
                logger.error("[Queue] Item %d failed permanently: %s", item_id, message)
            return False

        item = self.queue_repo.get_by_id(item_id)
        if result.pages_count > 0:
            self.queue_repo.mark_completed(item)
            logger.info("[Queue] Chapter %s: %d pages", item.chapter_id, result.pages_count)
            return True

        self.queue_repo.mark_failed(item, NO_PAGES_MESSAGE)
        logger.warning("[Queue] Chapter %s: no pages extracted", item.chapter_id)
        return True

    async def enqueue_missing_chapters(
        self, manga_id: int, source: Optional[str] = None, priority: int = 10
    ) -> EnqueueResult:
        """
        Queue every chapter of a manga that has no pages yet.

        Chapters already pending or processing are skipped. Earlier chapters
        get a higher priority so they download first.

        Args:
            manga_id: Manga whose chapters to queue
            source: Source profile name, defaults to the manga's own source
            priority: Priority of the first chapter; each later one gets one less

        Returns:
            EnqueueResult with how many items were queued
        """
        if source is None:
            manga = self.manga_repo.get_by_id(manga_id)
            source = manga.source if manga is not None else self.config.DEFAULT_SOURCE

        missing = self.chapter_repo.list_without_pages(manga_id)
        if not missing:
            return EnqueueResult(message="All chapters already have pages")

        live = self.queue_repo.live_chapter_ids(manga_id)
        to_queue = [ch for ch in missing if ch.id not in live]
        if not to_queue:
            return EnqueueResult(total=len(missing), message="All chapters already queued")

        queued = self.queue_repo.add_all(
            DownloadQueueItem(
                manga_id=manga_id,
                chapter_id=ch.id,
                source=source,
                source_url=ch.source_url,
                priority=priority - idx,
                status="pending",
                max_attempts=self.config.QUEUE_MAX_ATTEMPTS,
            )
            for idx, ch in enumerate(to_queue)
        )
        logger.info("[Queue] Queued %d chapters for manga %d", queued, manga_id)

        if self.scheduler is not None:
            self.scheduler.schedule(manga_id, 0)

        return EnqueueResult(
            queued=queued,
            total=len(missing),
            message=f"Queued {queued} chapters for background download",
        )


def build_download_queue_service(session: Session) -> DownloadQueueService:
    return DownloadQueueService(
        session,
        ScrapeService(session),
        scheduler=follow_up_scheduler,
    )


async def process_download_queue(manga_id: Optional[int] = None) -> dict[str, Any]:
    """
    Run one processor invocation with its own session.

    This is what follow-ups execute, so each link of the chain gets a fresh
    session and a fresh time budget.
    """
    db = SessionLocal()
    try:
        service = build_download_queue_service(db)
        try:
            result = await service.process_batch(manga_id)
        finally:
            service.close()
        return result.model_dump()
    finally:
        db.close()


follow_up_scheduler = FollowUpScheduler(process_download_queue)
