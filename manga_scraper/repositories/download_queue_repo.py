"""
Repository for the background download queue.

Claiming is a plain SELECT followed by per-row UPDATEs: two overlapping
processor runs can pick the same pending item. The stale-processing sweep
is the only recovery mechanism.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from manga_scraper.entities.download_queue import DownloadQueueItem
from manga_scraper.repositories.base_repo import BaseRepository

LIVE_STATUSES = ("pending", "processing")


class DownloadQueueRepository(BaseRepository[DownloadQueueItem]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=DownloadQueueItem)

    def reset_stale_processing(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """
        Put ``processing`` items untouched for longer than *older_than* back to pending.

        Returns:
            Number of items reset
        """
        now = now or datetime.utcnow()
        stmt = (
            update(DownloadQueueItem)
            .where(
                DownloadQueueItem.status == "processing",
                DownloadQueueItem.updated_at < now - older_than,
            )
            .values(status="pending", updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount or 0

    def claim_pending(self, limit: int, manga_id: Optional[int] = None) -> List[DownloadQueueItem]:
        """Highest priority first, oldest first within a priority."""
        stmt = select(DownloadQueueItem).where(DownloadQueueItem.status == "pending")
        if manga_id is not None:
            stmt = stmt.where(DownloadQueueItem.manga_id == manga_id)
        stmt = stmt.order_by(
            DownloadQueueItem.priority.desc(),
            DownloadQueueItem.created_at.asc(),
            DownloadQueueItem.id.asc(),
        ).limit(limit)
        return list(self.session.execute(stmt).scalars().all())

    def count_pending(self, manga_id: Optional[int] = None) -> int:
        stmt = select(func.count(DownloadQueueItem.id)).where(DownloadQueueItem.status == "pending")
        if manga_id is not None:
            stmt = stmt.where(DownloadQueueItem.manga_id == manga_id)
        return int(self.session.execute(stmt).scalar_one())

    def mark_processing(self, item: DownloadQueueItem) -> DownloadQueueItem:
        item.status = "processing"
        item.attempts += 1
        item.updated_at = datetime.utcnow()
        return self.update(item)

    def mark_completed(self, item: DownloadQueueItem) -> DownloadQueueItem:
        now = datetime.utcnow()
        item.status = "completed"
        item.error_message = None
        item.completed_at = now
        item.updated_at = now
        return self.update(item)

    def mark_failed(self, item: DownloadQueueItem, error_message: str) -> DownloadQueueItem:
        now = datetime.utcnow()
        item.status = "failed"
        item.error_message = error_message
        item.completed_at = now
        item.updated_at = now
        return self.update(item)

    def mark_for_retry(self, item: DownloadQueueItem, error_message: str) -> DownloadQueueItem:
        item.status = "pending"
        item.error_message = error_message
        item.updated_at = datetime.utcnow()
        return self.update(item)

    def live_chapter_ids(self, manga_id: int) -> set[int]:
        """Chapter ids of this manga that are already pending or processing."""
        stmt = select(DownloadQueueItem.chapter_id).where(
            DownloadQueueItem.manga_id == manga_id,
            DownloadQueueItem.status.in_(LIVE_STATUSES),
        )
        return {cid for cid in self.session.execute(stmt).scalars().all() if cid is not None}

    def add_all(self, items: Iterable[DownloadQueueItem]) -> int:
        items = list(items)
        self.session.add_all(items)
        self.session.commit()
        return len(items)

    def list_items(self, status: Optional[str] = None, limit: int = 100) -> List[DownloadQueueItem]:
        stmt = select(DownloadQueueItem)
        if status:
            stmt = stmt.where(DownloadQueueItem.status == status)
        stmt = stmt.order_by(
            DownloadQueueItem.priority.desc(), DownloadQueueItem.created_at.asc()
        ).limit(limit)
        return list(self.session.execute(stmt).scalars().all())
