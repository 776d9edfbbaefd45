"""
Repository for handling scrape job operations.

This repository manages CRUD operations for ScrapeJob entities.
All SQL lives here -- services must call these methods rather than
executing queries directly.

Retry bookkeeping uses ORM-level read-then-write. A job row is only ever
touched by the invocation that created it, so there is no lost-update race.
The stalled-job sweep is the exception: it only touches rows left in
``processing`` long after their invocation should have finished.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from manga_scraper.entities.scrape_job import ScrapeJob
from manga_scraper.repositories.base_repo import BaseRepository

STALLED_MESSAGE = "Cleared: Job stalled for too long"


class ScrapeJobRepository(BaseRepository[ScrapeJob]):
    """
    Repository for scrape job operations.

    Extends BaseRepository with the status transitions a job goes through.
    """

    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=ScrapeJob)

    def create_job(
        self, job_type: str, source_url: str, max_retries: int = 3
    ) -> ScrapeJob:
        """
        Create a new scrape job in processing status.

        Args:
            job_type: manga_info, chapters or pages
            source_url: URL the job scrapes
            max_retries: Failures allowed before the job is marked failed

        Returns:
            Created ScrapeJob entity
        """
        job = ScrapeJob(
            job_type=job_type,
            status="processing",
            source_url=source_url,
            retry_count=0,
            max_retries=max_retries,
        )
        return self.create(job, commit=True)

    def mark_completed(
        self,
        job_id: int,
        manga_id: Optional[int] = None,
        commit: bool = True
    ) -> Optional[ScrapeJob]:
        """
        Mark a job as completed, linking the manga it produced.

        Args:
            job_id: ID of the job to complete
            manga_id: Manga the job touched, if any
            commit: Whether to commit the transaction

        Returns:
            Updated ScrapeJob entity or None if not found
        """
        job = self.get_by_id(job_id)
        if job:
            job.status = "completed"
            job.error_message = None
            job.completed_at = datetime.utcnow()
            if manga_id is not None:
                job.manga_id = manga_id
            return self.update(job, commit=commit)
        return None

    def record_failure(
        self,
        job_id: int,
        error_message: str,
        retryable: bool = True,
        commit: bool = True
    ) -> Optional[ScrapeJob]:
        """
        Count a failed attempt against the job's retry budget.

        The job goes back to pending while retries remain, otherwise (or
        when the error is not retryable) it is marked failed.

        Args:
            job_id: ID of the job that failed
            error_message: Message stored on the job
            retryable: False for errors a retry cannot fix
            commit: Whether to commit the transaction

        Returns:
            Updated ScrapeJob entity or None if not found
        """
        job = self.get_by_id(job_id)
        if job:
            job.retry_count += 1
            exhausted = job.retry_count >= job.max_retries
            job.status = "failed" if exhausted or not retryable else "pending"
            job.error_message = error_message
            return self.update(job, commit=commit)
        return None

    def get_jobs_by_status(
        self,
        status: str,
        limit: int = 100
    ) -> List[ScrapeJob]:
        """
        Get jobs with a specific status, newest first.

        Args:
            status: Status to filter by
            limit: Maximum number of jobs to return

        Returns:
            List of ScrapeJob entities
        """
        stmt = (
            select(ScrapeJob)
            .where(ScrapeJob.status == status)
            .order_by(ScrapeJob.created_at.desc(), ScrapeJob.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def get_all_jobs(self, limit: int = 100) -> List[ScrapeJob]:
        stmt = (
            select(ScrapeJob)
            .order_by(ScrapeJob.created_at.desc(), ScrapeJob.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars().all())

    def get_stalled_jobs(
        self, older_than: timedelta, now: Optional[datetime] = None
    ) -> List[ScrapeJob]:
        """Jobs still ``processing`` whose last update is older than *older_than*."""
        cutoff = (now or datetime.utcnow()) - older_than
        stmt = (
            select(ScrapeJob)
            .where(ScrapeJob.status == "processing", ScrapeJob.updated_at < cutoff)
            .order_by(ScrapeJob.updated_at.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def clear_stalled_jobs(
        self, older_than: timedelta, now: Optional[datetime] = None
    ) -> int:
        """
        Mark stalled ``processing`` jobs as failed.

        A run that died without its terminal update (process killed, lost
        connection) would otherwise stay ``processing`` forever.

        Args:
            older_than: How long a job may sit in processing without an update
            now: Reference time, defaults to utcnow

        Returns:
            Number of jobs cleared
        """
        now = now or datetime.utcnow()
        stmt = (
            update(ScrapeJob)
            .where(ScrapeJob.status == "processing", ScrapeJob.updated_at < now - older_than)
            .values(status="failed", error_message=STALLED_MESSAGE, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount or 0
