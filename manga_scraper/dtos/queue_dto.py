"""
DTOs for the background download queue.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class QueueRunRequest(BaseModel):
    """Body of POST /process-download-queue."""

    manga_id: int | None = Field(None, alias="mangaId")

    model_config = ConfigDict(populate_by_name=True)


class QueueRunResult(BaseModel):
    """Counts returned by one processor invocation."""

    processed: int = 0
    failed: int = 0
    remaining: int = 0
    message: str = ""
    time_exceeded: bool = False
    chained: bool = False


class EnqueueRequest(BaseModel):
    """Body of POST /queue-all-chapters."""

    manga_id: int = Field(..., alias="mangaId")
    source: str | None = None
    priority: int = 10

    model_config = ConfigDict(populate_by_name=True)


class EnqueueResult(BaseModel):
    queued: int = 0
    total: int = 0
    message: str = ""


class DownloadQueueItemRead(BaseModel):
    """DTO for reading queue items."""

    id: int
    manga_id: int | None
    chapter_id: int | None
    source: str
    source_url: str
    priority: int
    status: str
    attempts: int
    max_attempts: int
    error_message: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
