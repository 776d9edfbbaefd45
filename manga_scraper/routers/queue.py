import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from manga_scraper.core.auth import verify_api_key
from manga_scraper.core.database import get_db
from manga_scraper.dtos.queue_dto import DownloadQueueItemRead, EnqueueRequest, QueueRunRequest
from manga_scraper.dtos.scrape_dto import JobStatus
from manga_scraper.repositories.download_queue_repo import DownloadQueueRepository
from manga_scraper.services.download_queue_service import build_download_queue_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["download-queue"])


@router.post("/process-download-queue")
async def process_download_queue(
    body: QueueRunRequest | None = None,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    manga_id = body.manga_id if body else None
    service = build_download_queue_service(db)
    try:
        result = await service.process_batch(manga_id)
    except Exception as e:
        logger.exception("Download queue processing failed")
        return JSONResponse(
            status_code=500, content={"error": str(e) or "Unknown error", "success": False}
        )
    finally:
        service.close()
    return result.model_dump(include={"processed", "failed", "remaining", "message"})


@router.post("/queue-all-chapters")
async def queue_all_chapters(
    body: EnqueueRequest,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    service = build_download_queue_service(db)
    try:
        result = await service.enqueue_missing_chapters(
            body.manga_id, source=body.source, priority=body.priority
        )
    except Exception as e:
        logger.exception("Queueing chapters for manga %d failed", body.manga_id)
        return JSONResponse(
            status_code=500, content={"error": str(e) or "Unknown error", "success": False}
        )
    finally:
        service.close()
    return result.model_dump()


@router.get("/download-queue", response_model=list[DownloadQueueItemRead])
async def list_download_queue(
    status: JobStatus | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    repo = DownloadQueueRepository(db)
    return repo.list_items(status=status.value if status else None, limit=limit)
