import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from manga_scraper.core.auth import verify_api_key
from manga_scraper.core.config import settings
from manga_scraper.core.database import get_db
from manga_scraper.core.exceptions import ScraperError
from manga_scraper.dtos.scrape_dto import JobStatus, JobType, ScrapeJobRead, ScrapeRequest
from manga_scraper.repositories.scrape_job_repo import ScrapeJobRepository
from manga_scraper.services.scrape_service import ScrapeService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scrape"])


def _failure(error: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/scrape")
async def scrape(
    body: ScrapeRequest,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    service = ScrapeService(db)
    try:
        result = await service.run(
            body.job_type, body.url, source=body.source, chapter_id=body.chapter_id
        )
    except ScraperError as e:
        return _failure(e.message, 400 if e.status_code == 400 else 500)
    except ValidationError as e:
        logger.error("Scraped data failed validation: %s", e)
        return _failure(str(e))
    except ValueError as e:
        return _failure(str(e), 400)
    except Exception as e:
        logger.exception("Scrape failed for %s", body.url)
        return _failure(str(e) or "Unknown error")
    finally:
        service.close()

    content = {"success": True, "data": result.data, "jobId": result.job_id}
    if result.job_type is JobType.pages:
        content["pagesCount"] = result.pages_count
    elif result.job_type is JobType.chapters:
        content["totalFound"] = result.total_found
        content["partial"] = result.partial
    return content


@router.get("/scrape-jobs", response_model=list[ScrapeJobRead])
async def list_scrape_jobs(
    status: JobStatus | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    repo = ScrapeJobRepository(db)
    if status is None:
        return repo.get_all_jobs(limit=limit)
    return repo.get_jobs_by_status(status.value, limit=limit)


@router.post("/scrape-jobs/clear-stalled")
async def clear_stalled_scrape_jobs(
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    cleared = ScrapeJobRepository(db).clear_stalled_jobs(
        timedelta(seconds=settings.SCRAPE_JOB_STALE_AFTER_SECONDS)
    )
    if cleared:
        logger.warning("Cleared %d stalled scrape jobs", cleared)
    return {"cleared": cleared}
