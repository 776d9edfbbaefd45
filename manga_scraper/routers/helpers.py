import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from manga_scraper.core.auth import verify_api_key
from manga_scraper.core.database import get_db
from manga_scraper.core.exceptions import ScraperError
from manga_scraper.dtos.helper_dto import BypassRequest, ExtractRequest
from manga_scraper.services.ai_extractor_service import MangaInfoExtractor
from manga_scraper.services.cloudflare_bypass_service import CloudflareBypassService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["helpers"])


@router.post("/cloudflare-bypass")
async def cloudflare_bypass(
    body: BypassRequest,
    _: None = Depends(verify_api_key),
):
    try:
        with CloudflareBypassService() as service:
            result = await asyncio.to_thread(
                service.bypass, body.url, body.wait_for_selector, body.timeout
            )
    except ScraperError as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "error": e.message, "method": "failed"},
        )
    except Exception as e:
        logger.exception("Bypass failed for %s", body.url)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e) or "Unknown error", "method": "failed"},
        )
    return {"success": True, **result.model_dump()}


@router.post("/extract-manga-info")
async def extract_manga_info(
    body: ExtractRequest,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    try:
        with MangaInfoExtractor(db) as extractor:
            metadata = await asyncio.to_thread(extractor.extract, body.url, body.manga_id)
    except ScraperError as e:
        return JSONResponse(
            status_code=e.status_code, content={"success": False, "error": e.message}
        )
    except Exception as e:
        logger.exception("Metadata extraction failed for %s", body.url)
        return JSONResponse(
            status_code=500, content={"success": False, "error": str(e) or "Unknown error"}
        )
    return {"success": True, "data": metadata.model_dump(exclude_none=True)}
