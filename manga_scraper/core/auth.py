"""API-key guard for the endpoints that scrape or write.

Read-only endpoints (/health, GET listings) stay public.
"""

import logging
import secrets

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from manga_scraper.core.config import settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    expected = settings.API_KEY
    if not expected:
        return
    if api_key is None or not secrets.compare_digest(api_key, expected):
        logger.warning("Rejected request with %s API key", "a wrong" if api_key else "no")
        raise HTTPException(status_code=403, detail=f"Invalid or missing {API_KEY_HEADER}")
