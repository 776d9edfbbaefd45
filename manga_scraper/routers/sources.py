from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from manga_scraper.core.auth import verify_api_key
from manga_scraper.core.database import get_db
from manga_scraper.dtos.source_dto import SourceCreate, SourceRead
from manga_scraper.services.source_registry import SourceProfileRegistry

router = APIRouter(prefix="/sources", tags=["sources"])


@router.get("", response_model=list[SourceRead])
async def list_sources(db: Session = Depends(get_db)):
    return [p.model_dump() for p in SourceProfileRegistry(db).list_profiles()]


@router.post("", response_model=SourceRead, status_code=201)
async def save_source(
    body: SourceCreate,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    profile = SourceProfileRegistry(db).save(
        body.name, body.base_url, body.selectors, is_active=body.is_active
    )
    return profile.model_dump()
