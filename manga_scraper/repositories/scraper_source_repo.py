from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from manga_scraper.entities.scraper_source import ScraperSource
from manga_scraper.repositories.base_repo import BaseRepository


class ScraperSourceRepository(BaseRepository[ScraperSource]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=ScraperSource)

    def get_active(self, name: str) -> Optional[ScraperSource]:
        return self.find_one(name=name, is_active=True)

    def list_all(self) -> List[ScraperSource]:
        stmt = select(ScraperSource).order_by(ScraperSource.created_at.desc(), ScraperSource.id.desc())
        return list(self.session.execute(stmt).scalars().all())

    def save(self, name: str, base_url: str, config: dict, is_active: bool = True) -> ScraperSource:
        return self.upsert(
            {"name": name, "base_url": base_url, "config": config, "is_active": is_active},
            unique_fields=("name",),
        )
