"""
Repositories for manga, chapters and chapter pages.

Every write goes through BaseRepository.upsert keyed by the table's natural
key, so re-running a scrape converges instead of duplicating rows.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from manga_scraper.dtos.manga_dto import ChapterCreate, ChapterPageCreate, MangaCreate
from manga_scraper.entities.manga import Chapter, ChapterPage, Manga
from manga_scraper.repositories.base_repo import BaseRepository


class MangaRepository(BaseRepository[Manga]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Manga)

    def get_by_slug(self, slug: str) -> Optional[Manga]:
        return self.find_one(slug=slug)

    def upsert_from_dto(self, dto: MangaCreate, *, commit: bool = True) -> Manga:
        return self.upsert(dto.model_dump(), unique_fields=("slug",), commit=commit)

    def apply_metadata(self, manga_id: int, values: dict, *, commit: bool = True) -> Optional[Manga]:
        """
        Overwrite the given columns on an existing manga.

        Args:
            manga_id: ID of the manga to update
            values: Column -> value mapping; keys must be Manga columns
            commit: Whether to commit the transaction

        Returns:
            Updated Manga entity or None if not found
        """
        manga = self.get_by_id(manga_id)
        if manga is None:
            return None
        for key, value in values.items():
            setattr(manga, key, value)
        return self.update(manga, commit=commit)


class ChapterRepository(BaseRepository[Chapter]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Chapter)

    def upsert_from_dto(self, dto: ChapterCreate, *, commit: bool = True) -> Chapter:
        return self.upsert(
            dto.model_dump(), unique_fields=("manga_id", "chapter_number"), commit=commit
        )

    def list_for_manga(self, manga_id: int) -> List[Chapter]:
        stmt = (
            select(Chapter)
            .where(Chapter.manga_id == manga_id)
            .order_by(Chapter.chapter_number)
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_without_pages(self, manga_id: int) -> List[Chapter]:
        """Chapters of a manga that have no chapter_pages rows yet, ascending."""
        has_pages = select(ChapterPage.id).where(ChapterPage.chapter_id == Chapter.id).exists()
        stmt = (
            select(Chapter)
            .where(Chapter.manga_id == manga_id, ~has_pages)
            .order_by(Chapter.chapter_number)
        )
        return list(self.session.execute(stmt).scalars().all())


class ChapterPageRepository(BaseRepository[ChapterPage]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=ChapterPage)

    def upsert_from_dto(self, dto: ChapterPageCreate, *, commit: bool = True) -> ChapterPage:
        return self.upsert(
            dto.model_dump(), unique_fields=("chapter_id", "page_number"), commit=commit
        )

    def count_for_chapter(self, chapter_id: int) -> int:
        stmt = select(func.count(ChapterPage.id)).where(ChapterPage.chapter_id == chapter_id)
        return int(self.session.execute(stmt).scalar_one())

    def list_for_chapter(self, chapter_id: int) -> List[ChapterPage]:
        stmt = (
            select(ChapterPage)
            .where(ChapterPage.chapter_id == chapter_id)
            .order_by(ChapterPage.page_number)
        )
        return list(self.session.execute(stmt).scalars().all())
