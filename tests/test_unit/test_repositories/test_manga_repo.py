"""
Unit tests for manga, chapter and page repositories.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from manga_scraper.dtos.manga_dto import ChapterCreate, ChapterPageCreate, MangaCreate
from manga_scraper.entities.manga import Chapter, ChapterPage
from manga_scraper.repositories.manga_repo import (
    ChapterPageRepository,
    ChapterRepository,
    MangaRepository,
)


def _manga_dto(**overrides):
    values = dict(
        slug="omniscient-reader",
        title="Omniscient Reader",
        source="lekmanga",
        source_url="https://lekmanga.net/manga/omniscient-reader/",
    )
    values.update(overrides)
    return MangaCreate(**values)


class TestMangaRepository:
    def test_upsert_inserts_then_updates(self, db_session):
        repo = MangaRepository(db_session)

        first = repo.upsert_from_dto(_manga_dto(status="ongoing"))
        second = repo.upsert_from_dto(_manga_dto(title="ORV", status="completed"))

        assert first.id == second.id
        assert repo.count() == 1
        assert repo.get_by_slug("omniscient-reader").title == "ORV"
        assert repo.get_by_slug("omniscient-reader").status == "completed"

    def test_upsert_keeps_site_counters(self, db_session):
        repo = MangaRepository(db_session)
        manga = repo.upsert_from_dto(_manga_dto())
        manga.views = 42
        db_session.commit()

        repo.upsert_from_dto(_manga_dto(title="Again"))

        assert repo.get_by_slug("omniscient-reader").views == 42

    def test_apply_metadata(self, db_session, make_manga):
        manga = make_manga()
        repo = MangaRepository(db_session)

        updated = repo.apply_metadata(manga.id, {"year": 2018, "country": "korea"})

        assert updated.year == 2018
        assert updated.country == "korea"
        assert repo.apply_metadata(9999, {"year": 1}) is None


class TestChapterRepository:
    def test_upsert_on_manga_and_number(self, db_session, make_manga):
        manga = make_manga()
        repo = ChapterRepository(db_session)
        dto = ChapterCreate(manga_id=manga.id, chapter_number=1, title="Ch 1", source_url="https://x/1")

        repo.upsert_from_dto(dto)
        repo.upsert_from_dto(dto.model_copy(update={"title": "Chapter One"}))

        rows = repo.list_for_manga(manga.id)
        assert len(rows) == 1
        assert rows[0].title == "Chapter One"

    def test_unique_constraint(self, db_session, make_manga, make_chapter):
        manga = make_manga()
        make_chapter(manga, 1)

        db_session.add(Chapter(manga_id=manga.id, chapter_number=1.0, source_url="https://dup/"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_list_without_pages(self, db_session, make_manga, make_chapter):
        manga = make_manga()
        c3 = make_chapter(manga, 3)
        c1 = make_chapter(manga, 1)
        c2 = make_chapter(manga, 2)
        db_session.add(ChapterPage(chapter_id=c2.id, page_number=1, image_url="https://x/p1"))
        db_session.commit()

        missing = ChapterRepository(db_session).list_without_pages(manga.id)

        assert [c.id for c in missing] == [c1.id, c3.id]


class TestChapterPageRepository:
    def test_upsert_and_count(self, db_session, make_manga, make_chapter):
        chapter = make_chapter(make_manga(), 1)
        repo = ChapterPageRepository(db_session)

        for n in (2, 1):
            repo.upsert_from_dto(
                ChapterPageCreate(chapter_id=chapter.id, page_number=n, image_url=f"https://x/{n}.jpg")
            )
        repo.upsert_from_dto(
            ChapterPageCreate(chapter_id=chapter.id, page_number=1, image_url="https://y/1.jpg")
        )

        assert repo.count_for_chapter(chapter.id) == 2
        pages = repo.list_for_chapter(chapter.id)
        assert [(p.page_number, p.image_url) for p in pages] == [
            (1, "https://y/1.jpg"),
            (2, "https://x/2.jpg"),
        ]
