"""
Shared test fixtures for manga-scraper.

Provides:
- db_session: In-memory SQLite session with all tables created
- client: FastAPI TestClient with DB dependency override
- lek_profile: the built-in lekmanga source profile
- make_manga / make_chapter: row factories
"""

import os

# Force sqlite for tests; must be set before any manga_scraper imports.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from manga_scraper.core.source_profiles import LEKMANGA
from manga_scraper.entities.base import Base
from manga_scraper.entities.manga import Chapter, Manga

# Import ALL entity modules so Base.metadata.create_all() registers them.
import manga_scraper.entities.manga  # noqa: F401
import manga_scraper.entities.scrape_job  # noqa: F401
import manga_scraper.entities.download_queue  # noqa: F401
import manga_scraper.entities.scraper_source  # noqa: F401


@pytest.fixture
def db_session():
    """In-memory SQLite for unit tests. Never hits production DB."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def client(db_session: Session):
    """FastAPI TestClient with DB dependency overridden to use in-memory SQLite."""
    from fastapi.testclient import TestClient
    from manga_scraper.core.database import get_db
    from manga_scraper.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
    app.dependency_overrides.clear()


@pytest.fixture
def lek_profile():
    return LEKMANGA


@pytest.fixture
def make_manga(db_session):
    def _make(slug="solo-leveling", **overrides):
        values = dict(
            slug=slug,
            title=slug.replace("-", " ").title(),
            source="lekmanga",
            source_url=f"https://lekmanga.net/manga/{slug}/",
        )
        values.update(overrides)
        manga = Manga(**values)
        db_session.add(manga)
        db_session.commit()
        return manga

    return _make


@pytest.fixture
def make_chapter(db_session):
    def _make(manga, number, **overrides):
        values = dict(
            manga_id=manga.id,
            chapter_number=float(number),
            title=f"Chapter {number}",
            source_url=f"{manga.source_url}chapter-{number}/",
        )
        values.update(overrides)
        chapter = Chapter(**values)
        db_session.add(chapter)
        db_session.commit()
        return chapter

    return _make


MANGA_PAGE_HTML = """
<html>
<body>
<div class="post-title"><h1> Solo Leveling </h1></div>
<div class="summary_image"><a href="#"><img data-src="/wp-content/uploads/cover.jpg"></a></div>
<div class="summary__content"><p>A weak hunter becomes the strongest.</p></div>
<div class="post-status"><div class="summary-content"> مستمر </div></div>
<div class="genres-content"><a>Action</a><a>Fantasy</a><a>Action</a></div>
<div class="author-content"><a>Chugong</a></div>
<ul class="main version-chap">
  <li class="wp-manga-chapter">
    <a href="https://lekmanga.net/manga/solo-leveling/chapter-3/">الفصل 3</a>
    <span class="chapter-release-date">2 days ago</span>
  </li>
  <li class="wp-manga-chapter"><a href="/manga/solo-leveling/chapter-2/">Chapter 2</a></li>
  <li class="wp-manga-chapter"><a href="/manga/solo-leveling/chapter-1-5/">Chapter 1.5</a></li>
</ul>
</body>
</html>
"""

CHAPTER_PAGE_HTML = """
<html>
<body>
<div class="reading-content">
  <div class="page-break"><img src=" https://cdn.lekmanga.net/1.jpg "></div>
  <div class="page-break"><img data-src="/uploads/2.jpg"></div>
  <div class="page-break"><img src="/img/placeholder.png"></div>
  <div class="page-break"><img data-lazy-src="3.jpg"></div>
</div>
</body>
</html>
"""


@pytest.fixture
def manga_page_html():
    return MANGA_PAGE_HTML


@pytest.fixture
def chapter_page_html():
    return CHAPTER_PAGE_HTML
