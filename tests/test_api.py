"""
Tests for FastAPI endpoints. Covers:
  auth guard
  structured error responses
  scrape / queue / helper / source endpoint contracts
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from manga_scraper.core.exceptions import BypassError, FetchError, RateLimited
from manga_scraper.dtos.helper_dto import BypassResult, MangaMetadata
from manga_scraper.dtos.queue_dto import EnqueueResult, QueueRunResult
from manga_scraper.dtos.scrape_dto import JobType, ScrapeResult
from manga_scraper.entities.download_queue import DownloadQueueItem
from manga_scraper.entities.scrape_job import ScrapeJob


# ---------------------------------------------------------------------------
# Health / request id (public, no auth)
# ---------------------------------------------------------------------------


class TestPublicEndpoints:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"
        assert "X-Request-ID" in r.headers

    def test_cors_preflight(self, client):
        r = client.options(
            "/scrape",
            headers={
                "Origin": "https://reader.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )
        assert r.status_code == 200
        assert r.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TestAuth:
    def test_forbidden_with_wrong_key(self, client):
        with patch("manga_scraper.core.auth.settings") as mock_settings:
            mock_settings.API_KEY = "correct-key"
            r = client.post(
                "/process-download-queue",
                json={},
                headers={"X-API-Key": "wrong-key"},
            )
        assert r.status_code == 403
        body = r.json()
        assert body["error"] == "http_error"
        assert "request_id" in body

    def test_forbidden_without_key(self, client):
        with patch("manga_scraper.core.auth.settings") as mock_settings:
            mock_settings.API_KEY = "correct-key"
            r = client.post("/process-download-queue", json={})
        assert r.status_code == 403
        assert r.json()["message"] == "Invalid or missing X-API-Key"

    def test_allowed_with_correct_key(self, client):
        with patch("manga_scraper.core.auth.settings") as mock_settings:
            mock_settings.API_KEY = "correct-key"
            r = client.post(
                "/process-download-queue",
                json={},
                headers={"X-API-Key": "correct-key"},
            )
        assert r.status_code == 200


# ---------------------------------------------------------------------------
# POST /scrape
# ---------------------------------------------------------------------------


class TestScrapeEndpoint:
    def _patch_run(self, **kwargs):
        return patch(
            "manga_scraper.routers.scrape.ScrapeService.run", new_callable=AsyncMock, **kwargs
        )

    def test_pages_success(self, client):
        result = ScrapeResult(job_id=7, job_type=JobType.pages, data=[{"page_number": 1}], pages_count=1)
        with self._patch_run(return_value=result) as run:
            r = client.post(
                "/scrape",
                json={"url": "https://lekmanga.net/c/1", "jobType": "pages", "chapterId": 3, "source": "lekmanga"},
            )

        assert r.status_code == 200
        assert r.json() == {"success": True, "data": [{"page_number": 1}], "jobId": 7, "pagesCount": 1}
        run.assert_awaited_once_with(
            JobType.pages, "https://lekmanga.net/c/1", source="lekmanga", chapter_id=3
        )

    def test_chapters_success_reports_partial(self, client):
        result = ScrapeResult(job_id=2, job_type=JobType.chapters, data=[], total_found=40, partial=True)
        with self._patch_run(return_value=result):
            r = client.post("/scrape", json={"url": "https://lekmanga.net/manga/x/", "jobType": "chapters"})

        body = r.json()
        assert body["success"] is True
        assert body["partial"] is True
        assert body["totalFound"] == 40

    def test_failure_is_500(self, client):
        with self._patch_run(side_effect=FetchError("https://x/", 4)):
            r = client.post("/scrape", json={"url": "https://x/", "jobType": "manga_info"})

        assert r.status_code == 500
        assert r.json()["success"] is False
        assert "Failed to fetch" in r.json()["error"]

    def test_missing_chapter_id_is_400(self, client, db_session):
        r = client.post("/scrape", json={"url": "https://x/", "jobType": "pages"})

        assert r.status_code == 400
        assert r.json() == {"success": False, "error": "chapterId is required for pages jobs"}

    def test_unknown_job_type_is_rejected(self, client):
        r = client.post("/scrape", json={"url": "https://x/", "jobType": "everything"})

        assert r.status_code == 422
        assert r.json()["error"] == "validation_error"


# ---------------------------------------------------------------------------
# Download queue
# ---------------------------------------------------------------------------


class TestQueueEndpoints:
    def test_process_download_queue(self, client):
        result = QueueRunResult(processed=2, failed=1, remaining=4, message="Processed 2 items", chained=True)
        with patch(
            "manga_scraper.services.download_queue_service.DownloadQueueService.process_batch",
            new_callable=AsyncMock,
            return_value=result,
        ) as process:
            r = client.post("/process-download-queue", json={"mangaId": 5})

        assert r.status_code == 200
        assert r.json() == {"processed": 2, "failed": 1, "remaining": 4, "message": "Processed 2 items"}
        process.assert_awaited_once_with(5)

    def test_process_download_queue_without_body(self, client):
        r = client.post("/process-download-queue")

        assert r.status_code == 200
        assert r.json()["message"] == "No pending items"

    def test_process_download_queue_error(self, client):
        with patch(
            "manga_scraper.services.download_queue_service.DownloadQueueService.process_batch",
            new_callable=AsyncMock,
            side_effect=RuntimeError("database is locked"),
        ):
            r = client.post("/process-download-queue", json={})

        assert r.status_code == 500
        assert r.json() == {"error": "database is locked", "success": False}

    def test_queue_all_chapters(self, client):
        with patch(
            "manga_scraper.services.download_queue_service.DownloadQueueService.enqueue_missing_chapters",
            new_callable=AsyncMock,
            return_value=EnqueueResult(queued=3, total=3, message="Queued 3 chapters for background download"),
        ) as enqueue:
            r = client.post("/queue-all-chapters", json={"mangaId": 1})

        assert r.status_code == 200
        assert r.json()["queued"] == 3
        enqueue.assert_awaited_once_with(1, source=None, priority=10)

    def test_list_download_queue(self, client, db_session, make_manga):
        manga = make_manga()
        for status in ("pending", "failed"):
            db_session.add(
                DownloadQueueItem(
                    manga_id=manga.id, source="lekmanga", source_url="https://x/", status=status
                )
            )
        db_session.commit()

        r = client.get("/download-queue", params={"status": "failed"})

        assert r.status_code == 200
        assert [i["status"] for i in r.json()] == ["failed"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelperEndpoints:
    def test_cloudflare_bypass_success(self, client):
        with patch(
            "manga_scraper.routers.helpers.CloudflareBypassService.bypass",
            return_value=BypassResult(html="<html/>", status=200, method="stealth"),
        ):
            r = client.post("/cloudflare-bypass", json={"url": "https://lekmanga.net/"})

        assert r.status_code == 200
        assert r.json() == {"success": True, "html": "<html/>", "status": 200, "method": "stealth"}

    def test_cloudflare_bypass_failure(self, client):
        with patch(
            "manga_scraper.routers.helpers.CloudflareBypassService.bypass",
            side_effect=BypassError("lekmanga.net is protected by Cloudflare"),
        ):
            r = client.post("/cloudflare-bypass", json={"url": "https://lekmanga.net/"})

        assert r.status_code == 403
        assert r.json()["method"] == "failed"
        assert r.json()["success"] is False

    def test_extract_manga_info(self, client):
        with patch(
            "manga_scraper.routers.helpers.MangaInfoExtractor.extract",
            return_value=MangaMetadata(title="Solo Leveling", genres=["Action"]),
        ) as extract:
            r = client.post("/extract-manga-info", json={"url": "https://x/", "mangaId": 4})

        assert r.status_code == 200
        assert r.json() == {
            "success": True,
            "data": {"title": "Solo Leveling", "genres": ["Action"], "alternative_titles": []},
        }
        extract.assert_called_once_with("https://x/", 4)

    def test_extract_manga_info_rate_limited(self, client):
        with patch(
            "manga_scraper.routers.helpers.MangaInfoExtractor.extract",
            side_effect=RateLimited("Rate limit exceeded, please try again later"),
        ):
            r = client.post("/extract-manga-info", json={"url": "https://x/"})

        assert r.status_code == 429
        assert r.json()["success"] is False


# ---------------------------------------------------------------------------
# Source registry
# ---------------------------------------------------------------------------


class TestSourceEndpoints:
    def test_list_includes_builtin(self, client):
        r = client.get("/sources")

        assert r.status_code == 200
        lek = next(s for s in r.json() if s["name"] == "lekmanga")
        assert lek["base_url"] == "https://lekmanga.net"
        assert "li.wp-manga-chapter" in lek["selectors"]["chapter_list"]

    def test_create_source(self, client):
        r = client.post(
            "/sources",
            json={
                "name": "Azora",
                "baseUrl": "https://azora.example/",
                "selectors": {"title": "h1", "chapters": "li.chapter", "pageImages": "img.page"},
            },
        )

        assert r.status_code == 201
        body = r.json()
        assert body["name"] == "azora"
        assert body["base_url"] == "https://azora.example"
        assert body["selectors"]["chapter_list"] == ["li.chapter"]

    @pytest.mark.parametrize("selectors", [{"title": "h1"}, {"title": "", "chapterList": "li", "pageImages": "img"}])
    def test_create_source_rejects_bad_selectors(self, client, selectors):
        r = client.post(
            "/sources",
            json={"name": "broken", "baseUrl": "https://x.example", "selectors": selectors},
        )

        assert r.status_code == 422
        assert r.json()["error"] == "validation_error"


# ---------------------------------------------------------------------------
# Scrape jobs
# ---------------------------------------------------------------------------


class TestScrapeJobEndpoints:
    def _job(self, db_session, status, minutes_ago=0):
        job = ScrapeJob(
            job_type="pages",
            status=status,
            source_url="https://lekmanga.net/c/1",
            updated_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
        )
        db_session.add(job)
        db_session.commit()
        return job

    def test_list_scrape_jobs_by_status(self, client, db_session):
        self._job(db_session, "completed")
        failed = self._job(db_session, "failed")

        r = client.get("/scrape-jobs", params={"status": "failed"})

        assert r.status_code == 200
        assert [j["id"] for j in r.json()] == [failed.id]
        assert r.json()[0]["retry_count"] == 0

    def test_list_all_scrape_jobs(self, client, db_session):
        self._job(db_session, "completed")
        self._job(db_session, "processing")

        r = client.get("/scrape-jobs")

        assert len(r.json()) == 2

    def test_clear_stalled(self, client, db_session):
        stalled = self._job(db_session, "processing", minutes_ago=30)
        running = self._job(db_session, "processing")

        r = client.post("/scrape-jobs/clear-stalled")

        assert r.status_code == 200
        assert r.json() == {"cleared": 1}
        db_session.expire_all()
        assert db_session.get(ScrapeJob, stalled.id).status == "failed"
        assert db_session.get(ScrapeJob, running.id).status == "processing"

    def test_clear_stalled_requires_key(self, client):
        with patch("manga_scraper.core.auth.settings") as mock_settings:
            mock_settings.API_KEY = "correct-key"
            r = client.post("/scrape-jobs/clear-stalled")

        assert r.status_code == 403
