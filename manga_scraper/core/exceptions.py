"""Error taxonomy shared by the fetcher, the services and the routers.

Every error carries the HTTP status the routers answer with, so a service
can raise and forget about the transport.
"""

from __future__ import annotations

from typing import Optional


class ScraperError(Exception):
    status_code = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ChallengeDetected(ScraperError):
    """Upstream served an anti-bot interstitial instead of the page."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Cloudflare challenge detected for {url}: {reason}")
        self.url = url
        self.reason = reason


class FetchError(ScraperError):
    """Raised once the fetcher has exhausted its attempts."""

    def __init__(
        self, url: str, attempts: int, last_error: Optional[BaseException] = None
    ) -> None:
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Failed to fetch {url} after {attempts} attempts{detail}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error

    @property
    def is_challenge(self) -> bool:
        return isinstance(self.last_error, ChallengeDetected)


class MangaNotFound(ScraperError):
    status_code = 404

    def __init__(self, slug: str) -> None:
        super().__init__(f"Manga not found: {slug}")
        self.slug = slug


class ChapterNotFound(ScraperError):
    status_code = 404

    def __init__(self, chapter_id: int) -> None:
        super().__init__(f"Chapter not found: {chapter_id}")
        self.chapter_id = chapter_id


class UnknownSource(ScraperError):
    status_code = 400

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown source: {name}")
        self.name = name


class BypassError(ScraperError):
    status_code = 403


class ExtractionError(ScraperError):
    status_code = 400


class RateLimited(ScraperError):
    status_code = 429


# Referential failures cannot be fixed by retrying the same job.
NON_RETRYABLE_ERRORS = (MangaNotFound, ChapterNotFound, UnknownSource)
