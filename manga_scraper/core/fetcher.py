"""Resilient HTML fetcher shared by every scrape job.

Each attempt waits a random politeness delay, sends browser-like headers
and treats anti-bot interstitials as retryable failures. Escalating to the
Cloudflare bypass helper is left to the caller.
"""

import logging
import random
import time
from typing import Callable, Optional, Sequence

import requests

from manga_scraper.core.config import settings
from manga_scraper.core.exceptions import ChallengeDetected, FetchError
from manga_scraper.core.scraper_utils import (
    CHALLENGE_STATUS_CODES,
    build_browser_headers,
    find_challenge_marker,
    get_random_user_agent,
)
from manga_scraper.core.source_profiles import SourceProfile

logger = logging.getLogger(__name__)


class ResilientFetcher:
    """GET with jitter, rotating user agents and fixed backoff between attempts."""

    def __init__(
        self,
        http: Optional[requests.Session] = None,
        *,
        backoff_delays: Optional[Sequence[float]] = None,
        jitter: Optional[tuple[float, float]] = None,
        timeout: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._owns_http = http is None
        self.http = http or requests.Session()
        self.backoff_delays = list(
            settings.FETCH_BACKOFF_DELAYS if backoff_delays is None else backoff_delays
        )
        self.jitter = jitter or (settings.FETCH_JITTER_MIN, settings.FETCH_JITTER_MAX)
        self.timeout = timeout or settings.SCRAPE_REQUEST_TIMEOUT
        self.sleep = sleep

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "ResilientFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def max_attempts(self) -> int:
        return len(self.backoff_delays) + 1

    def fetch(self, url: str, profile: SourceProfile) -> str:
        """Return the page body, or raise FetchError once every attempt failed."""
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            self.sleep(random.uniform(*self.jitter))
            try:
                html = self._attempt(url, profile)
                if attempt > 1:
                    logger.info("Fetched %s on attempt %d", url, attempt)
                return html
            except (ChallengeDetected, requests.RequestException) as e:
                last_error = e
                logger.warning(
                    "Fetch attempt %d/%d for %s failed: %s",
                    attempt, self.max_attempts, url, e,
                )

            if attempt < self.max_attempts:
                self.sleep(self.backoff_delays[attempt - 1])

        raise FetchError(url, self.max_attempts, last_error) from last_error

    def _attempt(self, url: str, profile: SourceProfile) -> str:
        headers = build_browser_headers(get_random_user_agent(), referer=profile.base_url)
        res = self.http.get(url, headers=headers, timeout=self.timeout)

        if res.status_code in CHALLENGE_STATUS_CODES:
            raise ChallengeDetected(url, f"HTTP {res.status_code}")
        res.raise_for_status()

        marker = find_challenge_marker(res.text)
        if marker:
            raise ChallengeDetected(url, f"page contains '{marker}'")
        return res.text
