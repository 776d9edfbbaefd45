"""
Service for fetching pages that sit behind a Cloudflare challenge.

Strategies are tried in order until one returns HTML that is neither a
challenge page nor obviously incomplete:

1. the hosted headless-browser scraping API (Firecrawl)
2. direct fetches with stealth headers and growing delays
3. a FlareSolverr instance, when FLARESOLVERR_URL is configured
4. a local headless Chrome, when BYPASS_BROWSER_ENABLED is on
"""

import logging
import random
import time
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from manga_scraper.core.config import Settings, settings as default_settings
from manga_scraper.core.exceptions import BypassError
from manga_scraper.core.scraper_utils import (
    USER_AGENTS,
    build_browser_headers,
    find_challenge_marker,
    looks_like_manga_page,
)
from manga_scraper.dtos.helper_dto import BypassResult

logger = logging.getLogger(__name__)

HOSTED_WAIT_MS = (5000, 10000)
STEALTH_ATTEMPTS = 3
BLOCKED_STATUS_CODES = frozenset({403, 429, 503})


class CloudflareBypassService:
    def __init__(
        self,
        config: Optional[Settings] = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or default_settings
        self._owns_http = http is None
        self.http = http or requests.Session()
        self.sleep = sleep

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "CloudflareBypassService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def bypass(
        self,
        url: str,
        wait_for_selector: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> BypassResult:
        timeout_ms = timeout_ms or self.config.BYPASS_TIMEOUT_MS
        strategies = [
            ("firecrawl", lambda: self._hosted(url, wait_for_selector, timeout_ms)),
            ("stealth", lambda: self._stealth(url, timeout_ms)),
            ("flaresolverr", lambda: self._flaresolverr(url, timeout_ms)),
            ("headless_browser", lambda: self._browser(url, wait_for_selector, timeout_ms)),
        ]

        for method, strategy in strategies:
            logger.info("Bypass strategy %s for %s", method, url)
            html = strategy()
            if html:
                logger.info("Bypass succeeded via %s (%d bytes)", method, len(html))
                return BypassResult(html=html, status=200, method=method)

        domain = urlparse(url).hostname or url
        raise BypassError(
            f"{domain} is protected by Cloudflare and every bypass strategy failed. "
            "Try a different source."
        )

    def _accept(self, html: Optional[str], status: int = 200) -> bool:
        if not html or status in BLOCKED_STATUS_CODES:
            return False
        marker = find_challenge_marker(html)
        if marker:
            logger.debug("Rejected response: challenge marker '%s'", marker)
            return False
        return looks_like_manga_page(html)

    def _hosted(self, url: str, wait_for_selector: Optional[str], timeout_ms: int) -> Optional[str]:
        if not self.config.FIRECRAWL_API_KEY:
            logger.debug("Firecrawl not configured, skipping")
            return None

        for wait_ms in HOSTED_WAIT_MS:
            body = {
                "url": url,
                "formats": ["html"],
                "waitFor": wait_ms,
                "timeout": timeout_ms,
                "onlyMainContent": False,
            }
            if wait_for_selector:
                body["actions"] = [{"type": "wait", "selector": wait_for_selector}]
            try:
                res = self.http.post(
                    self.config.FIRECRAWL_API_URL,
                    json=body,
                    headers={"Authorization": f"Bearer {self.config.FIRECRAWL_API_KEY}"},
                    timeout=timeout_ms / 1000 + 10,
                )
                payload = res.json()
            except (requests.RequestException, ValueError) as e:
                logger.warning("Firecrawl request failed: %s", e)
                continue

            if not res.ok or not payload.get("success"):
                logger.warning("Firecrawl error: %s", payload.get("error") or f"HTTP {res.status_code}")
                continue

            html = (payload.get("data") or {}).get("html") or payload.get("html") or ""
            if len(html.encode("utf-8")) < self.config.BYPASS_MIN_HTML_BYTES:
                logger.info("Firecrawl returned only %d bytes, treating as incomplete", len(html))
                continue
            if find_challenge_marker(html) is None:
                return html
        return None

    def _stealth(self, url: str, timeout_ms: int) -> Optional[str]:
        origin = "{0.scheme}://{0.netloc}".format(urlparse(url))
        for attempt in range(1, STEALTH_ATTEMPTS + 1):
            self.sleep(2 + attempt + random.uniform(0.5, 2.0))
            user_agent = USER_AGENTS[attempt % len(USER_AGENTS)]
            # After the first hit we look like in-site navigation.
            headers = build_browser_headers(user_agent, referer=origin if attempt > 1 else None)
            try:
                res = self.http.get(url, headers=headers, timeout=timeout_ms / 1000, allow_redirects=True)
            except requests.RequestException as e:
                logger.info("Stealth attempt %d failed: %s", attempt, e)
                continue
            if self._accept(res.text, res.status_code):
                return res.text
            logger.info("Stealth attempt %d rejected (HTTP %d, %d bytes)", attempt, res.status_code, len(res.text))
        return None

    def _flaresolverr(self, url: str, timeout_ms: int) -> Optional[str]:
        if not self.config.FLARESOLVERR_URL:
            return None
        try:
            res = self.http.post(
                f"{self.config.FLARESOLVERR_URL.rstrip('/')}/v1",
                json={"cmd": "request.get", "url": url, "maxTimeout": timeout_ms},
                timeout=timeout_ms / 1000 + 10,
            )
            payload = res.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("FlareSolverr request failed: %s", e)
            return None
        html = (payload.get("solution") or {}).get("response")
        if payload.get("status") == "ok" and self._accept(html):
            return html
        logger.info("FlareSolverr failed: %s", payload.get("message"))
        return None

    def _browser(self, url: str, wait_for_selector: Optional[str], timeout_ms: int) -> Optional[str]:
        if not self.config.BYPASS_BROWSER_ENABLED:
            return None

        options = Options()
        options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument(f"--user-agent={random.choice(USER_AGENTS)}")

        driver = None
        try:
            driver = webdriver.Chrome(
                service=Service(ChromeDriverManager().install()),
                options=options,
            )
            driver.set_page_load_timeout(timeout_ms / 1000)
            driver.get(url)
            if wait_for_selector:
                WebDriverWait(driver, timeout_ms / 1000).until(
                    EC.presence_of_element_located((By.CSS_SELECTOR, wait_for_selector))
                )
            else:
                self.sleep(8)
            html = driver.page_source
        except WebDriverException as e:
            logger.warning("Headless browser failed for %s: %s", url, e)
            return None
        finally:
            if driver is not None:
                driver.quit()
        return html if self._accept(html) else None
