"""Shared helpers for talking to protected manga sites: user agents,
browser-like headers and anti-bot challenge detection."""

import random
from typing import Optional
from urllib.parse import urlparse

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.3 Safari/605.1.15",
]

# Lower-cased substrings that only show up on interstitial/challenge pages.
CHALLENGE_MARKERS = (
    "just a moment",
    "checking your browser",
    "cf-browser-verification",
    "challenge-platform",
    "challenges.cloudflare.com",
    "__cf_chl_",
    "cf_chl_opt",
    "verifying you are human",
    "enable javascript and cookies to continue",
)

CHALLENGE_STATUS_CODES = frozenset({403, 503})

# Signals that a page is real manga content rather than an error shell.
MANGA_PAGE_MARKERS = (
    "wp-manga",
    "manga-",
    "chapter",
    "manhwa",
    "manhua",
    "webtoon",
    "الفصل",
    "مانجا",
    "post-title",
    "entry-title",
    "summary_image",
    "reading-content",
    "genres",
)


def get_random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def build_browser_headers(
    user_agent: str, referer: Optional[str] = None
) -> dict[str, str]:
    """Headers a real browser sends on a top-level navigation."""
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "ar,en-US;q=0.9,en;q=0.8",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "same-origin" if referer else "none",
        "Sec-Fetch-User": "?1",
        "Cache-Control": "max-age=0",
    }
    if referer:
        parsed = urlparse(referer)
        headers["Referer"] = referer.rstrip("/") + "/"
        headers["Origin"] = f"{parsed.scheme}://{parsed.netloc}"
    if "Chrome" in user_agent:
        headers["sec-ch-ua"] = '"Not A(Brand";v="8", "Chromium";v="132", "Google Chrome";v="132"'
        headers["sec-ch-ua-mobile"] = "?0"
        headers["sec-ch-ua-platform"] = '"Windows"'
    return headers


def find_challenge_marker(html: str) -> Optional[str]:
    """Return the first challenge marker present in *html*, if any."""
    lowered = (html or "").lower()
    for marker in CHALLENGE_MARKERS:
        if marker in lowered:
            return marker
    return None


def looks_like_manga_page(html: str, min_length: int = 5000) -> bool:
    """Heuristic used by the bypass helper before accepting a response."""
    if not html or len(html) < min_length:
        return False
    lowered = html.lower()
    hits = sum(1 for marker in MANGA_PAGE_MARKERS if marker in lowered)
    has_structure = "<html" in lowered and ("<body" in lowered or "</div>" in lowered)
    return (hits >= 2 and has_structure) or len(html) > 30000
