# price_engine/scrapers/page_fetcher.py

"""Plain-HTTP page fetcher shared by every HTTP-based strategy."""

import logging
from typing import Any
from urllib.parse import urlparse

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from price_engine.config.settings import Settings
from price_engine.errors import FetchError
from price_engine.models.page_content import PageContent


class PageFetcher:
    """Single-attempt GET with a browser-impersonating TLS fingerprint.

    One instance owns one ``curl_cffi`` session; it is configured once
    in ``__init__`` and only read afterwards, so the poller and the
    manual refresh path can share it.  Redirects are followed and
    gzip/deflate/br bodies are decoded by curl.  There is no retry:
    any failure surfaces as :class:`FetchError` and the caller moves on
    to its next fallback.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: curl_requests.Session | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.logger = logging.getLogger("price_engine.fetcher")
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT
        self._cs_scraper: Any = None

    @staticmethod
    def _referer_for(url: str) -> str:
        """Use the site root as the referrer hint."""
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return ""
        return f"{parsed.scheme}://{parsed.netloc}/"

    def _build_headers(self, url: str) -> dict[str, str]:
        """Browser-like headers plus a Referer for *url*."""
        headers = dict(self.settings.DEFAULT_HEADERS)
        referer = self._referer_for(url)
        if referer:
            headers["Referer"] = referer
        return headers

    def _is_challenge(self, text: str) -> bool:
        """Detect Cloudflare interstitials served with HTTP 200."""
        lower = text.lower()
        for marker in self.settings.CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "Cloudflare challenge detected (marker: '%s')",
                    marker,
                )
                return True
        return False

    def _fetch_cloudscraper(
        self, url: str, headers: dict[str, str],
    ) -> str | None:
        """One cloudscraper GET to get past a JS challenge page."""
        if self._cs_scraper is None:
            _cs: Any = cloudscraper
            self._cs_scraper = _cs.create_scraper()
        try:
            resp: Any = self._cs_scraper.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
            )
        except Exception as exc:
            self.logger.warning(
                "cloudscraper request failed for %s: %s", url, exc,
            )
            return None
        if resp.status_code != 200:
            self.logger.warning(
                "cloudscraper HTTP %d for %s", resp.status_code, url,
            )
            return None
        text = str(resp.text)
        if self._is_challenge(text):
            return None
        return text

    def fetch(self, url: str) -> PageContent:
        """GET *url* once and return its HTML.

        Raises:
            FetchError: on transport failure, timeout, a non-2xx status,
                or an anti-bot page that cloudscraper could not pass.
        """
        headers = self._build_headers(url)
        try:
            resp = self.session.get(
                url,
                headers=headers,
                timeout=self._request_timeout,
                allow_redirects=True,
            )
        except Exception as exc:
            self.logger.warning(
                "Request error for %s: %s", url, exc, exc_info=True,
            )
            raise FetchError(url, f"transport error: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            self.logger.warning("HTTP %d for %s", resp.status_code, url)
            raise FetchError(url, f"HTTP {resp.status_code}")

        text = resp.text
        if self._is_challenge(text):
            if self.settings.CLOUDSCRAPER_FALLBACK:
                self.logger.info(
                    "Challenge page, falling back to cloudscraper: %s",
                    url,
                )
                solved = self._fetch_cloudscraper(url, headers)
                if solved is not None:
                    return PageContent(url=url, html=solved)
            raise FetchError(url, "anti-bot challenge page")

        self.logger.debug(
            "Fetched %s (%d bytes)", url, len(text),
        )
        return PageContent(url=url, html=text)
