# price_engine/scrapers/rendered_scraper.py

"""Headless-browser fallback for pages whose price is injected by script."""

import dataclasses
import logging

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from price_engine.config.settings import Settings
from price_engine.errors import RenderTimeout
from price_engine.filters.price_normalizer import normalize_price
from price_engine.models.extraction_result import ExtractionResult
from price_engine.models.page_content import PageContent
from price_engine.models.site_profile import ExtractionStrategy
from price_engine.scrapers.strategies import extract_regex_scan

_READY_STATE_JS = "() => document.readyState === 'complete'"
_SCROLL_JS = "() => window.scrollTo(0, 500)"


class RenderedPageScraper:
    """Extract a price from a fully rendered page with Playwright.

    Every call launches its own Chromium instance and tears it down on
    all exit paths; no browser state survives between calls.  After the
    DOM is ready and the page has settled, the scraper tries the known
    price selectors, then JavaScript globals, then a regex scan of the
    rendered HTML.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        selectors: tuple[str, ...] = (),
        scripts: tuple[str, ...] = (),
        text_scan: ExtractionStrategy | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.logger = logging.getLogger("price_engine.rendered")
        self.selectors = selectors
        self.scripts = scripts
        self.text_scan = (
            dataclasses.replace(
                text_scan, label=f"rendered:{text_scan.label}"
            )
            if text_scan is not None
            else None
        )

    def render_and_extract(self, url: str) -> ExtractionResult | None:
        """Render *url* headlessly and look for a price.

        Raises:
            RenderTimeout: navigation or the ready-state wait ran out.
        """
        self.logger.info("Rendering %s in headless browser", url)
        with sync_playwright() as pw:
            browser = pw.chromium.launch(
                headless=self.settings.RENDER_HEADLESS,
                args=self.settings.RENDER_BROWSER_ARGS,
            )
            try:
                context = browser.new_context(
                    user_agent=self.settings.USER_AGENT,
                    locale=self.settings.RENDER_LOCALE,
                    viewport={"width": 1280, "height": 900},
                )
                try:
                    page = context.new_page()
                    self._load(page, url)
                    return self._extract_from_page(page)
                finally:
                    context.close()
            finally:
                browser.close()
                self.logger.debug("Browser closed for %s", url)

    def _load(self, page: Page, url: str) -> None:
        """Navigate, wait for ``readyState == complete``, then settle."""
        try:
            page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.settings.RENDER_NAV_TIMEOUT_MS,
            )
            page.wait_for_function(
                _READY_STATE_JS,
                timeout=self.settings.RENDER_READY_TIMEOUT_MS,
            )
        except PlaywrightTimeout as exc:
            raise RenderTimeout(f"Timed out rendering {url}") from exc

        page.wait_for_timeout(self.settings.RENDER_SETTLE_MS)
        # Lazy widgets often render the price only once scrolled into view
        page.evaluate(_SCROLL_JS)
        page.wait_for_timeout(self.settings.RENDER_SCROLL_SETTLE_MS)

    def _extract_from_page(self, page: Page) -> ExtractionResult | None:
        """Selectors first, then JS globals, then the full-page scan."""
        return (
            self._try_selectors(page)
            or self._try_scripts(page)
            or self._scan_text(page)
        )

    def _try_selectors(self, page: Page) -> ExtractionResult | None:
        for selector in self.selectors:
            try:
                element = page.query_selector(selector)
                if element is None:
                    continue
                text = element.inner_text().strip()
            except PlaywrightError as exc:
                self.logger.debug(
                    "Selector %s failed: %s", selector, exc,
                )
                continue
            if not text:
                continue
            price = normalize_price(text)
            if price is None:
                self.logger.debug(
                    "Selector %s text %r is not a price", selector, text,
                )
                continue
            self.logger.info(
                "Rendered price %s via selector %s", price, selector,
            )
            return ExtractionResult(
                price=price,
                method_label=f"rendered:selector:{selector}",
                raw_snippet=text,
            )
        return None

    def _try_scripts(self, page: Page) -> ExtractionResult | None:
        for script in self.scripts:
            try:
                value = page.evaluate(script)
            except PlaywrightError as exc:
                self.logger.debug("JS global read failed: %s", exc)
                continue
            # Objects and arrays would normalize their repr's digits
            if isinstance(value, bool) or not isinstance(
                value, (str, int, float)
            ):
                if value is not None:
                    self.logger.debug(
                        "JS global is a %s, not a scalar price",
                        type(value).__name__,
                    )
                continue
            if value == "":
                continue
            price = normalize_price(str(value))
            if price is None:
                continue
            self.logger.info("Rendered price %s via JS global", price)
            return ExtractionResult(
                price=price,
                method_label="rendered:script",
                raw_snippet=str(value),
            )
        return None

    def _scan_text(self, page: Page) -> ExtractionResult | None:
        if self.text_scan is None:
            return None
        rendered = PageContent(url=page.url, html=page.content())
        return extract_regex_scan(rendered, self.text_scan)
