# price_engine/services/price_extractor.py

"""Orchestrates the extraction strategies for a single product URL."""

import functools
import logging
from collections.abc import Callable
from decimal import Decimal
from enum import Enum

from price_engine.config.settings import Settings
from price_engine.errors import FetchError, MalformedPriceText, RenderTimeout
from price_engine.models.extraction_result import ExtractionResult
from price_engine.models.page_content import PageContent
from price_engine.models.site_profile import SiteProfile
from price_engine.scrapers.page_fetcher import PageFetcher
from price_engine.scrapers.rendered_scraper import RenderedPageScraper
from price_engine.scrapers.strategies import run_strategy
from price_engine.scrapers.strategy_registry import StrategyRegistry

logger = logging.getLogger("price_engine.extractor")

FETCH_LABEL = "http:fetch"
RENDER_LABEL = "rendered"


class AttemptOutcome(str, Enum):
    """What happened when one strategy (or the fetch) was attempted."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    FETCH_ERROR = "fetch_error"
    RENDER_TIMEOUT = "render_timeout"
    ERROR = "error"


AttemptHook = Callable[[str, AttemptOutcome], None]


def log_attempt(label: str, outcome: AttemptOutcome) -> None:
    """Default observability hook: one log line per attempt."""
    level = (
        logging.INFO if outcome is AttemptOutcome.SUCCESS
        else logging.DEBUG
    )
    logger.log(level, "Attempt %s -> %s", label, outcome.value)


class PriceExtractor:
    """Find the current price on a product page.

    The site profile for the URL decides which strategies run and in
    which order.  The page is fetched once; HTTP strategies run against
    it in profile order and the first plausible price wins.  When they
    are exhausted and the profile allows it, the headless-browser
    fallback runs last.  Every strategy failure is absorbed, so
    :meth:`extract` never raises.
    """

    def __init__(
        self,
        registry: StrategyRegistry | None = None,
        fetcher: PageFetcher | None = None,
        renderer: RenderedPageScraper | None = None,
        settings: Settings | None = None,
        on_attempt: AttemptHook | None = None,
        render_enabled: bool | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or StrategyRegistry()
        self.fetcher = fetcher or PageFetcher(self.settings)
        enabled = (
            self.settings.RENDER_ENABLED
            if render_enabled is None
            else render_enabled
        )
        if renderer is None and enabled:
            renderer = RenderedPageScraper(
                settings=self.settings,
                selectors=self.registry.render_selectors,
                scripts=self.registry.render_scripts,
                text_scan=self.registry.fallback_scan,
            )
        self.renderer = renderer if enabled else None
        self.on_attempt: AttemptHook = on_attempt or log_attempt

    # ── Private helpers ──────────────────────────────────

    def _notify(self, label: str, outcome: AttemptOutcome) -> None:
        """Report an attempt; a broken hook must not break extraction."""
        try:
            self.on_attempt(label, outcome)
        except Exception:
            logger.warning(
                "on_attempt hook failed for %s", label, exc_info=True,
            )

    def _fetch(self, url: str) -> PageContent | None:
        try:
            return self.fetcher.fetch(url)
        except FetchError as exc:
            logger.warning("Fetch failed: %s", exc)
            self._notify(FETCH_LABEL, AttemptOutcome.FETCH_ERROR)
        except Exception:
            logger.error(
                "Unexpected fetch error for %s", url, exc_info=True,
            )
            self._notify(FETCH_LABEL, AttemptOutcome.ERROR)
        return None

    def _run_http_strategies(
        self, profile: SiteProfile, page: PageContent,
    ) -> ExtractionResult | None:
        """Try each strategy in profile order; first hit wins."""
        for strategy in profile.strategies:
            try:
                result = run_strategy(strategy, page)
            except MalformedPriceText as exc:
                logger.debug("[%s] %s", strategy.label, exc)
                self._notify(strategy.label, AttemptOutcome.MALFORMED)
                continue
            except Exception:
                logger.warning(
                    "[%s] Strategy crashed on %s",
                    strategy.label,
                    page.url,
                    exc_info=True,
                )
                self._notify(strategy.label, AttemptOutcome.ERROR)
                continue
            if result is None:
                self._notify(strategy.label, AttemptOutcome.NOT_FOUND)
                continue
            self._notify(strategy.label, AttemptOutcome.SUCCESS)
            return result
        return None

    def _run_renderer(self, url: str) -> ExtractionResult | None:
        if self.renderer is None:
            return None
        try:
            result = self.renderer.render_and_extract(url)
        except RenderTimeout as exc:
            logger.warning("%s", exc)
            self._notify(RENDER_LABEL, AttemptOutcome.RENDER_TIMEOUT)
            return None
        except Exception:
            logger.error(
                "Rendered fallback failed for %s", url, exc_info=True,
            )
            self._notify(RENDER_LABEL, AttemptOutcome.ERROR)
            return None
        if result is None:
            self._notify(RENDER_LABEL, AttemptOutcome.NOT_FOUND)
            return None
        self._notify(result.method_label, AttemptOutcome.SUCCESS)
        return result

    # ── Public API ───────────────────────────────────────

    def extract(self, url: str) -> ExtractionResult | None:
        """Return the first successful extraction for *url*, or None."""
        profile = self.registry.select_profile(url)
        logger.info("Extracting %s with profile '%s'", url, profile.name)

        page = self._fetch(url)
        if page is not None:
            result = self._run_http_strategies(profile, page)
            if result is not None:
                logger.info(
                    "Price %s for %s via %s",
                    result.price,
                    url,
                    result.method_label,
                )
                return result

        if profile.render_fallback:
            result = self._run_renderer(url)
            if result is not None:
                logger.info(
                    "Price %s for %s via %s",
                    result.price,
                    url,
                    result.method_label,
                )
                return result

        logger.info("No price found for %s", url)
        return None

    def extract_price(self, url: str) -> Decimal | None:
        """Return just the normalized price for *url*, or None."""
        result = self.extract(url)
        return result.price if result is not None else None


@functools.lru_cache(maxsize=1)
def shared_extractor() -> PriceExtractor:
    """Process-wide extractor built on first use and reused afterwards."""
    logger.debug("Building shared PriceExtractor")
    return PriceExtractor()


def extract_price_once(
    url: str, extractor: PriceExtractor | None = None,
) -> Decimal | None:
    """Synchronous one-shot extraction for callers outside the poller.

    Without *extractor*, calls share one lazily built extractor, so the
    site profiles are loaded and the HTTP session is opened only once
    per process.  Long-lived callers that already own an extractor
    (such as the poller) should pass it.  Returns ``None`` when no
    price could be found.
    """
    return (extractor or shared_extractor()).extract_price(url)
