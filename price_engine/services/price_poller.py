# price_engine/services/price_poller.py

"""Background poller that refreshes every active tracked target."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from price_engine.config.settings import Settings
from price_engine.errors import StoreError
from price_engine.models.price_point import PricePoint
from price_engine.models.tracked_target import TrackedTarget
from price_engine.services.price_extractor import PriceExtractor
from price_engine.storage.target_store import TargetStore

logger = logging.getLogger("price_engine.poller")


@dataclass
class CycleReport:
    """Tally of one poll cycle."""

    started_at: datetime
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    points: list[PricePoint] = field(
        default_factory=lambda: list[PricePoint]()
    )
    failed_urls: list[str] = field(
        default_factory=lambda: list[str]()
    )


class PricePoller:
    """Refresh tracked targets one at a time on a fixed interval.

    Targets are processed sequentially in store order; each one is
    fully resolved before the next starts, which keeps the outbound
    request rate to a single in-flight page.  Blocking work (fetch,
    render, store writes) runs in a worker thread so the event loop
    stays responsive.  A failing target is logged and counted, never
    allowed to abort the cycle.
    """

    def __init__(
        self,
        extractor: PriceExtractor,
        store: TargetStore,
        interval: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.extractor = extractor
        self.store = store
        self.interval = (
            Settings.POLL_INTERVAL if interval is None else interval
        )
        self._clock = clock

    def _persist(self, point: PricePoint, label: str) -> bool:
        """Append the point, then refresh the cached last price."""
        try:
            self.store.append_price_point(
                point.target_id, point.price, point.retrieved_at,
            )
        except StoreError as exc:
            logger.error("Failed to store price for %s: %s", label, exc)
            return False
        try:
            self.store.update_last_known_price(point.target_id, point.price)
        except StoreError as exc:
            # The point itself is stored; only the cached value is stale
            logger.warning(
                "Failed to update last price for %s: %s", label, exc,
            )
        return True

    async def refresh_target(
        self, target: TrackedTarget,
    ) -> PricePoint | None:
        """Extract and persist a fresh price for one target.

        Also serves the manual "refresh now" action.  Returns the stored
        point, or None when no price was found or it could not be saved.
        """
        label = target.name or target.url
        logger.info("Refreshing price for %s", label)
        try:
            price = await asyncio.to_thread(
                self.extractor.extract_price, target.url,
            )
        except Exception:
            logger.error(
                "Extraction crashed for %s (%s)",
                label,
                target.url,
                exc_info=True,
            )
            return None

        if price is None:
            logger.warning(
                "No price found for %s (%s)", label, target.url,
            )
            return None

        point = PricePoint(
            target_id=target.id,
            price=price,
            retrieved_at=self._clock(),
        )
        try:
            stored = await asyncio.to_thread(self._persist, point, label)
        except Exception:
            logger.error(
                "Store write crashed for %s (%s)",
                label,
                target.url,
                exc_info=True,
            )
            return None
        if not stored:
            return None
        logger.info("Updated %s: %s", label, price)
        return point

    async def run_cycle(
        self, stop_event: asyncio.Event | None = None,
    ) -> CycleReport:
        """Refresh every active target once and return the tally.

        *stop_event* is checked before each target, so a target that
        has started always finishes.
        """
        report = CycleReport(started_at=self._clock())
        try:
            targets = await asyncio.to_thread(
                self.store.list_active_targets
            )
        except Exception:
            logger.error("Could not load active targets", exc_info=True)
            return report

        report.total = len(targets)
        logger.info("Starting price refresh for %d targets", len(targets))

        for target in targets:
            if stop_event is not None and stop_event.is_set():
                report.cancelled = True
                logger.info("Stop requested, ending cycle early")
                break
            point = await self.refresh_target(target)
            if point is not None:
                report.succeeded += 1
                report.points.append(point)
            else:
                report.failed += 1
                report.failed_urls.append(target.url)

        logger.info(
            "Refresh tally: %d succeeded, %d failed",
            report.succeeded,
            report.failed,
        )
        return report

    async def run_forever(self, stop_event: asyncio.Event) -> int:
        """Cycle until *stop_event* is set. Returns the cycle count."""
        cycles = 0
        logger.info(
            "Poller started, interval %.0fs", self.interval,
        )
        while not stop_event.is_set():
            try:
                await self.run_cycle(stop_event)
            except Exception:
                logger.critical("Poll cycle crashed", exc_info=True)
            cycles += 1
            if stop_event.is_set():
                break
            logger.debug("Sleeping %.0fs until next cycle", self.interval)
            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self.interval,
                )
            except asyncio.TimeoutError:
                pass
        logger.info("Poller stopped after %d cycles", cycles)
        return cycles
