# price_engine/models/site_profile.py

"""Site profile models: which extraction strategies apply to which URLs."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ExtractionStrategy:
    """One heuristic attempt to locate a price within page content.

    ``kind`` selects the extraction routine (``json_ld``, ``itemprop``,
    ``attribute``, ``css_text`` or ``regex_scan``); ``params`` carries
    the kind-specific configuration such as a selector or regex list.
    """

    kind: str
    label: str
    params: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )


@dataclass(frozen=True)
class SiteProfile:
    """Ordered strategies for URLs containing any of ``match_patterns``."""

    name: str
    match_patterns: tuple[str, ...]
    strategies: tuple[ExtractionStrategy, ...]
    render_fallback: bool = False

    def matches(self, url: str) -> bool:
        """Return True if any pattern is a substring of *url*."""
        lowered = url.lower()
        return any(p.lower() in lowered for p in self.match_patterns)
