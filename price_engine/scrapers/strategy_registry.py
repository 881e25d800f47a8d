# price_engine/scrapers/strategy_registry.py

"""Registry of site profiles loaded from ``site_profiles.json``."""

import json
import logging
from pathlib import Path
from typing import Any

from price_engine.config.settings import Settings
from price_engine.models.site_profile import ExtractionStrategy, SiteProfile
from price_engine.scrapers.strategies import (
    REDUCE_POLICIES,
    REQUIRED_PARAMS,
    STRATEGY_KINDS,
)

logger = logging.getLogger("price_engine.registry")

GENERIC_PROFILE = "generic"


def _parse_strategy(
    profile_name: str, raw: dict[str, Any],
) -> ExtractionStrategy:
    """Build one strategy, rejecting unknown kinds and missing params."""
    kind = raw.get("kind")
    if kind not in STRATEGY_KINDS:
        msg = f"Profile '{profile_name}': unknown strategy kind {kind!r}"
        raise ValueError(msg)
    params = {
        k: v for k, v in raw.items() if k not in ("kind", "label")
    }
    missing = [p for p in REQUIRED_PARAMS.get(kind, ()) if p not in params]
    if missing:
        msg = (
            f"Profile '{profile_name}': {kind} strategy "
            f"missing {', '.join(missing)}"
        )
        raise ValueError(msg)
    reduce = params.get("reduce")
    if reduce is not None and reduce not in REDUCE_POLICIES:
        msg = f"Profile '{profile_name}': unknown reduce policy {reduce!r}"
        raise ValueError(msg)
    return ExtractionStrategy(
        kind=kind,
        label=str(raw.get("label") or f"{profile_name}:{kind}"),
        params=params,
    )


class StrategyRegistry:
    """Maps product URLs to the ordered strategies that apply to them.

    Profiles are matched by URL substring in file order; URLs that
    match nothing get the ``generic`` profile.  The file also carries
    the rendered-page selectors and JavaScript price reads.
    """

    def __init__(self, profiles_path: Path | None = None) -> None:
        path = profiles_path or Settings.SITE_PROFILES_PATH
        data = self._load(path)
        self._profiles: list[SiteProfile] = [
            self._parse_profile(p) for p in data.get("profiles", [])
        ]
        generic = [
            p for p in self._profiles if p.name == GENERIC_PROFILE
        ]
        if not generic:
            msg = f"{path}: no '{GENERIC_PROFILE}' profile defined"
            raise ValueError(msg)
        self.generic_profile: SiteProfile = generic[0]

        rendered: dict[str, Any] = data.get("rendered", {})
        self.render_selectors: tuple[str, ...] = tuple(
            rendered.get("selectors", [])
        )
        self.render_scripts: tuple[str, ...] = tuple(
            rendered.get("scripts", [])
        )
        logger.debug(
            "Loaded %d site profiles from %s",
            len(self._profiles),
            path,
        )

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        """Read the profile file, surfacing bad config as ValueError."""
        try:
            with open(path, encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot load site profiles from {path}: {exc}"
            raise ValueError(msg) from exc
        return data

    @staticmethod
    def _parse_profile(raw: dict[str, Any]) -> SiteProfile:
        """Build a SiteProfile from its JSON description."""
        name = str(raw["name"])
        return SiteProfile(
            name=name,
            match_patterns=tuple(raw.get("match", [])),
            strategies=tuple(
                _parse_strategy(name, s)
                for s in raw.get("strategies", [])
            ),
            render_fallback=bool(raw.get("render_fallback", False)),
        )

    @property
    def profiles(self) -> list[SiteProfile]:
        """All profiles in match order, generic included."""
        return list(self._profiles)

    @property
    def fallback_scan(self) -> ExtractionStrategy | None:
        """The generic profile's last regex scan, reused on rendered text."""
        scans = [
            s for s in self.generic_profile.strategies
            if s.kind == "regex_scan"
        ]
        return scans[-1] if scans else None

    def select_profile(self, url: str) -> SiteProfile:
        """Return the first profile matching *url*, else the generic one."""
        for profile in self._profiles:
            if profile.name == GENERIC_PROFILE:
                continue
            if profile.matches(url):
                logger.debug(
                    "Profile '%s' selected for %s", profile.name, url,
                )
                return profile
        logger.debug("No site profile for %s, using generic", url)
        return self.generic_profile
