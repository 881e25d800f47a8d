# price_engine/config/settings.py

"""Central configuration for the price extraction engine."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag such as ``1``/``true``/``no`` from the environment."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Central configuration for the price extraction engine."""

    # --- Fetching ---
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    CLOUDSCRAPER_FALLBACK: bool = True  # Solve CF challenges with cloudscraper
    CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome120"
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    DEFAULT_HEADERS: dict[str, str] = {
        "User-Agent": USER_AGENT,
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
        "Cache-Control": "no-cache",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Rendered fallback (Playwright) ---
    RENDER_ENABLED: bool = _env_bool("PRICE_ENGINE_RENDER_ENABLED", True)
    RENDER_HEADLESS: bool = _env_bool("PRICE_ENGINE_HEADLESS", True)
    RENDER_NAV_TIMEOUT_MS: int = 30_000  # page.goto budget
    RENDER_READY_TIMEOUT_MS: int = 20_000  # document.readyState budget
    RENDER_SETTLE_MS: int = 3_000       # Delay after DOM ready
    RENDER_SCROLL_SETTLE_MS: int = 2_000  # Delay after scrolling
    RENDER_LOCALE: str = "ru-RU"
    RENDER_BROWSER_ARGS: list[str] = [
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
    ]

    # --- Plausibility ---
    MIN_PLAUSIBLE_PRICE: int = 100
    MAX_PLAUSIBLE_PRICE: int = 1_000_000

    # --- Polling ---
    POLL_INTERVAL: float = float(
        os.getenv("PRICE_ENGINE_POLL_INTERVAL", "300")
    )

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SITE_PROFILES_PATH: Path = (
        BASE_DIR / "price_engine" / "config" / "site_profiles.json"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"
    DB_PATH: Path = Path(
        os.getenv(
            "PRICE_ENGINE_DB_PATH",
            str(BASE_DIR / "data" / "price_engine.db"),
        )
    )
