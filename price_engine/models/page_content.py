# price_engine/models/page_content.py

"""Fetched page model shared by all HTML-based strategies."""

from dataclasses import dataclass, field

from bs4 import BeautifulSoup


@dataclass
class PageContent:
    """Raw HTML of a product page with a lazily parsed document tree."""

    url: str
    html: str
    _soup: BeautifulSoup | None = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def soup(self) -> BeautifulSoup:
        """Parse the HTML once with lxml and reuse the tree."""
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "lxml")
        return self._soup
