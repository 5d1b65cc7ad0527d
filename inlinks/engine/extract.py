"""Fetch-and-clean collaborator turning a URL into text or article HTML."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag  # type: ignore

from .http import Fetcher
from .markup import make_soup
from .text import normalize_whitespace

logger = logging.getLogger(__name__)

# Elements that never carry article content.
NOISE_TAGS = (
    "script", "style", "noscript", "iframe", "svg", "template",
    "nav", "header", "footer", "aside", "form",
)
MEDIA_TAGS = ("img", "video", "audio", "picture", "figure")

# An <article>/<main> container shorter than this is treated as a false positive.
MIN_ARTICLE_TEXT = 100


def _strip(soup: BeautifulSoup, tags: tuple[str, ...]) -> None:
    for element in soup.find_all(list(tags)):
        # Nested noise goes away with its decomposed ancestor.
        if element.decomposed:
            continue
        element.decompose()


def _main_container(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    """Pick the element most likely to hold the article body."""

    for name in ("article", "main"):
        container = soup.find(name)
        if container is not None and len(normalize_whitespace(container.get_text(" "))) > MIN_ARTICLE_TEXT:
            return container
    return soup.body or soup


def clean_html(document: str) -> str:
    """Return the inner HTML of the article container with noise removed."""

    soup = make_soup(document)
    _strip(soup, NOISE_TAGS)
    return _main_container(soup).decode_contents().strip()


def clean_text(document: str) -> str:
    """Return the normalized visible text of the article container."""

    soup = make_soup(document)
    _strip(soup, NOISE_TAGS + MEDIA_TAGS)
    return normalize_whitespace(_main_container(soup).get_text(" "))


class ContentExtractor:
    """Implements ``extract_text``/``extract_html`` on top of a :class:`Fetcher`.

    Both methods raise when the document cannot be fetched; callers decide
    whether that degrades to empty content.
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self.fetcher = fetcher

    async def extract_text(self, url: str) -> str:
        document = await self.fetcher.get_text(url)
        text = clean_text(document)
        logger.debug("Extracted %d characters of text from %s", len(text), url)
        return text

    async def extract_html(self, url: str) -> str:
        document = await self.fetcher.get_text(url)
        return clean_html(document)
