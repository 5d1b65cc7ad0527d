"""BeautifulSoup helpers shared by the extractor, block parser and renderer."""

from __future__ import annotations

import html

from bs4 import BeautifulSoup, Tag  # type: ignore

from .text import normalize_for_search


def make_soup(markup: str) -> BeautifulSoup:
    """Parse ``markup`` with lxml, falling back to the stdlib parser."""

    try:
        return BeautifulSoup(markup, "lxml")
    except Exception:
        # Fallback to html.parser if lxml isn't installed
        return BeautifulSoup(markup, "html.parser")


def replace_inner_html(element: Tag, markup: str) -> None:
    """Replace the children of ``element`` with the parsed ``markup`` fragment."""

    fragment = BeautifulSoup(markup, "html.parser")
    element.clear()
    for child in list(fragment.contents):
        element.append(child.extract())


def escape_html(value: str) -> str:
    return html.escape(value, quote=True)


def has_link_with_text(element: Tag, text: str) -> bool:
    """Return True when ``element`` holds an ``<a>`` whose text equals ``text``."""

    wanted = normalize_for_search(text)
    return any(
        normalize_for_search(anchor.get_text()) == wanted
        for anchor in element.find_all("a")
    )
