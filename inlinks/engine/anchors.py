"""Anchor text normalization and markdown link inspection."""

from __future__ import annotations

import re
from typing import List, Tuple

from .text import normalize_for_search

MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


def normalize_anchor(anchor: str) -> str:
    """Lowercase, single-space form used to compare anchors across edits."""

    return normalize_for_search(anchor)


def markdown_links(markdown: str) -> List[Tuple[str, str]]:
    """Return ``(text, url)`` for every ``[text](url)`` construct."""

    return [(match.group(1), match.group(2).strip()) for match in MARKDOWN_LINK_RE.finditer(markdown)]


def has_single_link_to(markdown: str, url: str) -> bool:
    """True when ``markdown`` holds exactly one link and it targets ``url``."""

    links = markdown_links(markdown)
    return len(links) == 1 and links[0][1] == url


def anchor_matches_link(anchor: str, markdown: str) -> bool:
    """True when the literal ``[anchor](`` appears in ``markdown``."""

    return f"[{anchor}](" in markdown
