"""Anchor quality guardrails applied to generated edits."""

from __future__ import annotations

import re
from typing import Tuple

from .anchors import normalize_anchor
from .text import topic_tokens

# Call-to-action phrases that say nothing about the target page.
GENERIC_PHRASES = frozenset({
    "clique aqui",
    "aqui",
    "saiba mais",
    "leia mais",
    "neste link",
    "confira",
    "veja",
    "acesse",
    "entenda",
    "descubra",
    "click here",
    "here",
    "read more",
    "learn more",
    "this link",
})

VAGUE_PATTERNS = (
    re.compile(r"^\d+$"),
    re.compile(r"^modelo\s*\d{4}$"),
    re.compile(r"^modelos?\s*(mais)?\s*(recentes|novos|antigos)?$"),
    re.compile(r"^opç(ão|ões)\s*(disponíve(l|is))?$"),
    re.compile(r"^lista\s*(completa)?$"),
    re.compile(r"^veja\s*(a)?\s*lista$"),
    re.compile(r"^(artigo|conteúdo|post|guia)$"),
)


def is_generic_anchor(anchor: str, max_words: int = 6) -> bool:
    """Return True for anchors too vague, too short or too long to be descriptive."""

    normalized = normalize_anchor(anchor)
    if not normalized:
        return True
    if normalized in GENERIC_PHRASES:
        return True
    if any(pattern.match(normalized) for pattern in VAGUE_PATTERNS):
        return True
    words = normalized.split(" ")
    return len(words) < 2 or len(words) > max_words


def anchor_token_overlap(anchor: str, candidate_content: str) -> Tuple[int, int]:
    """Return ``(overlap, anchor_token_count)`` over stopword-free tokens."""

    anchor_tokens = topic_tokens(anchor)
    if not anchor_tokens:
        return 0, 0
    content_tokens = set(topic_tokens(candidate_content))
    overlap = sum(1 for token in anchor_tokens if token in content_tokens)
    return overlap, len(anchor_tokens)


def minimum_overlap(anchor_token_count: int) -> int:
    if anchor_token_count >= 4:
        return 2
    if anchor_token_count >= 2:
        return 1
    return 0


def is_topically_aligned(anchor: str, candidate_content: str) -> bool:
    overlap, count = anchor_token_overlap(anchor, candidate_content)
    return overlap >= minimum_overlap(count)
