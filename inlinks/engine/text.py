"""Shared text utilities for the link insertion engine."""

from __future__ import annotations

import math
import re
from typing import List, Sequence, Set

_WHITESPACE_RE = re.compile(r"\s+")
# Anything that is not a letter, digit or whitespace; underscores count as punctuation.
_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")

STOPWORDS: Set[str] = {
    # Portuguese
    "a", "o", "os", "as", "um", "uma", "uns", "umas", "de", "do", "da", "dos", "das",
    "no", "na", "nos", "nas", "em", "para", "por", "com", "sem", "e", "ou", "que",
    "como", "mais", "menos", "sobre", "até", "entre", "também", "veja", "confira",
    # English
    "the", "and", "for", "with", "from", "that", "this", "these", "those", "into",
    "about", "your", "our", "their", "more", "less", "how", "what", "why", "also",
}


def normalize_whitespace(value: str) -> str:
    """Replace non-breaking spaces, collapse whitespace runs and trim."""

    return _WHITESPACE_RE.sub(" ", value.replace("\u00a0", " ")).strip()


def normalize_for_search(value: str) -> str:
    """Return a lowercase, whitespace-normalized version of ``value``."""

    return normalize_whitespace(value).lower()


def word_count(value: str) -> int:
    """Count whitespace separated words."""

    stripped = value.strip()
    if not stripped:
        return 0
    return len(stripped.split())


def content_tokens(value: str) -> List[str]:
    """Lowercase word tokens longer than two characters, punctuation removed."""

    cleaned = _PUNCTUATION_RE.sub(" ", value.lower().replace("\u00a0", " "))
    return [token for token in cleaned.split() if len(token) > 2]


def topic_tokens(value: str) -> List[str]:
    """Content tokens with stopwords removed, used for topical alignment checks."""

    return [token for token in content_tokens(value) if token not in STOPWORDS]


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Cosine similarity between two dense vectors; zero-norm inputs yield 0.0."""

    if len(vector_a) != len(vector_b):
        raise ValueError(
            f"Embedding length mismatch: {len(vector_a)} != {len(vector_b)}"
        )
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for a, b in zip(vector_a, vector_b):
        dot += a * b
        norm_a += a * a
        norm_b += b * b
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
