"""Placement logic for selecting where to insert links."""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from .text import content_tokens, word_count
from .types import ContentBlock


def max_links_for_page(text: str, config: Dict[str, float], explicit: Optional[int] = None) -> int:
    """Return the link budget for a document of ``text``.

    Targets ``links_per_1000_words`` links per 1,000 words with a floor of
    ``min_links``; a positive ``explicit`` value wins.
    """

    if explicit is not None and explicit > 0:
        return int(explicit)
    per_thousand = float(config.get("links_per_1000_words", 4))
    floor = int(config.get("min_links", 2))
    return max(floor, math.ceil(word_count(text) / 1000 * per_thousand))


def _contains(outer: ContentBlock, inner: ContentBlock) -> bool:
    return bool(outer.path) and inner.path.startswith(outer.path + " > ")


def eligible_blocks(blocks: Sequence[ContentBlock]) -> List[ContentBlock]:
    """Return blocks that can receive an edit.

    A block wrapping another eligible block (``<li><p>..</p></li>``) is left
    out so one visible paragraph is never offered twice.
    """

    candidates = [block for block in blocks if block.is_eligible]
    return [
        block
        for block in candidates
        if not any(other is not block and _contains(block, other) for other in candidates)
    ]


def pick_best_block(blocks: Sequence[ContentBlock], candidate_content: str) -> Optional[ContentBlock]:
    """Return the block sharing the most distinct tokens with the candidate.

    Ties go to the earliest block. Returns None when the candidate has no
    usable tokens or no block has any.
    """

    candidate_tokens = set(content_tokens(candidate_content))
    if not candidate_tokens:
        return None

    best: Optional[ContentBlock] = None
    best_score = -1
    for block in blocks:
        tokens = set(content_tokens(block.text))
        if not tokens:
            continue
        score = len(tokens & candidate_tokens)
        if score > best_score:
            best_score = score
            best = block
    return best


def choose_target_block(
    blocks: Sequence[ContentBlock],
    candidate_content: str,
    used_block_ids: set[str],
) -> Optional[ContentBlock]:
    """Prefer unused blocks; fall back to every eligible block once all are used."""

    remaining = [block for block in blocks if block.id not in used_block_ids]
    return pick_best_block(remaining or blocks, candidate_content)
