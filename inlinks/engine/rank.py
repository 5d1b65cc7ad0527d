"""Similarity scoring and ranking of candidate documents."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .backends import Embedder
from .candidates import fetch_candidate_contents
from .extract import ContentExtractor
from .text import cosine_similarity
from .types import Candidate, Rejection, RejectionCode

logger = logging.getLogger(__name__)

EMPTY_CONTENT_REASON = "empty or unavailable content"
BELOW_THRESHOLD_REASON = "below threshold or outside top-N"


async def score_candidates(
    principal_text: str,
    urls: Sequence[str],
    contents: Sequence[str],
    embedder: Embedder,
    *,
    embedding_max_chars: int = 8000,
) -> Tuple[List[Candidate], List[Rejection]]:
    """Embed the principal and each non-empty candidate and score by cosine similarity."""

    rejected: List[Rejection] = []
    valid: List[Tuple[str, str]] = []
    for url, content in zip(urls, contents):
        if not content or not content.strip():
            rejected.append(Rejection(url=url, reason=EMPTY_CONTENT_REASON, code=RejectionCode.EMPTY_CONTENT))
        else:
            valid.append((url, content))

    if not valid:
        return [], rejected

    if not principal_text.strip():
        logger.warning("Principal text is empty; every candidate scores 0.")
        return [Candidate(url=url, content=content, score=0.0) for url, content in valid], rejected

    principal_vector = await embedder.embed(principal_text[:embedding_max_chars])
    vectors = await embedder.embed_batch([content[:embedding_max_chars] for _, content in valid])

    scored = [
        Candidate(url=url, content=content, score=cosine_similarity(principal_vector, vector))
        for (url, content), vector in zip(valid, vectors)
    ]
    return scored, rejected


def select_candidates(
    scored: Sequence[Candidate],
    threshold: float = 0.2,
    cap: int = 30,
) -> Tuple[List[Candidate], List[Rejection]]:
    """Keep candidates at or above ``threshold``, best first, at most ``cap`` of them."""

    ranked = sorted(
        (candidate for candidate in scored if candidate.score >= threshold),
        key=lambda candidate: candidate.score,
        reverse=True,
    )[: max(cap, 0)]

    kept = {id(candidate) for candidate in ranked}
    rejected = [
        Rejection(
            url=candidate.url,
            reason=BELOW_THRESHOLD_REASON,
            code=RejectionCode.BELOW_THRESHOLD,
            score=candidate.score,
        )
        for candidate in scored
        if id(candidate) not in kept
    ]
    return ranked, rejected


async def rank_candidates(
    principal_text: str,
    candidate_urls: Sequence[str],
    *,
    extractor: ContentExtractor,
    embedder: Embedder,
    threshold: float = 0.2,
    cap: int = 30,
    concurrency: int = 5,
    embedding_max_chars: int = 8000,
) -> Tuple[List[Candidate], List[Rejection]]:
    """Fetch, embed and rank candidate URLs against the principal text.

    Returns ``(accepted, rejected)``; accepted candidates are sorted by
    descending score and every other URL carries a rejection reason.
    """

    contents = await fetch_candidate_contents(candidate_urls, extractor, concurrency)
    scored, rejected = await score_candidates(
        principal_text,
        candidate_urls,
        contents,
        embedder,
        embedding_max_chars=embedding_max_chars,
    )
    accepted, below = select_candidates(scored, threshold, cap)
    logger.info(
        "Ranked %d candidates: %d accepted, %d empty, %d below threshold",
        len(candidate_urls),
        len(accepted),
        len(rejected),
        len(below),
    )
    return accepted, rejected + below
