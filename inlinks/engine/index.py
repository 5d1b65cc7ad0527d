"""Coordinator for the block-based link insertion pipeline."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from . import placement as placement_module
from . import proposals as proposals_module
from . import rank as rank_module
from .backends import Embedder, Generator
from .config import EngineConfig, load_config
from .extract import ContentExtractor
from .text import normalize_whitespace, word_count
from .types import ContentBlock, LinkInsertionResult, RunMetrics

logger = logging.getLogger(__name__)


async def resolve_principal_text(
    principal_url: str,
    principal_blocks: Optional[Sequence[ContentBlock]],
    principal_content: Optional[str],
    extractor: ContentExtractor,
) -> str:
    """Blocks win over explicit content, which wins over fetching the URL."""

    if principal_blocks:
        return normalize_whitespace(" ".join(block.text for block in principal_blocks))
    if principal_content is not None:
        return principal_content
    return await extractor.extract_text(principal_url)


def density_per_thousand(total_links: int, text: str) -> float:
    words = word_count(text)
    if not words:
        return 0.0
    return round(total_links / words * 1000, 2)


async def run_link_insertion(
    principal_url: str,
    candidate_urls: Sequence[str],
    principal_blocks: Optional[Sequence[ContentBlock]] = None,
    *,
    principal_content: Optional[str] = None,
    extractor: ContentExtractor,
    embedder: Embedder,
    generator: Generator,
    config: EngineConfig | None = None,
    max_links: Optional[int] = None,
) -> LinkInsertionResult:
    """Rank candidate URLs against the principal page and propose block edits."""

    engine_config = config or load_config(None)
    blocks = list(principal_blocks or [])

    principal_text = await resolve_principal_text(principal_url, blocks, principal_content, extractor)
    link_budget = placement_module.max_links_for_page(principal_text, engine_config.raw, max_links)

    ranked, ranking_rejected = await rank_module.rank_candidates(
        principal_text,
        candidate_urls,
        extractor=extractor,
        embedder=embedder,
        threshold=float(engine_config.get("similarity_threshold", 0.2)),
        cap=int(engine_config.get("max_candidates", 30)),
        concurrency=int(engine_config.get("fetch_concurrency", 5)),
        embedding_max_chars=int(engine_config.get("embedding_max_chars", 8000)),
    )

    edits, proposal_rejected = await proposals_module.propose_edits(
        ranked,
        blocks,
        generator=generator,
        max_links=link_budget,
        config=engine_config.raw,
    )

    metrics = RunMetrics(
        total_links=len(edits),
        density_per_1000_words=density_per_thousand(len(edits), principal_text),
        candidates_analyzed=len(ranked),
        eligible_blocks=len(placement_module.eligible_blocks(blocks)),
        max_links=link_budget,
    )
    logger.info(
        "Link insertion for %s: %d edits from %d candidates (%d rejected)",
        principal_url,
        len(edits),
        len(candidate_urls),
        len(ranking_rejected) + len(proposal_rejected),
    )
    return LinkInsertionResult(
        principal_url=principal_url,
        edits=edits,
        rejected=ranking_rejected + proposal_rejected,
        metrics=metrics,
    )
