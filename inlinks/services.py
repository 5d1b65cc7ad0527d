"""Service functions behind the inlinks endpoint.

These functions wire the engine to real network backends so the view can
stay thin: URL normalisation and de-duplication, building the fetcher,
extractor and model backend from settings, running the block pipeline and
turning the result into a JSON-ready payload.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, Iterable, List
from urllib.parse import urlsplit, urlunsplit

from django.conf import settings

from .engine.backends import OpenAIBackend
from .engine.blocks import parse_blocks
from .engine.config import EngineConfig, load_config
from .engine.extract import ContentExtractor
from .engine.http import Fetcher
from .engine.index import run_link_insertion
from .engine.render import apply_edits_to_html
from .engine.types import BlockType, ContentBlock, LinkInsertionResult, RenderResult

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Drop query string, fragment and trailing slashes from ``url``."""

    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path.rstrip('/'), '', ''))


def prepare_analysis_urls(principal_url: str, analysis_urls: Iterable[str]) -> List[str]:
    """Normalise, de-duplicate (keeping order) and drop the principal URL."""

    principal = normalize_url(principal_url)
    seen: set[str] = set()
    prepared: List[str] = []
    for url in analysis_urls:
        normalized = normalize_url(url)
        if normalized == principal or normalized in seen:
            continue
        seen.add(normalized)
        prepared.append(normalized)
    return prepared


def load_engine_config() -> EngineConfig:
    return load_config(getattr(settings, 'INLINKS_CONFIG_PATH', None))


def _block_payload(block: ContentBlock) -> Dict[str, Any]:
    payload = asdict(block)
    payload['type'] = block.type.value
    return payload


def build_payload(
    principal_url: str,
    candidate_urls: List[str],
    blocks: List[ContentBlock],
    result: LinkInsertionResult,
    rendered: RenderResult,
) -> Dict[str, Any]:
    rejected = []
    for rejection in result.rejected:
        item = asdict(rejection)
        item['code'] = rejection.code.value
        rejected.append(item)

    return {
        'principal_url': principal_url,
        'total_analysed': len(candidate_urls),
        'blocks': [_block_payload(block) for block in blocks],
        'edits': [asdict(edit) for edit in result.edits],
        'rejected': rejected,
        'metrics': asdict(result.metrics) if result.metrics is not None else None,
        'applied': asdict(rendered.stats),
        'original_html': rendered.original_html,
        'linked_html': rendered.linked_html,
        'modified_html': rendered.modified_html,
    }


async def analyse_inlinks(
    principal_url: str,
    analysis_urls: Iterable[str],
    *,
    config: EngineConfig | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> Dict[str, Any]:
    """Run the whole link insertion flow for one principal page.

    The principal HTML is fetched once, split into blocks (only paragraphs
    and list items are offered to the pipeline) and rendered into the three
    views after the pipeline has chosen its edits.
    """

    engine_config = config or load_engine_config()
    candidate_urls = prepare_analysis_urls(principal_url, analysis_urls)
    root_id = engine_config.get('root_id', 'root')

    async with Fetcher.from_config(engine_config) as fetcher:
        extractor = ContentExtractor(fetcher)
        backend = OpenAIBackend.from_config(
            fetcher,
            engine_config,
            api_key=api_key if api_key is not None else settings.OPENAI_API_KEY,
            base_url=base_url or settings.OPENAI_BASE_URL,
        )

        html = await extractor.extract_html(principal_url)
        parsed = parse_blocks(
            html,
            root_id=root_id,
            max_text_length=int(engine_config.get('max_block_text_length', 4000)),
        )
        principal_blocks = [
            block for block in parsed.blocks
            if block.type in (BlockType.PARAGRAPH, BlockType.LIST_ITEM)
        ]

        result = await run_link_insertion(
            principal_url,
            candidate_urls,
            principal_blocks,
            principal_content='\n\n'.join(block.text for block in principal_blocks),
            extractor=extractor,
            embedder=backend,
            generator=backend,
            config=engine_config,
        )

    rendered = apply_edits_to_html(
        html,
        result.edits,
        blocks=parsed.blocks,
        preserve_existing_links=bool(engine_config.get('preserve_existing_links', True)),
        root_id=root_id,
    )
    return build_payload(principal_url, candidate_urls, parsed.blocks, result, rendered)
