"""Candidate document fetching for the ranking stage."""

from __future__ import annotations

import logging
from typing import List, Sequence

from .concurrency import map_with_concurrency
from .extract import ContentExtractor

logger = logging.getLogger(__name__)


async def fetch_candidate_contents(
    urls: Sequence[str],
    extractor: ContentExtractor,
    concurrency: int = 5,
) -> List[str]:
    """Return extracted text per URL, in input order.

    A URL that cannot be fetched (after retries) contributes an empty
    string instead of failing the batch.
    """

    async def fetch(url: str, index: int) -> str:
        if not url:
            return ""
        return await extractor.extract_text(url)

    results = await map_with_concurrency(urls, fetch, concurrency, return_exceptions=True)

    contents: List[str] = []
    for url, result in zip(urls, results):
        if isinstance(result, BaseException):
            logger.warning("Failed to extract candidate %s: %s", url, result)
            contents.append("")
        else:
            contents.append(result or "")
    return contents
