"""Shared fixtures and fakes for engine tests."""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Iterable, List, Sequence, Union

import pytest

from inlinks.engine.config import load_config
from inlinks.engine.types import BlockType, Candidate, ContentBlock


@pytest.fixture()
def engine_config():
    """Provide a mutable copy of the default engine configuration."""

    return load_config(None)


def make_block(
    block_id: str,
    text: str,
    *,
    type: BlockType = BlockType.PARAGRAPH,
    tag: str = "p",
    contains_link: bool = False,
) -> ContentBlock:
    return ContentBlock(
        id=block_id,
        type=type,
        tag=tag,
        text=text,
        html=text,
        path=f"{tag}[0]",
        contains_link=contains_link,
    )


def make_candidate(url: str, content: str, score: float = 0.9) -> Candidate:
    return Candidate(url=url, content=content, score=score)


def decision(
    url: str,
    /,
    block: ContentBlock,
    anchor: str,
    modified: str | None = None,
    **overrides: Any,
) -> str:
    """Build a well-formed generator reply linking ``anchor`` to ``url``."""

    payload: Dict[str, Any] = {
        "ok": True,
        "url": url,
        "block_id": block.id,
        "anchor": anchor,
        "original_block_text": block.text,
        "modified_block_text": modified or f"{block.text} See the [{anchor}]({url}).",
        "overwrite_block": True,
        "reason": "Natural extension of the paragraph.",
        "seo_metrics": {"relevance": 80, "authority": 70},
    }
    payload.update(overrides)
    return json.dumps(payload)


class BagOfWordsEmbedder:
    """Embeds text as keyword counts over a fixed vocabulary."""

    def __init__(self, vocabulary: Sequence[str]) -> None:
        self.vocabulary = [word.lower() for word in vocabulary]
        self.calls = 0

    def _vector(self, text: str) -> List[float]:
        words = re.findall(r"\w+", text.lower())
        return [float(words.count(term)) for term in self.vocabulary]

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vector(text) for text in texts]


Reply = Union[str, Exception, Callable[[str], str]]


class ScriptedGenerator:
    """Returns a scripted reply per candidate URL found in the prompt.

    Replies may be strings, exceptions (raised) or callables receiving the
    user prompt.
    """

    def __init__(self, replies: Dict[str, Reply] | None = None, default: str = "") -> None:
        self.replies = dict(replies or {})
        self.default = default
        self.prompts: List[str] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append(user_prompt)
        for url, reply in self.replies.items():
            if f"URL: {url}\n" in user_prompt:
                if isinstance(reply, Exception):
                    raise reply
                if callable(reply):
                    return reply(user_prompt)
                return reply
        return self.default

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeExtractor:
    """Serves canned page text; ``Exception`` values are raised."""

    def __init__(self, pages: Dict[str, str | Exception]) -> None:
        self.pages = pages
        self.requested: List[str] = []

    async def extract_text(self, url: str) -> str:
        self.requested.append(url)
        page = self.pages.get(url, "")
        if isinstance(page, Exception):
            raise page
        return page

    async def extract_html(self, url: str) -> str:
        return await self.extract_text(url)


def block_ids(blocks: Iterable[ContentBlock]) -> List[str]:
    return [block.id for block in blocks]
