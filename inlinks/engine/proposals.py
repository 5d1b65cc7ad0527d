"""Edit proposal and validation state machine.

Ranked candidates are processed one at a time, best score first. Each
candidate walks through an ordered list of gates; the first gate that
fails records a :class:`~inlinks.engine.types.Rejection` and ends
processing for that candidate. The cheap local gates run before the
generator is called:

1. density limit            5. target block already used
2. target URL already used  6. generation + response parsing
3. no eligible blocks       7. model declined (``ok: false``)
4. no target block found

The remaining gates audit the generated response before it may become an
edit:

8.  returned ``block_id`` differs from the requested one
9.  ``original_block_text`` differs from the block text
10. modified text must hold exactly one link, to the candidate URL
11. anchor must be the link text
12. generic / vague anchor
13. anchor not topically aligned with the candidate
14. anchor already used in this run
15. block already used in this run

Later candidates depend on the URLs, blocks and anchors claimed by earlier
ones, so the loop is a fold over :class:`ProposalState` and never runs
candidates concurrently.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, Field, StrictBool, ValidationError, field_validator

from .anchors import anchor_matches_link, has_single_link_to, normalize_anchor
from .backends import Generator
from .filters import is_generic_anchor, is_topically_aligned
from .placement import choose_target_block, eligible_blocks
from .types import Candidate, ContentBlock, Edit, EditMetrics, Rejection, RejectionCode

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "Respond only with valid JSON."

REASONS: Dict[RejectionCode, str] = {
    RejectionCode.DENSITY_LIMIT: "density limit reached",
    RejectionCode.DUPLICATE_URL: "target URL already selected for this content",
    RejectionCode.NO_ELIGIBLE_BLOCKS: "no eligible blocks (paragraphs/list items without links)",
    RejectionCode.NO_TARGET_BLOCK: "no target block found",
    RejectionCode.BLOCK_ALREADY_USED: "block already used by another link",
    RejectionCode.GENERATION_FAILED: "generation call failed",
    RejectionCode.INVALID_RESPONSE: "invalid model response",
    RejectionCode.BLOCK_ID_DRIFT: "model drifted id",
    RejectionCode.SNAPSHOT_MISMATCH: "model did not copy the original block text exactly",
    RejectionCode.LINK_SHAPE: "must contain exactly one link to candidate URL",
    RejectionCode.ANCHOR_MISMATCH: "anchor does not match link text",
    RejectionCode.GENERIC_ANCHOR: "generic or ambiguous anchor; use 2-6 descriptive words",
    RejectionCode.OFF_TOPIC_ANCHOR: "anchor not topically aligned",
    RejectionCode.DUPLICATE_ANCHOR: "anchor already used",
    RejectionCode.BLOCK_REUSED: "block already used by another edit",
}


class SeoMetrics(BaseModel):
    relevance: float = Field(ge=0, le=100)
    authority: float = Field(ge=0, le=100)


class Decision(BaseModel):
    """Structured response expected from the generator."""

    ok: StrictBool
    url: str = Field(min_length=1)
    block_id: str = Field(min_length=1)
    anchor: str = Field(min_length=1)
    original_block_text: str = Field(min_length=1)
    modified_block_text: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    overwrite_block: Optional[bool] = None
    seo_metrics: Optional[SeoMetrics] = None

    @field_validator("url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return value


_DECODER = json.JSONDecoder()


def extract_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``raw``, if any."""

    index = raw.find("{")
    while index != -1:
        try:
            value, _ = _DECODER.raw_decode(raw, index)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        index = raw.find("{", index + 1)
    return None


def parse_decision(raw: str) -> Optional[Decision]:
    """Parse and validate the generator output; None when it is unusable."""

    payload = extract_json_object(raw or "")
    if payload is None:
        return None
    try:
        return Decision.model_validate(payload)
    except ValidationError as exc:
        logger.debug("Model response failed validation: %s", exc)
        return None


def build_prompt(candidate: Candidate, block: ContentBlock, excerpt_chars: int = 900) -> str:
    template = {
        "ok": "boolean",
        "url": candidate.url,
        "block_id": block.id,
        "anchor": "anchor text",
        "original_block_text": "original block text (copy block_text exactly)",
        "modified_block_text": "new block text with 1 markdown link",
        "overwrite_block": True,
        "reason": "justification",
        "seo_metrics": {"relevance": "number 0-100", "authority": "number 0-100"},
    }
    return "\n".join([
        "Act as a senior SEO and link-building specialist.",
        "Your task is to insert one natural internal link into the pillar article,",
        "but ONLY inside the ONE block (paragraph or list item) given below.",
        "",
        "CRITICAL RULES:",
        "1) You may rewrite the block, but you must preserve its original meaning and language.",
        "2) Insert exactly ONE Markdown link in the format: [anchor text](url).",
        "3) The anchor MUST be descriptive and specific. Generic or ambiguous anchors are forbidden,"
        " such as 'click here', 'read more', 'learn more', 'here', 'full list', 'available options',"
        " 'model 2024', 'clique aqui', 'saiba mais', 'leia mais'.",
        "4) The anchor must have 2 to 6 words and, whenever possible, reflect the topic of the"
        " candidate URL (terms that appear in the candidate content).",
        "5) Do not add new facts. Do not invent numbers.",
        "6) If there is no natural insertion in the given block, answer with ok: false.",
        "",
        "CANDIDATE:",
        f"URL: {candidate.url}",
        "Candidate content (excerpt):",
        candidate.content[:excerpt_chars] + "...",
        "",
        "TARGET BLOCK (where you MUST insert, if it makes sense):",
        f"block_id: {block.id}",
        f"block_type: {block.type.value}",
        "block_text:",
        block.text,
        "",
        "Respond ONLY with valid JSON in the format:",
        json.dumps(template, ensure_ascii=False, indent=2),
    ])


@dataclass
class ProposalState:
    """Accumulator threaded through the candidate loop."""

    edits: List[Edit] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)
    used_urls: set[str] = field(default_factory=set)
    used_block_ids: set[str] = field(default_factory=set)
    used_anchors: set[str] = field(default_factory=set)

    def reject(self, candidate: Candidate, code: RejectionCode, reason: str | None = None) -> None:
        message = reason or REASONS[code]
        logger.info("Rejected %s [%s]: %s", candidate.url, code.value, message)
        self.rejected.append(Rejection(url=candidate.url, reason=message, code=code, score=candidate.score))

    def accept(self, edit: Edit) -> None:
        logger.info("Accepted %s in block %s (anchor=%r)", edit.target_url, edit.block_id, edit.anchor)
        self.edits.append(edit)
        self.used_urls.add(edit.target_url)
        self.used_block_ids.add(edit.block_id)
        self.used_anchors.add(normalize_anchor(edit.anchor))


class EditProposer:
    """Runs the gate sequence for each ranked candidate."""

    def __init__(
        self,
        blocks: Sequence[ContentBlock],
        generator: Generator,
        max_links: int,
        config: Dict[str, Any] | None = None,
    ) -> None:
        config = config or {}
        self.eligible = eligible_blocks(blocks)
        self.generator = generator
        self.max_links = max_links
        self.excerpt_chars = int(config.get("candidate_excerpt_chars", 900))
        self.max_anchor_words = int(config.get("max_anchor_words", 6))
        self.state = ProposalState()

    async def run(self, candidates: Sequence[Candidate]) -> ProposalState:
        for candidate in candidates:
            await self._process(candidate)
        return self.state

    async def _process(self, candidate: Candidate) -> None:
        state = self.state

        if len(state.edits) >= self.max_links:
            return state.reject(candidate, RejectionCode.DENSITY_LIMIT)
        if candidate.url in state.used_urls:
            return state.reject(candidate, RejectionCode.DUPLICATE_URL)
        if not self.eligible:
            return state.reject(candidate, RejectionCode.NO_ELIGIBLE_BLOCKS)

        block = choose_target_block(self.eligible, candidate.content, state.used_block_ids)
        if block is None:
            return state.reject(candidate, RejectionCode.NO_TARGET_BLOCK)
        if block.id in state.used_block_ids:
            return state.reject(candidate, RejectionCode.BLOCK_ALREADY_USED)

        try:
            raw = await self.generator.generate(
                SYSTEM_PROMPT,
                build_prompt(candidate, block, self.excerpt_chars),
            )
        except Exception:
            logger.exception("Generation failed for %s", candidate.url)
            return state.reject(candidate, RejectionCode.GENERATION_FAILED)

        decision = parse_decision(raw)
        if decision is None:
            return state.reject(candidate, RejectionCode.INVALID_RESPONSE)
        if not decision.ok:
            return state.reject(candidate, RejectionCode.MODEL_DECLINED, decision.reason)

        code = self._audit(decision, candidate, block)
        if code is not None:
            return state.reject(candidate, code)

        metrics = None
        if decision.seo_metrics is not None:
            metrics = EditMetrics(
                relevance=decision.seo_metrics.relevance,
                authority=decision.seo_metrics.authority,
            )
        state.accept(
            Edit(
                block_id=decision.block_id,
                target_url=candidate.url,
                anchor=decision.anchor,
                original_block_text=block.text,
                modified_block_text=decision.modified_block_text,
                justification=decision.reason,
                overwrite_block=True if decision.overwrite_block is None else decision.overwrite_block,
                metrics=metrics,
            )
        )

    def _audit(self, decision: Decision, candidate: Candidate, block: ContentBlock) -> Optional[RejectionCode]:
        """Return the code of the first failing response audit, or None."""

        if decision.block_id != block.id:
            return RejectionCode.BLOCK_ID_DRIFT
        if decision.original_block_text.strip() != block.text.strip():
            return RejectionCode.SNAPSHOT_MISMATCH
        if not has_single_link_to(decision.modified_block_text, candidate.url):
            return RejectionCode.LINK_SHAPE
        if not anchor_matches_link(decision.anchor, decision.modified_block_text):
            return RejectionCode.ANCHOR_MISMATCH
        if is_generic_anchor(decision.anchor, self.max_anchor_words):
            return RejectionCode.GENERIC_ANCHOR
        if not is_topically_aligned(decision.anchor, candidate.content):
            return RejectionCode.OFF_TOPIC_ANCHOR
        if normalize_anchor(decision.anchor) in self.state.used_anchors:
            return RejectionCode.DUPLICATE_ANCHOR
        # Re-checked after generation: the id the model confirmed must still be free.
        if decision.block_id in self.state.used_block_ids:
            return RejectionCode.BLOCK_REUSED
        return None


async def propose_edits(
    candidates: Sequence[Candidate],
    blocks: Sequence[ContentBlock],
    *,
    generator: Generator,
    max_links: int,
    config: Dict[str, Any] | None = None,
) -> Tuple[List[Edit], List[Rejection]]:
    """Turn ranked candidates into validated edits, at most one per block and URL."""

    state = await EditProposer(blocks, generator, max_links, config).run(candidates)
    return state.edits, state.rejected
