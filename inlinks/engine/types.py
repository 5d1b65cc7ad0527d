"""Typed data structures used by the block-based link insertion engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class BlockType(str, Enum):
    """Structural classification of a content block."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    LIST_ITEM = "list_item"
    BLOCKQUOTE = "blockquote"
    CODE = "code"
    OTHER = "other"


class RejectionCode(str, Enum):
    """Terminal states of a candidate that did not become an edit."""

    EMPTY_CONTENT = "empty_content"
    BELOW_THRESHOLD = "below_threshold"
    DENSITY_LIMIT = "density_limit"
    DUPLICATE_URL = "duplicate_url"
    NO_ELIGIBLE_BLOCKS = "no_eligible_blocks"
    NO_TARGET_BLOCK = "no_target_block"
    BLOCK_ALREADY_USED = "block_already_used"
    GENERATION_FAILED = "generation_failed"
    INVALID_RESPONSE = "invalid_response"
    MODEL_DECLINED = "model_declined"
    BLOCK_ID_DRIFT = "block_id_drift"
    SNAPSHOT_MISMATCH = "snapshot_mismatch"
    LINK_SHAPE = "link_shape"
    ANCHOR_MISMATCH = "anchor_mismatch"
    GENERIC_ANCHOR = "generic_anchor"
    OFF_TOPIC_ANCHOR = "off_topic_anchor"
    DUPLICATE_ANCHOR = "duplicate_anchor"
    BLOCK_REUSED = "block_reused"


@dataclass(frozen=True)
class ContentBlock:
    """One addressable structural unit of an HTML fragment."""

    id: str
    type: BlockType
    tag: str
    text: str
    html: str
    path: str
    contains_link: bool
    char_start: int = 0
    char_end: int = 0

    @property
    def is_eligible(self) -> bool:
        """Paragraphs and list items without an existing link can receive an edit."""

        return self.type in (BlockType.PARAGRAPH, BlockType.LIST_ITEM) and not self.contains_link


@dataclass(frozen=True)
class Candidate:
    """Candidate target page scored against the principal document."""

    url: str
    content: str
    score: float


@dataclass(frozen=True)
class EditMetrics:
    relevance: float
    authority: float


@dataclass(frozen=True)
class Edit:
    """A validated link insertion tied to exactly one block."""

    block_id: str
    target_url: str
    anchor: str
    original_block_text: str
    modified_block_text: str
    justification: str
    overwrite_block: bool = True
    metrics: Optional[EditMetrics] = None


@dataclass(frozen=True)
class Rejection:
    """Diagnostic record explaining why a candidate produced no edit."""

    url: str
    reason: str
    code: RejectionCode
    score: Optional[float] = None


@dataclass(frozen=True)
class RenderStats:
    total_edits: int = 0
    applied_original: int = 0
    applied_linked: int = 0
    applied_modified: int = 0
    skipped_already_linked: int = 0
    skipped_block_not_found: int = 0


@dataclass(frozen=True)
class RenderResult:
    """The three parallel views of a document after applying edits."""

    original_html: str
    linked_html: str
    modified_html: str
    stats: RenderStats


@dataclass(frozen=True)
class RunMetrics:
    total_links: int
    density_per_1000_words: float
    candidates_analyzed: int
    eligible_blocks: int
    max_links: int


@dataclass(frozen=True)
class LinkInsertionResult:
    """Outcome of one end-to-end link insertion run."""

    principal_url: str
    edits: List[Edit] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)
    metrics: Optional[RunMetrics] = None
