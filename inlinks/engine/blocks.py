"""Decompose an HTML fragment into stable, addressable content blocks.

The fragment is wrapped in a synthetic root container and every element of
the block tag set is visited in document order. Each block id combines the
element's ordinal among all matched elements, its tag, and the chain of
``tag{same-tag sibling index}`` steps from the root down to the element:

    b:3:p:div0/p1

Ids only depend on the markup, so parsing the same fragment twice (or three
times, as the renderer does) always yields the same ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup, Tag  # type: ignore

from .markup import make_soup, replace_inner_html
from .text import normalize_whitespace
from .types import BlockType, ContentBlock

logger = logging.getLogger(__name__)

BLOCK_TAGS: List[str] = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote", "pre", "code"]

DEFAULT_ROOT_ID = "root"
DEFAULT_MAX_TEXT_LENGTH = 4000


@dataclass
class BlockDocument:
    """A parsed fragment: the soup, its synthetic root and the block-id map."""

    soup: BeautifulSoup
    root: Optional[Tag]
    elements: Dict[str, Tag]

    def serialize(self) -> str:
        if self.root is None:
            return ""
        return self.root.decode_contents()


@dataclass(frozen=True)
class ParsedBlocks:
    blocks: List[ContentBlock]
    document: BlockDocument


def classify_tag(tag: str) -> BlockType:
    if len(tag) == 2 and tag[0] == "h" and tag[1] in "123456":
        return BlockType.HEADING
    if tag == "p":
        return BlockType.PARAGRAPH
    if tag == "li":
        return BlockType.LIST_ITEM
    if tag == "blockquote":
        return BlockType.BLOCKQUOTE
    if tag in ("pre", "code"):
        return BlockType.CODE
    return BlockType.OTHER


def node_path(element: Tag, root: Tag) -> List[str]:
    """Return ``tag[index]`` steps from just below ``root`` down to ``element``."""

    parts: List[str] = []
    current: Optional[Tag] = element
    while current is not None and current is not root:
        tag = current.name.lower()
        index = len(current.find_previous_siblings(tag))
        parts.append(f"{tag}[{index}]")
        parent = current.parent
        if not isinstance(parent, Tag) or isinstance(parent, BeautifulSoup):
            break
        current = parent
    parts.reverse()
    return parts


def stable_block_id(element: Tag, ordinal: int, root: Tag) -> str:
    tag = element.name.lower()
    flattened = "/".join(part.replace("[", "").replace("]", "") for part in node_path(element, root))
    return f"b:{ordinal}:{tag}:{flattened}"


def _wrap(html: str, root_id: str) -> Tuple[BeautifulSoup, Optional[Tag]]:
    soup = make_soup(f'<div id="{root_id}">{html}</div>')
    return soup, soup.find(id=root_id)


def block_elements(root: Tag) -> List[Tag]:
    return root.find_all(BLOCK_TAGS)


def build_block_map(root: Tag) -> Dict[str, Tag]:
    """Map every block id to its element; empty blocks are included."""

    return {
        stable_block_id(element, ordinal, root): element
        for ordinal, element in enumerate(block_elements(root))
    }


def load_document(html: str, root_id: str = DEFAULT_ROOT_ID) -> BlockDocument:
    soup, root = _wrap(html or "", root_id)
    if root is None:
        logger.warning("Root container #%s not found; no blocks extracted.", root_id)
        return BlockDocument(soup=soup, root=None, elements={})
    return BlockDocument(soup=soup, root=root, elements=build_block_map(root))


def parse_blocks(
    html: str,
    *,
    root_id: str = DEFAULT_ROOT_ID,
    max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
    drop_empty: bool = True,
) -> ParsedBlocks:
    """Parse ``html`` into ordered blocks plus a handle for in-place edits."""

    document = load_document(html, root_id)
    blocks: List[ContentBlock] = []
    cursor = 0

    for block_id, element in document.elements.items():
        text = normalize_whitespace(element.get_text())
        if drop_empty and not text:
            continue
        if len(text) > max_text_length:
            text = text[:max_text_length] + "…"

        tag = element.name.lower()
        start = cursor
        end = cursor + len(text)
        cursor = end + 1

        blocks.append(
            ContentBlock(
                id=block_id,
                type=classify_tag(tag),
                tag=tag,
                text=text,
                html=element.decode_contents(),
                path=" > ".join(node_path(element, document.root)),
                contains_link=element.find("a") is not None,
                char_start=start,
                char_end=end,
            )
        )

    return ParsedBlocks(blocks=blocks, document=document)


def extract_blocks(html: str, **options) -> List[ContentBlock]:
    """Return the ordered content blocks of ``html``."""

    return parse_blocks(html, **options).blocks


def apply_block_edits(document: BlockDocument, edits: Mapping[str, str]) -> Tuple[str, int]:
    """Replace the inner markup of each block in ``edits`` and serialize the root.

    Returns ``(html, applied)``; ids unknown to the document are skipped.
    """

    if document.root is None:
        return "", 0

    applied = 0
    for block_id, new_html in edits.items():
        element = document.elements.get(block_id)
        if element is None:
            logger.warning("Block %s not found; edit skipped.", block_id)
            continue
        replace_inner_html(element, new_html)
        applied += 1

    return document.serialize(), applied
