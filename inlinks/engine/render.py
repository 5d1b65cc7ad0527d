"""Render accepted edits into three parallel views of the document.

Each view comes from its own parse of the input so that mutating one tree
can never leak into another:

* original: the anchor's first occurrence is wrapped in a highlight mark,
  links are left untouched;
* linked: the block is rewritten from the edit's markdown, the new link
  wrapped in a second mark class;
* modified: the block is rewritten with a word-level diff against the
  original text, changed words wrapped in a third mark class.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup, NavigableString, Tag  # type: ignore

from .anchors import MARKDOWN_LINK_RE
from .blocks import DEFAULT_ROOT_ID, BlockDocument, load_document
from .markup import escape_html, has_link_with_text, replace_inner_html
from .text import normalize_whitespace
from .types import ContentBlock, Edit, RenderResult, RenderStats

logger = logging.getLogger(__name__)

ORIGINAL_CLASS = "inlink-highlight-original"
LINKED_CLASS = "inlink-highlight-linked"
MODIFIED_CLASS = "inlink-highlight-modified"

NEW_EXCERPT = "[new excerpt]"

LINK_ATTRS = 'target="_blank" rel="noopener noreferrer"'


@dataclass(frozen=True)
class DiffToken:
    """A visible word of the modified markdown.

    ``link`` is the ordinal of the markdown link the word belongs to (None
    for plain text) and ``space_before`` records whether whitespace preceded
    the word in the source.
    """

    word: str
    link: Optional[int] = None
    space_before: bool = True


def _plain_tokens(markdown: str, start: int, end: int) -> List[DiffToken]:
    return [
        DiffToken(
            word=match.group(0),
            space_before=start + match.start() > 0 and markdown[start + match.start() - 1].isspace(),
        )
        for match in re.finditer(r"\S+", markdown[start:end])
    ]


def markdown_tokens(markdown: str) -> tuple[List[DiffToken], List[str]]:
    """Split ``markdown`` into visible words plus the URLs of its links.

    Link syntax never becomes a token; the words of each link text do,
    tagged with the link's ordinal.
    """

    markdown = markdown.replace("\u00a0", " ")
    tokens: List[DiffToken] = []
    urls: List[str] = []
    position = 0
    for match in MARKDOWN_LINK_RE.finditer(markdown):
        tokens.extend(_plain_tokens(markdown, position, match.start()))
        link = len(urls)
        urls.append(match.group(2).strip())
        words = match.group(1).split()
        lead_space = match.start() > 0 and markdown[match.start() - 1].isspace()
        for index, word in enumerate(words):
            tokens.append(DiffToken(word=word, link=link, space_before=lead_space if index == 0 else True))
        position = match.end()
    tokens.extend(_plain_tokens(markdown, position, len(markdown)))
    return tokens, urls


def lcs_mask(original: Sequence[str], modified: Sequence[str]) -> List[bool]:
    """Return, for each token of ``modified``, whether it belongs to the LCS."""

    rows, cols = len(original), len(modified)
    table = [[0] * (cols + 1) for _ in range(rows + 1)]
    for i in range(1, rows + 1):
        for j in range(1, cols + 1):
            if original[i - 1] == modified[j - 1]:
                table[i][j] = table[i - 1][j - 1] + 1
            else:
                table[i][j] = max(table[i - 1][j], table[i][j - 1])

    unchanged = [False] * cols
    i, j = rows, cols
    while i > 0 and j > 0:
        if original[i - 1] == modified[j - 1]:
            unchanged[j - 1] = True
            i -= 1
            j -= 1
        elif table[i - 1][j] >= table[i][j - 1]:
            i -= 1
        else:
            j -= 1
    return unchanged


def changed_mask(original_text: str, modified_markdown: str) -> List[bool]:
    """Flag every visible word of ``modified_markdown`` that is new."""

    tokens, _ = markdown_tokens(modified_markdown)
    original = [token.word for token in markdown_tokens(original_text)[0]]
    if not original or normalize_whitespace(original_text) == NEW_EXCERPT:
        return [True] * len(tokens)
    unchanged = lcs_mask(original, [token.word for token in tokens])
    return [not flag for flag in unchanged]


def _link_open(url: str) -> str:
    return f'<a href="{escape_html(url)}" {LINK_ATTRS}>'


def highlight_linked(markdown: str) -> str:
    """Convert markdown links to marked anchors, escaping everything else."""

    parts: List[str] = []
    position = 0
    for match in MARKDOWN_LINK_RE.finditer(markdown):
        parts.append(escape_html(markdown[position:match.start()]))
        parts.append(
            f'<mark class="{LINKED_CLASS}">{_link_open(match.group(2).strip())}'
            f"{escape_html(match.group(1))}</a></mark>"
        )
        position = match.end()
    parts.append(escape_html(markdown[position:]))
    return "".join(parts)


def highlight_diff(original_text: str, modified_markdown: str) -> str:
    """Render ``modified_markdown`` with its new words marked.

    An empty original, or the ``[new excerpt]`` placeholder, marks every word.
    """

    tokens, urls = markdown_tokens(modified_markdown)
    changed = changed_mask(original_text, modified_markdown)

    parts: List[str] = []
    open_link: Optional[int] = None
    for index, token in enumerate(tokens):
        if open_link is not None and token.link != open_link:
            parts.append("</a>")
            open_link = None
        if index and token.space_before:
            parts.append(" ")
        if token.link is not None and token.link != open_link:
            parts.append(_link_open(urls[token.link]))
            open_link = token.link
        word = escape_html(token.word)
        parts.append(f'<mark class="{MODIFIED_CLASS}">{word}</mark>' if changed[index] else word)
    if open_link is not None:
        parts.append("</a>")
    return "".join(parts)


def _anchor_pattern(anchor: str) -> Optional[re.Pattern]:
    words = anchor.split()
    if not words:
        return None
    return re.compile(r"\s+".join(re.escape(word) for word in words), re.IGNORECASE)


def _inside_link(node: NavigableString, element: Tag) -> bool:
    for parent in node.parents:
        if parent is element:
            return False
        if parent.name == "a":
            return True
    return False


def wrap_first_occurrence(soup: BeautifulSoup, element: Tag, anchor: str, css_class: str) -> bool:
    """Wrap the first text occurrence of ``anchor`` in ``element`` with a mark.

    Matching ignores case and whitespace differences. Text inside existing
    links is left alone. Returns False when nothing matched.
    """

    pattern = _anchor_pattern(anchor)
    if pattern is None:
        return False

    for text_node in list(element.descendants):
        if type(text_node) is not NavigableString:
            continue
        if _inside_link(text_node, element):
            continue

        original = str(text_node)
        match = pattern.search(original)
        if not match:
            continue

        after = original[match.end():]
        if after:
            text_node.insert_after(after)

        mark = soup.new_tag("mark")
        mark["class"] = [css_class]
        mark.string = match.group(0)
        text_node.insert_after(mark)

        before = original[:match.start()]
        if before:
            text_node.replace_with(before)
        else:
            text_node.extract()
        return True

    return False


def _check_identity(blocks: Sequence[ContentBlock], documents: Sequence[BlockDocument]) -> None:
    for block in blocks:
        if any(block.id not in document.elements for document in documents):
            logger.error("Block id %s missing from a rebuilt block map; ids are not stable.", block.id)


def _is_writable(element: Tag, document: BlockDocument, rewritten: Sequence[Tag]) -> bool:
    """Return False when ``element`` left the tree or wraps an already rewritten block.

    Rewriting a block detaches any block nested in it, and rewriting an outer
    block after an inner one would discard the inner edit.
    """

    if not any(parent is document.root for parent in element.parents):
        return False
    return not any(
        any(parent is element for parent in done.parents) for done in rewritten
    )


def apply_edits_to_html(
    html: str,
    edits: Sequence[Edit],
    *,
    blocks: Optional[Sequence[ContentBlock]] = None,
    preserve_existing_links: bool = True,
    root_id: str = DEFAULT_ROOT_ID,
) -> RenderResult:
    """Produce the original, linked and modified views of ``html``."""

    original = load_document(html, root_id)
    linked = load_document(html, root_id)
    modified = load_document(html, root_id)
    documents = (original, linked, modified)

    if any(document.root is None for document in documents):
        logger.warning("Root container #%s missing; returning input unchanged.", root_id)
        return RenderResult(
            original_html=html,
            linked_html=html,
            modified_html=html,
            stats=RenderStats(total_edits=len(edits), skipped_block_not_found=len(edits)),
        )

    if blocks is not None:
        _check_identity(blocks, documents)

    applied_original = applied_linked = applied_modified = 0
    skipped_already_linked = skipped_block_not_found = 0
    rewritten_linked: List[Tag] = []
    rewritten_modified: List[Tag] = []

    for edit in edits:
        original_el = original.elements.get(edit.block_id)
        linked_el = linked.elements.get(edit.block_id)
        modified_el = modified.elements.get(edit.block_id)
        if original_el is None or linked_el is None or modified_el is None:
            logger.error("Block %s not found while rendering edit for %s.", edit.block_id, edit.target_url)
            skipped_block_not_found += 1
            continue
        if not (
            _is_writable(linked_el, linked, rewritten_linked)
            and _is_writable(modified_el, modified, rewritten_modified)
        ):
            logger.error(
                "Block %s overlaps a block rewritten earlier; edit for %s skipped.",
                edit.block_id,
                edit.target_url,
            )
            skipped_block_not_found += 1
            continue

        if wrap_first_occurrence(original.soup, original_el, edit.anchor, ORIGINAL_CLASS):
            applied_original += 1

        if preserve_existing_links and has_link_with_text(linked_el, edit.anchor):
            skipped_already_linked += 1
        else:
            replace_inner_html(linked_el, highlight_linked(edit.modified_block_text))
            rewritten_linked.append(linked_el)
            applied_linked += 1

        replace_inner_html(modified_el, highlight_diff(edit.original_block_text, edit.modified_block_text))
        rewritten_modified.append(modified_el)
        applied_modified += 1

    stats = RenderStats(
        total_edits=len(edits),
        applied_original=applied_original,
        applied_linked=applied_linked,
        applied_modified=applied_modified,
        skipped_already_linked=skipped_already_linked,
        skipped_block_not_found=skipped_block_not_found,
    )
    logger.info("Rendered %d edits: %s", len(edits), stats)
    return RenderResult(
        original_html=original.serialize(),
        linked_html=linked.serialize(),
        modified_html=modified.serialize(),
        stats=stats,
    )
