"""Diff and render engine tests."""

from __future__ import annotations

from inlinks.engine import blocks as blocks_module
from inlinks.engine.blocks import extract_blocks
from inlinks.engine.render import (
    LINKED_CLASS,
    MODIFIED_CLASS,
    ORIGINAL_CLASS,
    apply_edits_to_html,
    changed_mask,
    highlight_diff,
    highlight_linked,
    lcs_mask,
    markdown_tokens,
)
from inlinks.engine.types import Edit

ARTICLE = (
    "<h2>Lens basics</h2>"
    "<p>Choosing a lens depends on focal length and aperture.</p>"
    '<p>See our <a href="https://example.com/old">focal length primer</a> first.</p>'
    "<ul><li>Tripods help with long exposure photography.</li></ul>"
)
LENS_BLOCK = "b:1:p:p0"
LINKED_BLOCK = "b:2:p:p1"
TRIPOD_BLOCK = "b:3:li:ul0/li0"
LENS_URL = "https://example.com/lenses"


def make_edit(block_id, original, modified, anchor, url=LENS_URL):
    return Edit(
        block_id=block_id,
        target_url=url,
        anchor=anchor,
        original_block_text=original,
        modified_block_text=modified,
        justification="test",
    )


LENS_EDIT = make_edit(
    LENS_BLOCK,
    "Choosing a lens depends on focal length and aperture.",
    "Choosing a lens depends on [focal length](https://example.com/lenses) and aperture.",
    "focal length",
)


def test_lcs_mask_marks_common_subsequence():
    assert lcs_mask(["a", "b", "c"], ["a", "x", "c"]) == [True, False, True]
    assert lcs_mask([], ["a"]) == [False]


def test_no_op_diff_marks_nothing():
    text = "Choosing a lens depends on focal length and aperture."

    assert not any(changed_mask(text, text))
    assert MODIFIED_CLASS not in highlight_diff(text, text)


def test_link_syntax_alone_is_not_a_change():
    assert not any(changed_mask(LENS_EDIT.original_block_text, LENS_EDIT.modified_block_text))


def test_identical_text_with_a_link_marks_nothing():
    text = "Read the [lens guide](https://example.com/g) today."

    assert changed_mask(text, text) == [False] * 5
    assert MODIFIED_CLASS not in highlight_diff(text, text)


def test_empty_or_placeholder_original_marks_every_word():
    modified = "Brand new sentence with a [useful guide](https://example.com/guide)."

    for original in ("", "   ", "[new excerpt]"):
        mask = changed_mask(original, modified)
        assert mask and all(mask)


def test_markdown_tokens_group_link_words():
    tokens, urls = markdown_tokens("Read [the lens guide](https://example.com/g), then shoot.")

    assert [token.word for token in tokens] == ["Read", "the", "lens", "guide", ",", "then", "shoot."]
    assert [token.link for token in tokens] == [None, 0, 0, 0, None, None, None]
    assert urls == ["https://example.com/g"]
    assert tokens[4].space_before is False


def test_highlight_diff_marks_new_words_and_builds_link():
    html = highlight_diff(
        "Choosing a lens depends on aperture.",
        "Choosing a lens depends on [focal length](https://example.com/lenses) and aperture.",
    )

    assert html == (
        "Choosing a lens depends on "
        '<a href="https://example.com/lenses" target="_blank" rel="noopener noreferrer">'
        f'<mark class="{MODIFIED_CLASS}">focal</mark> <mark class="{MODIFIED_CLASS}">length</mark></a> '
        f'<mark class="{MODIFIED_CLASS}">and</mark> aperture.'
    )


def test_highlight_linked_escapes_text_and_marks_link():
    html = highlight_linked("Fish & chips <b> [fish guide](https://example.com/f?a=1&b=2).")

    assert html == (
        "Fish &amp; chips &lt;b&gt; "
        f'<mark class="{LINKED_CLASS}"><a href="https://example.com/f?a=1&amp;b=2" '
        'target="_blank" rel="noopener noreferrer">fish guide</a></mark>.'
    )


def test_three_views_are_rendered_independently():
    result = apply_edits_to_html(ARTICLE, [LENS_EDIT], blocks=extract_blocks(ARTICLE))

    assert f'<mark class="{ORIGINAL_CLASS}">focal length</mark>' in result.original_html
    assert "https://example.com/lenses" not in result.original_html

    assert f'<mark class="{LINKED_CLASS}"><a href="https://example.com/lenses"' in result.linked_html
    assert ORIGINAL_CLASS not in result.linked_html

    assert '<a href="https://example.com/lenses" target="_blank" rel="noopener noreferrer">' in result.modified_html
    assert MODIFIED_CLASS not in result.modified_html
    assert LINKED_CLASS not in result.modified_html

    stats = result.stats
    assert stats.total_edits == 1
    assert stats.applied_original == 1
    assert stats.applied_linked == 1
    assert stats.applied_modified == 1
    assert stats.skipped_block_not_found == 0

    assert "<h2>Lens basics</h2>" in result.linked_html


def test_original_view_matches_case_and_whitespace_insensitively():
    edit = make_edit(
        TRIPOD_BLOCK,
        "Tripods help with long exposure photography.",
        "Tripods help with [Long   Exposure](https://example.com/exposure) photography.",
        "Long   Exposure",
        url="https://example.com/exposure",
    )
    result = apply_edits_to_html(ARTICLE, [edit])

    assert f'<mark class="{ORIGINAL_CLASS}">long exposure</mark>' in result.original_html


def test_original_view_never_highlights_inside_existing_links():
    edit = make_edit(
        LINKED_BLOCK,
        "See our focal length primer first.",
        "See our focal length primer [first](https://example.com/first).",
        "focal length primer",
        url="https://example.com/first",
    )
    result = apply_edits_to_html(ARTICLE, [edit], preserve_existing_links=False)

    assert ORIGINAL_CLASS not in result.original_html
    assert result.stats.applied_original == 0
    assert result.stats.applied_linked == 1


def test_already_linked_anchor_is_skipped_in_linked_view():
    edit = make_edit(
        LINKED_BLOCK,
        "See our focal length primer first.",
        "See our [focal length primer](https://example.com/lenses) first.",
        "Focal Length Primer",
    )
    result = apply_edits_to_html(ARTICLE, [edit])

    assert result.stats.skipped_already_linked == 1
    assert result.stats.applied_linked == 0
    assert LINKED_CLASS not in result.linked_html
    assert result.stats.applied_modified == 1


def test_unknown_block_is_counted_not_raised():
    ghost = make_edit("b:42:p:p9", "Ghost", "Ghost [text here](https://example.com/x)", "text here")
    result = apply_edits_to_html(ARTICLE, [LENS_EDIT, ghost])

    assert result.stats.total_edits == 2
    assert result.stats.skipped_block_not_found == 1
    assert result.stats.applied_modified == 1


def test_missing_root_passes_input_through(monkeypatch):
    original_wrap = blocks_module._wrap

    def wrap_without_root(html, root_id):
        soup, _ = original_wrap(html, root_id)
        return soup, None

    monkeypatch.setattr(blocks_module, "_wrap", wrap_without_root)
    result = apply_edits_to_html(ARTICLE, [LENS_EDIT])

    assert result.original_html == ARTICLE
    assert result.linked_html == ARTICLE
    assert result.modified_html == ARTICLE
    assert result.stats.skipped_block_not_found == 1
    assert result.stats.applied_modified == 0


def test_no_edits_returns_equivalent_markup():
    result = apply_edits_to_html(ARTICLE, [])

    assert result.original_html == result.linked_html == result.modified_html
    assert result.stats.total_edits == 0


NESTED = "<ul><li><p>Tripods help with long exposure photography.</p></li></ul>"
NESTED_TEXT = "Tripods help with long exposure photography."
OUTER_EDIT = make_edit(
    "b:0:li:ul0/li0",
    NESTED_TEXT,
    "Tripods help with [long exposure](https://example.com/a) photography.",
    "long exposure",
    url="https://example.com/a",
)
INNER_EDIT = make_edit(
    "b:1:p:ul0/li0/p0",
    NESTED_TEXT,
    "[Tripods help](https://example.com/b) with long exposure photography.",
    "Tripods help",
    url="https://example.com/b",
)


def test_edit_inside_a_rewritten_block_is_counted_as_skipped():
    result = apply_edits_to_html(NESTED, [OUTER_EDIT, INNER_EDIT])

    assert "https://example.com/a" in result.linked_html
    assert "https://example.com/b" not in result.linked_html
    assert result.stats.applied_linked == 1
    assert result.stats.applied_modified == 1
    assert result.stats.skipped_block_not_found == 1


def test_outer_block_never_overwrites_an_inner_edit():
    result = apply_edits_to_html(NESTED, [INNER_EDIT, OUTER_EDIT])

    assert "https://example.com/b" in result.linked_html
    assert "https://example.com/a" not in result.linked_html
    assert "https://example.com/b" in result.modified_html
    assert result.stats.applied_linked == 1
    assert result.stats.applied_modified == 1
    assert result.stats.skipped_block_not_found == 1
