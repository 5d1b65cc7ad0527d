"""End-to-end pipeline tests with in-memory backends."""

from __future__ import annotations

import asyncio

import pytest

from inlinks.engine.index import run_link_insertion
from inlinks.engine.render import apply_edits_to_html
from inlinks.engine.text import normalize_whitespace, word_count
from inlinks.engine.types import BlockType, RejectionCode

from .conftest import BagOfWordsEmbedder, FakeExtractor, ScriptedGenerator, decision, make_block

PRINCIPAL_URL = "https://example.com/camera-guide"

CAMERAS = make_block(
    "b:1:p:p0",
    "Mirrorless cameras are lighter and their sensor technology keeps improving.",
)
LENSES = make_block("b:2:p:p1", "Choosing a lens depends on focal length and aperture.")
TRIPODS = make_block(
    "b:3:li:ul0/li0",
    "Tripods help with long exposure photography.",
    type=BlockType.LIST_ITEM,
    tag="li",
)
LINKED = make_block("b:4:p:p2", "Already linked paragraph about lens hoods.", contains_link=True)
BLOCKS = [CAMERAS, LENSES, TRIPODS, LINKED]

PAGES = {
    "https://example.com/lenses": "Lens guide: focal length, aperture and lens mounts explained for every photographer.",
    "https://example.com/empty": "",
    "https://example.com/sensors": "Sensor technology in mirrorless cameras: full frame versus crop sensor.",
    "https://example.com/down": "   ",
    "https://example.com/tripods": "Tripods for long exposure photography at night.",
}

VOCABULARY = ["lens", "sensor", "tripods", "exposure", "aperture", "pasta"]


def replies():
    return {
        "https://example.com/lenses": decision("https://example.com/lenses", LENSES, "lens focal length guide"),
        "https://example.com/tripods": decision("https://example.com/tripods", TRIPODS, "long exposure photography"),
        "https://example.com/sensors": decision("https://example.com/sensors", CAMERAS, "mirrorless sensor technology"),
    }


def run(blocks=BLOCKS, engine_config=None, **options):
    extractor = FakeExtractor(dict(PAGES, **options.pop("pages", {})))
    generator = ScriptedGenerator(replies())
    result = asyncio.run(
        run_link_insertion(
            PRINCIPAL_URL,
            list(PAGES),
            blocks,
            extractor=extractor,
            embedder=BagOfWordsEmbedder(VOCABULARY),
            generator=generator,
            config=engine_config,
            **options,
        )
    )
    return result, extractor, generator


def test_pipeline_links_best_candidates_within_density_budget(engine_config):
    result, extractor, _ = run(engine_config=engine_config)

    assert [(edit.target_url, edit.block_id) for edit in result.edits] == [
        ("https://example.com/lenses", LENSES.id),
        ("https://example.com/tripods", TRIPODS.id),
    ]
    assert [(rejection.url, rejection.code) for rejection in result.rejected] == [
        ("https://example.com/empty", RejectionCode.EMPTY_CONTENT),
        ("https://example.com/down", RejectionCode.EMPTY_CONTENT),
        ("https://example.com/sensors", RejectionCode.DENSITY_LIMIT),
    ]

    principal_text = normalize_whitespace(" ".join(block.text for block in BLOCKS))
    metrics = result.metrics
    assert metrics.total_links == 2
    assert metrics.max_links == 2
    assert metrics.candidates_analyzed == 3
    assert metrics.eligible_blocks == 3
    assert metrics.density_per_1000_words == pytest.approx(2 / word_count(principal_text) * 1000, abs=0.01)
    assert PRINCIPAL_URL not in extractor.requested


def test_explicit_max_links_overrides_density(engine_config):
    result, _, _ = run(engine_config=engine_config, max_links=5)

    assert {edit.target_url for edit in result.edits} == {
        "https://example.com/lenses",
        "https://example.com/tripods",
        "https://example.com/sensors",
    }
    assert len({edit.block_id for edit in result.edits}) == 3
    assert result.metrics.max_links == 5


def test_principal_text_falls_back_to_fetching_the_url(engine_config):
    pages = {PRINCIPAL_URL: "Lens and aperture notes with sensor and tripods exposure."}
    result, extractor, generator = run(blocks=None, engine_config=engine_config, pages=pages)

    assert PRINCIPAL_URL in extractor.requested
    assert result.edits == []
    assert result.metrics.eligible_blocks == 0
    assert {rejection.code for rejection in result.rejected} >= {RejectionCode.NO_ELIGIBLE_BLOCKS}
    assert generator.calls == 0


def test_explicit_principal_content_is_not_fetched(engine_config):
    result, extractor, _ = run(
        blocks=None,
        engine_config=engine_config,
        principal_content="Lens aperture sensor tripods exposure.",
    )

    assert PRINCIPAL_URL not in extractor.requested
    assert result.metrics.candidates_analyzed == 3


def test_pipeline_edits_render_against_the_source_markup(engine_config):
    html = (
        "<p>Choosing a lens depends on focal length and aperture.</p>"
        "<ul><li>Tripods help with long exposure photography.</li></ul>"
    )
    blocks = [
        make_block("b:0:p:p0", LENSES.text),
        make_block("b:1:li:ul0/li0", TRIPODS.text, type=BlockType.LIST_ITEM, tag="li"),
    ]
    generator = ScriptedGenerator(
        {
            "https://example.com/lenses": decision("https://example.com/lenses", blocks[0], "lens focal length guide"),
            "https://example.com/tripods": decision("https://example.com/tripods", blocks[1], "long exposure photography"),
        }
    )
    result = asyncio.run(
        run_link_insertion(
            PRINCIPAL_URL,
            list(PAGES),
            blocks,
            extractor=FakeExtractor(PAGES),
            embedder=BagOfWordsEmbedder(VOCABULARY),
            generator=generator,
            config=engine_config,
        )
    )
    rendered = apply_edits_to_html(html, result.edits)

    assert rendered.stats.applied_modified == len(result.edits) == 2
    assert rendered.stats.skipped_block_not_found == 0
    assert 'href="https://example.com/tripods"' in rendered.linked_html
