"""Block-based internal link insertion engine."""

from .blocks import apply_block_edits, extract_blocks, parse_blocks
from .index import run_link_insertion
from .render import apply_edits_to_html

__all__ = [
    "apply_block_edits",
    "apply_edits_to_html",
    "extract_blocks",
    "parse_blocks",
    "run_link_insertion",
]
