"""
Unit tests for the headless monospace layout.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from co_reader.config import LayoutConfig
from co_reader.rendering.dom import iter_text_nodes, parse_html
from co_reader.rendering.text_layout import MonospaceLayout

# 10px characters, 20px lines, 10 columns per line
NARROW = LayoutConfig(font_size=10, line_height=2.0, char_width_ratio=1.0, container_width=100)


def test_single_line_range():
    root = parse_html("<p>hello world</p>")
    layout = MonospaceLayout(root, NARROW)
    node = next(iter_text_nodes(root))
    (rect,) = layout.rects_for(node, 0, 5)
    assert (rect.top, rect.left, rect.width, rect.height) == (0, 0, 50, 20)


def test_words_wrap_to_next_line():
    root = parse_html("<p>hello world again</p>")
    layout = MonospaceLayout(root, NARROW)
    node = next(iter_text_nodes(root))
    # "hello " fits on line 0; "world " on line 1; "again" on line 2
    rects = layout.rects_for(node, 0, len(node.data))
    assert [r.top for r in rects] == [0, 20, 40]
    (world,) = layout.rects_for(node, 6, 11)
    assert (world.top, world.left, world.width) == (20, 0, 50)


def test_blocks_start_new_lines():
    root = parse_html("<p>one</p><p>two</p>")
    layout = MonospaceLayout(root, NARROW)
    first, second = list(iter_text_nodes(root))
    assert layout.rects_for(first, 0, 3)[0].top == 0
    assert layout.rects_for(second, 0, 3)[0].top == 20
    assert layout.line_count == 2
    assert layout.content_height == 40


def test_inline_elements_continue_the_line():
    root = parse_html("<p>ab<b>cd</b>ef</p>")
    layout = MonospaceLayout(root, NARROW)
    _, bold, _ = list(iter_text_nodes(root))
    (rect,) = layout.rects_for(bold, 0, 2)
    assert (rect.top, rect.left, rect.width) == (0, 20, 20)


def test_font_change_moves_rectangles():
    root = parse_html("<p>The quick brown fox jumps over the lazy dog</p>")
    node = next(iter_text_nodes(root))
    layout = MonospaceLayout(root, NARROW)
    before = layout.rects_for(node, 35, 39)
    layout.relayout(LayoutConfig(font_size=20, line_height=1.5, char_width_ratio=1.0, container_width=100))
    after = layout.rects_for(node, 35, 39)
    assert before != after
    assert after[0].height == 30


def test_origin_offsets_rectangles():
    root = parse_html("<p>abc</p>")
    layout = MonospaceLayout(root, NARROW, origin=(100.0, 50.0))
    (rect,) = layout.rects_for(next(iter_text_nodes(root)), 1, 2)
    assert (rect.top, rect.left) == (100, 60)


def test_unknown_node_and_bad_range():
    root = parse_html("<p>abc</p>")
    layout = MonospaceLayout(root, NARROW)
    other = next(iter_text_nodes(parse_html("<p>abc</p>")))
    with pytest.raises(KeyError):
        layout.rects_for(other, 0, 1)
    with pytest.raises(IndexError):
        layout.rects_for(next(iter_text_nodes(root)), 2, 9)
