"""
Unit tests for configuration defaults and validation.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from co_reader.config import CONFIG, AnchoringConfig, LayoutConfig


def test_defaults():
    assert CONFIG.context_radius == 30
    assert CONFIG.page_separator == " "
    assert CONFIG.offset_policy == "reanchor"


@pytest.mark.parametrize("kwargs", [
    {"context_radius": -1},
    {"page_separator": ""},
    {"page_separator": "\n\n"},
    {"offset_policy": "guess"},
])
def test_invalid_anchoring_config(kwargs):
    with pytest.raises(ValueError):
        AnchoringConfig(**kwargs)


def test_layout_metrics():
    layout = LayoutConfig(font_size=20, line_height=1.5, char_width_ratio=0.5)
    assert layout.char_width == 10
    assert layout.line_pixels == 30
