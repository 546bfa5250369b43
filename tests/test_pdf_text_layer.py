"""
Unit tests for PDF text extraction, zoom handling and annotated export.
Documents are generated in memory with PyMuPDF.
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import fitz
import pytest

from co_reader.anchoring.builder import build_paginated_anchor
from co_reader.anchoring.anchors import PaginatedAnchor
from co_reader.anchoring.resolver import PaginatedRenderState, resolve_anchor
from co_reader.rendering.pdf_export import export_highlighted_pdf
from co_reader.rendering.pdf_text_layer import DEFAULT_PAGE_GAP, PdfTextLayer
from co_reader.storage.models import Highlight, HighlightCategory, utc_now

PAGE_WIDTH, PAGE_HEIGHT = 595, 842


def make_document():
    doc = fitz.open()
    first = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    first.insert_text((72, 72), "Hello world", fontsize=12)
    first.insert_text((72, 120), "Second line here", fontsize=12)
    second = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    second.insert_text((72, 72), "Another page", fontsize=12)
    return doc


@pytest.fixture
def text_layer():
    layer = PdfTextLayer.from_document(make_document())
    yield layer
    layer.close_pdf()


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "sample.pdf"
    doc = make_document()
    doc.save(str(path))
    doc.close()
    return path


def test_page_text_joins_items_with_separator(text_layer):
    assert text_layer.page_count == 2
    assert text_layer.page_text(1) == "Hello world Second line here"
    assert text_layer.page_text(2) == "Another page"


def test_invalid_page(text_layer):
    assert text_layer.page_layer(0) is None
    assert text_layer.page_layer(3) is None
    assert text_layer.page_text(3) == ""


def test_closed_document_has_no_pages():
    layer = PdfTextLayer("/nonexistent/file.pdf")
    assert not layer.open_pdf()
    assert layer.page_count == 0
    assert layer.page_layer(1) is None


def test_render_pages_stacks_and_scales(text_layer):
    base = text_layer.page_layer(1)
    pages = text_layer.render_pages(scale=2.0)

    assert pages[1].origin == (0.0, 0.0)
    assert pages[2].origin == (PAGE_HEIGHT * 2.0 + DEFAULT_PAGE_GAP, 0.0)
    assert pages[1].item_rect(0) == base.items[0].bbox.scaled(2.0)


def test_zoom_changes_rects_but_not_resolution(text_layer):
    anchor = build_paginated_anchor(1, "Second line", text_layer.page_text(1))
    small = resolve_anchor(anchor, PaginatedRenderState(pages=text_layer.render_pages(scale=1.0)))
    large = resolve_anchor(anchor, PaginatedRenderState(pages=text_layer.render_pages(scale=1.5)))

    assert len(small) == len(large) == 1
    assert large[0].width == pytest.approx(small[0].width * 1.5)
    assert large[0].top == pytest.approx(small[0].top * 1.5)


def make_highlight(anchor, highlight_id="h1"):
    return Highlight(id=highlight_id, document_id="d1", category=HighlightCategory.QUESTION,
                     text="world", anchor=anchor, created_at=utc_now())


def test_export_embeds_highlight_annotations(pdf_file, tmp_path):
    anchor = PaginatedAnchor(page_number=1, start_offset=6, end_offset=11, context="Hello world Second line here")
    output = tmp_path / "out.pdf"

    assert export_highlighted_pdf(str(pdf_file), [make_highlight(anchor)], {"h1": "Which world?"}, str(output))

    doc = fitz.open(str(output))
    try:
        annots = list(doc[0].annots())
        assert len(annots) == 1
        assert annots[0].type[1] == "Highlight"
        assert annots[0].info["content"] == "Which world?"
        assert annots[0].info["title"] == "Co-Reader question"
        assert list(doc[1].annots()) == []
    finally:
        doc.close()


def test_export_skips_unresolvable_highlights(pdf_file, tmp_path):
    stale = PaginatedAnchor(page_number=1, start_offset=6, end_offset=11, context="Hello earth")
    output = tmp_path / "out.pdf"

    assert not export_highlighted_pdf(str(pdf_file), [make_highlight(stale)], {}, str(output))
    assert not output.exists()
