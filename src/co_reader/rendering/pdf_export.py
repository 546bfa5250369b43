"""
PDF Export - Embed resolved highlights into a copy of the PDF
Paginated highlights are resolved against the document itself at scale 1,
so the rectangles land in page space, and written as PyMuPDF highlight
annotations coloured by category with the note as content.
"""

import fitz  # PyMuPDF
from pathlib import Path
from typing import Dict, List, Optional
import logging

from co_reader.anchoring.anchors import ANCHOR_TYPE_PAGINATED
from co_reader.anchoring.resolver import PaginatedRenderState, resolve_anchor
from co_reader.config import CONFIG, AnchoringConfig
from co_reader.rendering.pdf_text_layer import PdfTextLayer
from co_reader.storage.models import Highlight, HighlightCategory

logger = logging.getLogger(__name__)

CATEGORY_COLORS = {
    HighlightCategory.INSIGHT: (1.0, 0.92, 0.23),     # yellow
    HighlightCategory.DEFINITION: (0.55, 0.85, 1.0),  # blue
    HighlightCategory.QUESTION: (1.0, 0.7, 0.75),     # pink
}


class HighlightPdfExporter:
    """Writes stored highlights into a PDF as annotations"""

    def __init__(self, pdf_path: str, config: AnchoringConfig = CONFIG):
        self.pdf_path = Path(pdf_path)
        self.config = config
        self.doc: Optional[fitz.Document] = None
        self.text_layer: Optional[PdfTextLayer] = None

    def open_pdf(self) -> bool:
        """
        Open the PDF file for annotation

        Returns:
            True if successful, False otherwise
        """
        try:
            self.doc = fitz.open(str(self.pdf_path))
            self.text_layer = PdfTextLayer.from_document(self.doc, separator=self.config.page_separator)
            return True
        except Exception as e:
            logger.error(f"Error opening PDF {self.pdf_path}: {e}")
            return False

    def close_pdf(self):
        """Close the PDF document"""
        if self.doc:
            self.doc.close()
            self.doc = None
            self.text_layer = None

    def add_highlights(self, highlights: List[Highlight], notes: Optional[Dict[str, str]] = None) -> int:
        """
        Add highlight annotations to the PDF

        Args:
            highlights: Highlights of the document; non-paginated ones are skipped
            notes: Note content by highlight id

        Returns:
            Number of highlights embedded
        """
        if not self.doc:
            logger.error("PDF document not opened")
            return 0

        notes = notes or {}
        # Every page at its own origin, so rectangles come out in page space
        pages = {}
        for page_number in range(1, self.text_layer.page_count + 1):
            layer = self.text_layer.page_layer(page_number)
            if layer is not None:
                pages[page_number] = layer.at_scale(1.0, origin=(0.0, 0.0))
        state = PaginatedRenderState(pages=pages)
        added = 0
        for highlight in highlights:
            if highlight.anchor.type != ANCHOR_TYPE_PAGINATED:
                continue
            rects = resolve_anchor(highlight.anchor, state, self.config)
            if not rects:
                logger.warning(f"Highlight {highlight.id} does not resolve on page "
                               f"{highlight.anchor.page_number}; not exported")
                continue
            if self._add_highlight_annotation(highlight, rects, notes.get(highlight.id, "")):
                added += 1

        logger.info(f"Embedded {added} of {len(highlights)} highlights into {self.pdf_path.name}")
        return added

    def _add_highlight_annotation(self, highlight: Highlight, rects, note: str) -> bool:
        page = self.doc[highlight.anchor.page_number - 1]
        quads = [fitz.Rect(r.left, r.top, r.right, r.bottom) for r in rects]
        try:
            annot = page.add_highlight_annot(quads)
            annot.set_info(title=f"Co-Reader {highlight.category.value}", content=note or highlight.text)
            annot.set_colors(stroke=CATEGORY_COLORS[highlight.category])
            annot.update()
            return True
        except Exception as e:
            logger.error(f"Error adding highlight on page {page.number + 1}: {e}")
            return False

    def save_pdf(self, output_path: Optional[str] = None) -> bool:
        if not self.doc:
            logger.error("No document to save")
            return False

        save_path = Path(output_path) if output_path else self.pdf_path.with_name(f"{self.pdf_path.stem}_highlighted.pdf")

        try:
            self.doc.save(str(save_path), garbage=4, deflate=True, clean=True)
            logger.info(f"PDF saved to {save_path}")
            return True
        except Exception as e:
            logger.error(f"Error saving PDF to {save_path}: {e}")
            return False


def export_highlighted_pdf(pdf_path: str, highlights: List[Highlight], notes: Optional[Dict[str, str]] = None,
                           output_path: Optional[str] = None, config: AnchoringConfig = CONFIG) -> bool:
    """
    Write a copy of the PDF with highlights embedded

    Returns:
        True if at least one highlight was embedded and the copy was saved
    """
    exporter = HighlightPdfExporter(pdf_path, config=config)
    if not exporter.open_pdf():
        logger.error(f"Failed to open PDF: {pdf_path}")
        return False

    try:
        added = exporter.add_highlights(highlights, notes)
        if added <= 0:
            logger.warning("No highlights were embedded in the PDF; not saving output.")
            return False
        return exporter.save_pdf(output_path)
    finally:
        exporter.close_pdf()
