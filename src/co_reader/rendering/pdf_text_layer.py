"""
PDF Text Layer - Page text streams and text item geometry from PyMuPDF
Extracts the text spans of each page in reading order, joins them into the
page text stream paginated anchors are addressed against, and keeps each
span's bounding box so it can be transformed to the current zoom level.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

import fitz  # PyMuPDF

from co_reader.anchoring.geometry import BoundingRect

logger = logging.getLogger(__name__)

# Vertical gap between pages in the continuous reader view, in screen pixels
DEFAULT_PAGE_GAP = 16.0


@dataclass
class TextItem:
    """One text run of a page and its box in page space (points, scale 1)"""

    text: str
    bbox: BoundingRect


@dataclass
class PageTextLayer:
    """
    Text items of one rendered page

    ``scale`` and ``origin`` describe the current render: item boxes are
    multiplied by the zoom and shifted to where the page is drawn.
    """

    page_number: int
    items: List[TextItem]
    separator: str = " "
    scale: float = 1.0
    origin: Tuple[float, float] = (0.0, 0.0)  # (top, left) in viewport space
    width: float = 0.0
    height: float = 0.0
    _text: Optional[str] = field(default=None, repr=False)

    @property
    def text(self) -> str:
        """Page text stream: items joined with the separator"""
        if self._text is None:
            self._text = self.separator.join(item.text for item in self.items)
        return self._text

    def item_rect(self, index: int) -> BoundingRect:
        """Viewport rectangle of an item at the current scale"""
        top, left = self.origin
        return self.items[index].bbox.scaled(self.scale).translated(left, top)

    def at_scale(self, scale: float, origin: Optional[Tuple[float, float]] = None) -> "PageTextLayer":
        """Same text, re-rendered at another zoom level"""
        return PageTextLayer(
            page_number=self.page_number,
            items=self.items,
            separator=self.separator,
            scale=scale,
            origin=origin if origin is not None else self.origin,
            width=self.width,
            height=self.height,
        )


class PdfTextLayer:
    """Reads text items from a PDF file for anchoring"""

    def __init__(self, pdf_path: str, separator: str = " "):
        self.pdf_path = Path(pdf_path)
        self.separator = separator
        self.doc: Optional[fitz.Document] = None
        self.page_cache: Dict[int, PageTextLayer] = {}

    def open_pdf(self) -> bool:
        """
        Open the PDF file for text extraction

        Returns:
            True if successful, False otherwise
        """
        try:
            self.doc = fitz.open(str(self.pdf_path))
            return True
        except Exception as e:
            logger.error(f"Error opening PDF {self.pdf_path}: {e}")
            return False

    @classmethod
    def from_document(cls, doc: fitz.Document, separator: str = " ") -> "PdfTextLayer":
        """Wrap an already opened (possibly in-memory) document"""
        layer = cls(doc.name or "<memory>", separator=separator)
        layer.doc = doc
        return layer

    def close_pdf(self):
        """Close the PDF document"""
        if self.doc:
            self.doc.close()
            self.doc = None
        self.page_cache = {}

    @property
    def page_count(self) -> int:
        return len(self.doc) if self.doc else 0

    def page_layer(self, page_number: int) -> Optional[PageTextLayer]:
        """
        Text items of a page at scale 1

        Args:
            page_number: 1-based page number

        Returns:
            PageTextLayer, or None when the document is closed or the page
            does not exist
        """
        if not self.doc:
            logger.error("PDF document not opened")
            return None
        if page_number < 1 or page_number > len(self.doc):
            logger.warning(f"Invalid page number: {page_number}")
            return None

        if page_number not in self.page_cache:
            page = self.doc[page_number - 1]
            self.page_cache[page_number] = PageTextLayer(
                page_number=page_number,
                items=self._extract_items(page),
                separator=self.separator,
                width=page.rect.width,
                height=page.rect.height,
            )
        return self.page_cache[page_number]

    def _extract_items(self, page: fitz.Page) -> List[TextItem]:
        """Spans of a page in reading order; empty spans carry no text and are skipped"""
        items = []
        try:
            blocks = page.get_text("dict")
        except Exception as e:
            logger.warning(f"Error extracting text from page {page.number + 1}: {e}")
            return items

        for block in blocks.get("blocks", []):
            if block.get("type", 0) != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    text = span.get("text", "")
                    if not text:
                        continue
                    x0, y0, x1, y1 = span.get("bbox", (0, 0, 0, 0))
                    items.append(TextItem(text=text, bbox=BoundingRect.from_bbox(x0, y0, x1, y1)))
        return items

    def page_text(self, page_number: int) -> str:
        layer = self.page_layer(page_number)
        return layer.text if layer else ""

    def render_pages(self, scale: float = 1.0, page_gap: float = DEFAULT_PAGE_GAP,
                     left: float = 0.0) -> Dict[int, PageTextLayer]:
        """
        Lay every page out in a continuous vertical strip at a zoom level

        Returns:
            Page number to PageTextLayer, each positioned where the reader
            draws it
        """
        pages = {}
        top = 0.0
        for page_number in range(1, self.page_count + 1):
            layer = self.page_layer(page_number)
            if layer is None:
                continue
            pages[page_number] = layer.at_scale(scale, origin=(top, left))
            top += layer.height * scale + page_gap
        return pages
