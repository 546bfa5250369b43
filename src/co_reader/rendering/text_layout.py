"""
Text Layout - Headless reflow of flowing content
Places every character of a document tree on a monospace grid driven by the
reader settings (font size, line height, container width), and answers
range-to-rectangle queries the way a browser's getClientRects does: one
rectangle per line fragment the range touches.
"""

import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from co_reader.anchoring.geometry import BoundingRect
from co_reader.config import LayoutConfig
from co_reader.rendering.dom import Element, Node, TextNode

logger = logging.getLogger(__name__)

BLOCK_ELEMENTS = {
    "address", "article", "aside", "blockquote", "body", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "h1", "h2", "h3", "h4", "h5", "h6", "header",
    "hr", "html", "li", "main", "nav", "ol", "p", "pre", "section", "table",
    "tbody", "td", "th", "thead", "tr", "ul",
}

TOKEN_PATTERN = re.compile(r"\S+|\s")


class MonospaceLayout:
    """Lays out a document tree and maps text ranges to viewport rectangles"""

    def __init__(self, root: Element, config: Optional[LayoutConfig] = None,
                 origin: Tuple[float, float] = (0.0, 0.0)):
        """
        Args:
            root: Document tree to lay out
            config: Reader settings; defaults to ``LayoutConfig()``
            origin: (top, left) of the content box in viewport space
        """
        self.root = root
        self.config = config or LayoutConfig()
        self.origin = origin
        self.positions: Dict[int, List[Tuple[int, int]]] = {}
        self.line_count = 0
        self._line = 0
        self._column = 0
        self._columns_per_line = 1
        self.relayout()

    def relayout(self, config: Optional[LayoutConfig] = None, origin: Optional[Tuple[float, float]] = None):
        """Recompute character positions after a font, width or scroll change"""
        if config is not None:
            self.config = config
        if origin is not None:
            self.origin = origin

        usable = self.config.container_width - 2 * self.config.padding
        self._columns_per_line = max(1, int(usable // self.config.char_width))
        self.positions = {}
        self._line = 0
        self._column = 0
        self._layout_node(self.root)
        self.line_count = self._line + (1 if self._column else 0)
        logger.debug(f"Laid out {len(self.positions)} text nodes on {self.line_count} lines "
                     f"({self._columns_per_line} columns)")

    @property
    def content_height(self) -> float:
        return self.line_count * self.config.line_pixels + 2 * self.config.padding

    def _break_line(self):
        if self._column:
            self._line += 1
            self._column = 0

    def _layout_node(self, node: Node):
        if isinstance(node, TextNode):
            self._layout_text(node)
            return

        is_block = node.tag in BLOCK_ELEMENTS
        if is_block:
            self._break_line()
        if node.tag == "br":
            self._line += 1
            self._column = 0
        for child in node.children:
            self._layout_node(child)
        if is_block:
            self._break_line()

    def _layout_text(self, node: TextNode):
        cells: List[Tuple[int, int]] = []
        for match in TOKEN_PATTERN.finditer(node.data):
            token = match.group(0)
            # Wrap whole words; a word longer than the line is split
            if not token.isspace() and self._column and self._column + len(token) > self._columns_per_line:
                self._break_line()
            for _ in token:
                if self._column >= self._columns_per_line:
                    self._break_line()
                cells.append((self._line, self._column))
                self._column += 1
        self.positions[id(node)] = cells

    def rects_for(self, node: TextNode, start: int, end: int) -> List[BoundingRect]:
        """
        Rectangles covering characters [start, end) of a text node

        Raises:
            KeyError: the node is not part of the laid out tree
            IndexError: the range falls outside the node
        """
        cells = self.positions[id(node)]
        if start < 0 or end > len(cells) or start > end:
            raise IndexError(f"Range [{start}, {end}) outside text node of length {len(cells)}")

        lines: Dict[int, List[int]] = defaultdict(list)
        for line, column in cells[start:end]:
            lines[line].append(column)

        top0, left0 = self.origin
        pad = self.config.padding
        cw = self.config.char_width
        lh = self.config.line_pixels
        rects = []
        for line in sorted(lines):
            columns = lines[line]
            first, last = min(columns), max(columns)
            rects.append(BoundingRect(
                top=top0 + pad + line * lh,
                left=left0 + pad + first * cw,
                width=(last - first + 1) * cw,
                height=lh,
            ))
        return rects
