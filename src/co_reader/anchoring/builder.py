"""
Anchor Builder - Turn a confirmed selection into a storable anchor

Flowing selections are addressed by the structural path of their nearest
common container plus offsets into that container's concatenated text
(not the node-local range offsets, which change whenever the markup is
re-rendered). Paginated selections are addressed by page number plus the
first occurrence of the selected text in the page text stream.

A failed build returns None and the caller must not create a highlight.
"""

import logging
from typing import Optional

from co_reader.anchoring.anchors import (
    ANCHOR_TYPE_FLOWING,
    ANCHOR_TYPE_PAGINATED,
    Anchor,
    FlowingAnchor,
    PaginatedAnchor,
)
from co_reader.anchoring.context import DEFAULT_CONTEXT_RADIUS, extract_context, is_valid_selection
from co_reader.exceptions import AnchorBuildError
from co_reader.rendering.dom import DomRange, TextNode, element_path, text_content

logger = logging.getLogger(__name__)


def _flowing_anchor(selection: DomRange, radius: int) -> FlowingAnchor:
    if selection is None or selection.collapsed:
        raise AnchorBuildError("selection is empty")
    if not isinstance(selection.start_node, TextNode) or not isinstance(selection.end_node, TextNode):
        raise AnchorBuildError("selection boundaries must sit in text nodes")
    for node, offset in ((selection.start_node, selection.start_offset), (selection.end_node, selection.end_offset)):
        if not 0 <= offset <= len(node):
            raise AnchorBuildError(f"boundary offset {offset} outside text node of length {len(node)}")

    container = selection.common_ancestor()
    if container is None:
        raise AnchorBuildError("selection spans unrelated trees")
    if container.is_root:
        raise AnchorBuildError("selection spans top-level containers")

    offsets = selection.offsets_in(container)
    if offsets is None:
        raise AnchorBuildError("selection boundaries not found in container")
    start, end = offsets
    if start >= end:
        raise AnchorBuildError(f"selection collapses to [{start}, {end})")

    content = text_content(container)
    selected = content[start:end]
    if not is_valid_selection(selected):
        raise AnchorBuildError("selection holds only whitespace")

    path = element_path(container)
    if not path:
        raise AnchorBuildError("container has no stable path")

    return FlowingAnchor(
        element_path=path,
        start_offset=start,
        end_offset=end,
        context=extract_context(selected, content, radius=radius, start=start),
    )


def build_flowing_anchor(selection: DomRange, radius: int = DEFAULT_CONTEXT_RADIUS) -> Optional[FlowingAnchor]:
    """
    Build an anchor for a selection in flowing content

    Args:
        selection: Live range with node-local boundary offsets
        radius: Context characters captured on each side

    Returns:
        FlowingAnchor, or None if the selection cannot be anchored
    """
    try:
        return _flowing_anchor(selection, radius)
    except AnchorBuildError as e:
        logger.warning(f"Cannot anchor flowing selection: {e}")
        return None


def build_paginated_anchor(page_number: int, selected_text: str, page_text: str,
                           radius: int = DEFAULT_CONTEXT_RADIUS) -> Optional[PaginatedAnchor]:
    """
    Build an anchor for a selection on a PDF page

    The selection is located by its first occurrence in the page text
    stream; repeated text on one page always anchors to the first copy.

    Args:
        page_number: 1-based page the selection was made on
        selected_text: Text of the selection
        page_text: Full text stream of that page
        radius: Context characters captured on each side

    Returns:
        PaginatedAnchor, or None if the selection cannot be anchored
    """
    if not is_valid_selection(selected_text):
        logger.warning(f"Cannot anchor selection on page {page_number}: selection is empty")
        return None
    if page_number < 1:
        logger.warning(f"Cannot anchor selection: invalid page number {page_number}")
        return None

    start = page_text.find(selected_text)
    if start == -1:
        logger.warning(f"Cannot anchor selection: text not found on page {page_number}")
        return None
    if page_text.find(selected_text, start + 1) != -1:
        logger.debug(f"Selection occurs more than once on page {page_number}; using offset {start}")

    end = start + len(selected_text)
    return PaginatedAnchor(
        page_number=page_number,
        start_offset=start,
        end_offset=end,
        context=extract_context(selected_text, page_text, radius=radius, start=start),
    )


def build_anchor(source_kind: str, radius: int = DEFAULT_CONTEXT_RADIUS, *,
                 selection: Optional[DomRange] = None,
                 page_number: Optional[int] = None,
                 selected_text: Optional[str] = None,
                 page_text: Optional[str] = None) -> Optional[Anchor]:
    """Build an anchor for a document of the given source kind"""
    if source_kind == ANCHOR_TYPE_FLOWING:
        return build_flowing_anchor(selection, radius=radius)
    if source_kind == ANCHOR_TYPE_PAGINATED:
        if page_number is None or page_text is None:
            logger.warning("Paginated anchors need a page number and the page text")
            return None
        return build_paginated_anchor(page_number, selected_text or "", page_text, radius=radius)
    raise ValueError(f"Unknown source kind: {source_kind!r}")
