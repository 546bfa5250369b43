"""
Anchor Resolver - Relocate a stored anchor in the current rendering

Resolution is the inverse of building an anchor and runs on every render,
resize, zoom or font change:

1. Re-locate the container (element path, or page number).
2. Take the container's current text in the same joining convention used
   when the anchor was built.
3. Verify: the context core (the originally selected text cut out of the
   stored context) must occur literally in the current text. If it does
   not, resolution fails. This is the only gate against stale content.
4. Settle the offsets (see ``locate_offsets``).
5. Collect rectangles for every text unit (DOM text node, PDF text item)
   whose half-open range overlaps the anchor's range.

Any failure yields None and the highlight is simply not drawn; a partial
or guessed rectangle set is never returned. Nothing here mutates the
anchor, the highlight or the document.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from co_reader.anchoring.anchors import (
    ANCHOR_TYPE_FLOWING,
    ANCHOR_TYPE_PAGINATED,
    Anchor,
    FlowingAnchor,
    PaginatedAnchor,
)
from co_reader.anchoring.context import context_core
from co_reader.anchoring.geometry import BoundingRect
from co_reader.config import CONFIG, OFFSET_POLICY_STORED, AnchoringConfig
from co_reader.rendering.dom import Element, resolve_element_path, text_node_spans
from co_reader.rendering.pdf_text_layer import PageTextLayer

logger = logging.getLogger(__name__)


@dataclass
class FlowingRenderState:
    """
    Current rendering of flowing content

    ``layout`` answers ``rects_for(text_node, start, end)`` for node-local
    character ranges (see ``MonospaceLayout``).
    """

    root: Element
    layout: Any


@dataclass
class PaginatedRenderState:
    """Current rendering of paginated content: text layers by 1-based page number"""

    pages: Mapping[int, PageTextLayer]


def overlapping_units(lengths: Sequence[int], start: int, end: int,
                      separator_length: int = 0) -> List[Tuple[int, int, int]]:
    """
    Text units overlapping the half-open range [start, end)

    Units are laid end to end in order, ``separator_length`` characters
    apart. A unit [s, e) overlaps when ``e > start and s < end``.

    Returns:
        (index, unit_start, unit_end) for each overlapping unit
    """
    hits = []
    offset = 0
    for index, length in enumerate(lengths):
        unit_start, unit_end = offset, offset + length
        if unit_end > start and unit_start < end:
            hits.append((index, unit_start, unit_end))
        offset = unit_end + separator_length
    return hits


def _occurrences(text: str, needle: str) -> List[int]:
    found = []
    index = text.find(needle)
    while index != -1:
        found.append(index)
        index = text.find(needle, index + 1)
    return found


def _nearest(positions: List[int], target: int) -> int:
    return min(positions, key=lambda p: (abs(p - target), p))


def locate_offsets(anchor: Anchor, current_text: str, radius: int,
                   policy: str = CONFIG.offset_policy) -> Optional[Tuple[int, int]]:
    """
    Verify an anchor against the current text and settle its offsets

    Verification fails unless the context core occurs in ``current_text``.

    With the ``stored`` policy the stored offsets are then used as they are.
    With the ``reanchor`` policy they are kept only while the text at those
    offsets still equals the core; otherwise the selection is moved to where
    the full context is found now, or else to the occurrence of the core
    closest to the stored start.

    Returns:
        (start, end) within ``current_text``, or None when verification fails
        or the offsets fall outside the text
    """
    core = context_core(anchor.context, anchor.start_offset, anchor.end_offset, radius)
    if not core or core not in current_text:
        return None

    start, end = anchor.start_offset, anchor.end_offset
    if policy == OFFSET_POLICY_STORED or len(core) != anchor.length:
        # Without a core of selection length there is nothing to re-derive from
        if end > len(current_text):
            return None
        return start, end

    if current_text[start:end] == core:
        return start, end

    left_padding = min(radius, start)
    context_hits = _occurrences(current_text, anchor.context)
    if context_hits:
        new_start = _nearest(context_hits, start - left_padding) + left_padding
    else:
        new_start = _nearest(_occurrences(current_text, core), start)
    logger.debug(f"Re-anchored offsets [{start}, {end}) -> [{new_start}, {new_start + len(core)})")
    return new_start, new_start + len(core)


def resolve_flowing_anchor(anchor: FlowingAnchor, state: FlowingRenderState,
                           config: AnchoringConfig = CONFIG) -> Optional[List[BoundingRect]]:
    """Rectangles for a flowing anchor, None when it cannot be resolved"""
    container = resolve_element_path(state.root, anchor.element_path)
    if container is None:
        logger.debug(f"Element path no longer resolves: {anchor.element_path}")
        return None

    spans = text_node_spans(container)
    current_text = "".join(node.data for node, _, _ in spans)
    offsets = locate_offsets(anchor, current_text, config.context_radius, config.offset_policy)
    if offsets is None:
        logger.debug(f"Context mismatch in {anchor.element_path}; suppressing highlight")
        return None
    start, end = offsets

    rects: List[BoundingRect] = []
    lengths = [node_end - node_start for _, node_start, node_end in spans]
    for index, unit_start, unit_end in overlapping_units(lengths, start, end):
        node = spans[index][0]
        local_start = max(start, unit_start) - unit_start
        local_end = min(end, unit_end) - unit_start
        rects.extend(state.layout.rects_for(node, local_start, local_end))
    return rects or None


def resolve_paginated_anchor(anchor: PaginatedAnchor, state: PaginatedRenderState,
                             config: AnchoringConfig = CONFIG) -> Optional[List[BoundingRect]]:
    """Rectangles for a paginated anchor, None when it cannot be resolved"""
    page = state.pages.get(anchor.page_number)
    if page is None:
        logger.debug(f"Page {anchor.page_number} is not rendered")
        return None

    offsets = locate_offsets(anchor, page.text, config.context_radius, config.offset_policy)
    if offsets is None:
        logger.debug(f"Context mismatch on page {anchor.page_number}; suppressing highlight")
        return None
    start, end = offsets

    lengths = [len(item.text) for item in page.items]
    rects = [
        page.item_rect(index)
        for index, _, _ in overlapping_units(lengths, start, end, separator_length=len(page.separator))
    ]
    return rects or None


RESOLVERS: Dict[str, Tuple[type, Callable[..., Optional[List[BoundingRect]]]]] = {
    ANCHOR_TYPE_FLOWING: (FlowingRenderState, resolve_flowing_anchor),
    ANCHOR_TYPE_PAGINATED: (PaginatedRenderState, resolve_paginated_anchor),
}


def resolve_anchor(anchor: Anchor, state: Any, config: AnchoringConfig = CONFIG) -> Optional[List[BoundingRect]]:
    """
    Resolve any anchor against the current render state

    Args:
        anchor: Stored anchor
        state: FlowingRenderState or PaginatedRenderState matching the anchor
        config: Context radius and offset policy

    Returns:
        At least one rectangle in viewport space, or None when the highlight
        must be suppressed

    Raises:
        ValueError: the anchor type has no resolver
    """
    if anchor.type not in RESOLVERS:
        raise ValueError(f"Unknown anchor type: {anchor.type!r}")
    state_type, resolver = RESOLVERS[anchor.type]
    if not isinstance(state, state_type):
        logger.debug(f"{anchor.type} anchor cannot resolve against {type(state).__name__}")
        return None

    try:
        return resolver(anchor, state, config)
    except Exception as e:
        logger.debug(f"Resolution of {anchor.type} anchor failed: {e}")
        return None
