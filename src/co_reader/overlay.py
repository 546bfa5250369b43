"""
Highlight Overlay - Recalculate highlight shapes after render events

Every initial render, debounced resize or scroll, font or line-height change,
zoom change and page navigation triggers one pass: each highlight of the
document is resolved on its own, normalized into the container's content
space and handed to the painter. Highlights that fail to resolve are
suppressed silently; they stay listed in the library views.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from co_reader.anchoring.geometry import BoundingRect, ContainerMetrics, normalize_rects
from co_reader.anchoring.resolver import resolve_anchor
from co_reader.config import CONFIG, AnchoringConfig
from co_reader.storage.annotation_store import AnnotationStore
from co_reader.storage.models import Highlight

logger = logging.getLogger(__name__)


@dataclass
class OverlayResult:
    """Outcome of one recalculation pass"""

    shapes: Dict[str, List[BoundingRect]] = field(default_factory=dict)
    suppressed: List[str] = field(default_factory=list)


def resolve_highlights(highlights: Iterable[Highlight], state: Any, container: ContainerMetrics,
                       config: AnchoringConfig = CONFIG) -> OverlayResult:
    """
    Resolve highlights independently against one render state

    Args:
        highlights: Highlights to place
        state: FlowingRenderState or PaginatedRenderState
        container: Current box and scroll offsets of the reader pane
        config: Anchoring configuration

    Returns:
        Container-space rectangles per highlight id, plus the ids suppressed
    """
    result = OverlayResult()
    for highlight in highlights:
        rects = resolve_anchor(highlight.anchor, state, config)
        if rects is None:
            result.suppressed.append(highlight.id)
            continue
        result.shapes[highlight.id] = normalize_rects(rects, container)

    if result.suppressed:
        logger.debug(f"Suppressed {len(result.suppressed)} of "
                     f"{len(result.suppressed) + len(result.shapes)} highlights")
    return result


class HighlightOverlay:
    """Keeps the latest shapes of a document's highlights"""

    def __init__(self, store: AnnotationStore, document_id: str, config: AnchoringConfig = CONFIG):
        self.store = store
        self.document_id = document_id
        self.config = config
        self.result = OverlayResult()

    def recalculate(self, state: Any, container: ContainerMetrics) -> OverlayResult:
        """Run one pass; its result replaces whatever the previous pass produced"""
        highlights = self.store.highlights_by_document(self.document_id)
        self.result = resolve_highlights(highlights, state, container, self.config)
        return self.result

    def shapes_for(self, highlight_id: str) -> List[BoundingRect]:
        return self.result.shapes.get(highlight_id, [])


class Debouncer:
    """
    Coalesce bursts of render events into one recalculation

    The event loop calls ``trigger`` for every event and polls ``ready``;
    ``ready`` turns true once no event has arrived for ``wait_seconds``.
    """

    def __init__(self, wait_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.wait_seconds = CONFIG.debounce_seconds if wait_seconds is None else wait_seconds
        self.clock = clock
        self.last_event: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self.last_event is not None

    def trigger(self):
        self.last_event = self.clock()

    def ready(self) -> bool:
        """True once per burst, after the quiet period has elapsed"""
        if self.last_event is None:
            return False
        if self.clock() - self.last_event < self.wait_seconds:
            return False
        self.last_event = None
        return True

    def run_if_ready(self, callback: Callable[[], Any]) -> bool:
        if not self.ready():
            return False
        callback()
        return True
