"""
Geometry - Rectangles and coordinate space conversion
Resolved highlight rectangles come out in viewport space; the overlay draws
them inside a scrollable container, so they are shifted into the
container's content space before painting.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List


@dataclass(frozen=True)
class BoundingRect:
    """Axis-aligned rectangle, origin top-left, y growing downwards"""

    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_bbox(cls, x0: float, y0: float, x1: float, y1: float) -> "BoundingRect":
        """Build from a (x0, top, x1, bottom) box as PyMuPDF reports it"""
        return cls(top=float(y0), left=float(x0), width=float(x1) - float(x0), height=float(y1) - float(y0))

    def scaled(self, factor: float) -> "BoundingRect":
        return BoundingRect(self.top * factor, self.left * factor, self.width * factor, self.height * factor)

    def translated(self, dx: float, dy: float) -> "BoundingRect":
        return BoundingRect(self.top + dy, self.left + dx, self.width, self.height)

    def overlaps(self, other: "BoundingRect", tolerance: float = 0.0) -> bool:
        """True when the two rectangles share area (edges within tolerance count)"""
        return not (
            self.right + tolerance <= other.left
            or other.right + tolerance <= self.left
            or self.bottom + tolerance <= other.top
            or other.bottom + tolerance <= self.top
        )


@dataclass(frozen=True)
class ContainerMetrics:
    """Bounding box and scroll position of the scrollable reader pane"""

    top: float = 0.0
    left: float = 0.0
    scroll_top: float = 0.0
    scroll_left: float = 0.0


def normalize_rects(rects: Iterable[BoundingRect], container: ContainerMetrics) -> List[BoundingRect]:
    """
    Map viewport rectangles into the container's content coordinates

    Args:
        rects: Rectangles in viewport space
        container: Current container box and scroll offsets

    Returns:
        Rectangles relative to the container's content origin; width and
        height are unchanged
    """
    return [
        BoundingRect(
            top=rect.top - container.top + container.scroll_top,
            left=rect.left - container.left + container.scroll_left,
            width=rect.width,
            height=rect.height,
        )
        for rect in rects
    ]


def union_rects(rects: List[BoundingRect]) -> BoundingRect:
    """Smallest rectangle covering all of ``rects``"""
    if not rects:
        raise ValueError("union_rects needs at least one rectangle")
    left = min(r.left for r in rects)
    top = min(r.top for r in rects)
    right = max(r.right for r in rects)
    bottom = max(r.bottom for r in rects)
    return BoundingRect(top=top, left=left, width=right - left, height=bottom - top)
