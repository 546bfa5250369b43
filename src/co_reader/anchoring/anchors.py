"""
Anchors - Serializable descriptions of a highlighted text range

Two closed variants exist:

* ``FlowingAnchor`` addresses reflowable HTML content by element path plus
  offsets into the container's concatenated text nodes.
* ``PaginatedAnchor`` addresses a PDF page by page number plus offsets into
  the page text stream (text items joined by a single separator).

Both carry ``context``, the literal text around the selection captured at
creation time, which resolution uses to verify a match before trusting the
offsets.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Union

ANCHOR_TYPE_FLOWING = "flowing"
ANCHOR_TYPE_PAGINATED = "paginated"

# Tags written by earlier releases of the reader
LEGACY_TYPE_ALIASES = {
    "html": ANCHOR_TYPE_FLOWING,
    "pdf": ANCHOR_TYPE_PAGINATED,
}


def _check_offsets(start_offset: int, end_offset: int):
    if start_offset < 0:
        raise ValueError(f"startOffset must be >= 0, got {start_offset}")
    if start_offset >= end_offset:
        raise ValueError(f"startOffset ({start_offset}) must be < endOffset ({end_offset})")


@dataclass(frozen=True)
class FlowingAnchor:
    """Anchor into flowing (HTML) content"""

    element_path: str
    start_offset: int
    end_offset: int
    context: str

    type = ANCHOR_TYPE_FLOWING

    def __post_init__(self):
        if not self.element_path:
            raise ValueError("elementPath must not be empty")
        _check_offsets(self.start_offset, self.end_offset)

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "elementPath": self.element_path,
            "startOffset": self.start_offset,
            "endOffset": self.end_offset,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowingAnchor":
        path = data.get("elementPath")
        if path is None:
            # Old records stored an absolute XPath
            path = str(data.get("xpath", "")).lstrip("/")
        return cls(
            element_path=path,
            start_offset=int(data["startOffset"]),
            end_offset=int(data["endOffset"]),
            context=str(data.get("context", "")),
        )


@dataclass(frozen=True)
class PaginatedAnchor:
    """Anchor into a page of paginated (PDF) content"""

    page_number: int
    start_offset: int
    end_offset: int
    context: str

    type = ANCHOR_TYPE_PAGINATED

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"pageNumber is 1-based, got {self.page_number}")
        _check_offsets(self.start_offset, self.end_offset)

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "pageNumber": self.page_number,
            "startOffset": self.start_offset,
            "endOffset": self.end_offset,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaginatedAnchor":
        return cls(
            page_number=int(data["pageNumber"]),
            start_offset=int(data["startOffset"]),
            end_offset=int(data["endOffset"]),
            context=str(data.get("context", "")),
        )


Anchor = Union[FlowingAnchor, PaginatedAnchor]

ANCHOR_TYPES: Dict[str, Callable[[Dict[str, Any]], Anchor]] = {
    ANCHOR_TYPE_FLOWING: FlowingAnchor.from_dict,
    ANCHOR_TYPE_PAGINATED: PaginatedAnchor.from_dict,
}


def anchor_to_dict(anchor: Anchor) -> Dict[str, Any]:
    """Wire representation of an anchor (camelCase keys, ``type`` tag)"""
    if anchor.type not in ANCHOR_TYPES:
        raise ValueError(f"Unknown anchor type: {anchor.type!r}")
    return anchor.to_dict()


def anchor_from_dict(data: Dict[str, Any]) -> Anchor:
    """
    Decode an anchor from its wire representation

    Args:
        data: Dictionary with a ``type`` tag of ``flowing`` or ``paginated``
              (``html``/``pdf`` from older records are accepted too)

    Returns:
        The matching anchor variant

    Raises:
        ValueError: not an object, unknown tag, missing or mistyped fields,
            invalid offsets
    """
    if not isinstance(data, dict):
        raise ValueError(f"Anchor record must be an object, got {type(data).__name__}")
    tag = data.get("type")
    decoder = ANCHOR_TYPES.get(LEGACY_TYPE_ALIASES.get(tag, tag)) if isinstance(tag, str) else None
    if decoder is None:
        raise ValueError(f"Unknown anchor type: {tag!r}")
    try:
        return decoder(data)
    except KeyError as e:
        raise ValueError(f"Anchor record is missing field {e}") from e
    except TypeError as e:
        raise ValueError(f"Anchor record has a field of the wrong type: {e}") from e


def anchor_to_json(anchor: Anchor) -> str:
    return json.dumps(anchor_to_dict(anchor), ensure_ascii=False)


def anchor_from_json(text: str) -> Anchor:
    return anchor_from_dict(json.loads(text))
