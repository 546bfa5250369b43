"""Anchoring and layout configuration."""

from dataclasses import dataclass

OFFSET_POLICY_REANCHOR = "reanchor"
OFFSET_POLICY_STORED = "stored"
OFFSET_POLICIES = (OFFSET_POLICY_REANCHOR, OFFSET_POLICY_STORED)


@dataclass
class AnchoringConfig:
    """Configuration for anchor creation and resolution."""

    # Characters captured on each side of a selection
    context_radius: int = 30

    # Joins the text items of a PDF page into one stream
    page_separator: str = " "

    # "reanchor": re-derive offsets from where the context is found now
    # "stored": trust the stored offsets once the context core verifies
    offset_policy: str = OFFSET_POLICY_REANCHOR

    # Quiet period before a burst of resize/zoom events triggers a recalculation
    debounce_seconds: float = 0.25

    def __post_init__(self):
        if self.context_radius < 0:
            raise ValueError(f"context_radius must be >= 0, got {self.context_radius}")
        if len(self.page_separator) != 1:
            raise ValueError("page_separator must be a single character")
        if self.offset_policy not in OFFSET_POLICIES:
            raise ValueError(f"Unknown offset policy: {self.offset_policy}")


@dataclass
class LayoutConfig:
    """Reader settings that drive the flowing text layout."""

    font_size: float = 16.0        # px, 14-24 in the reader
    line_height: float = 1.6       # multiple of font size, 1.4-2.0 in the reader
    char_width_ratio: float = 0.6  # monospace advance as a fraction of font size
    container_width: float = 640.0
    padding: float = 0.0

    @property
    def char_width(self) -> float:
        return self.font_size * self.char_width_ratio

    @property
    def line_pixels(self) -> float:
        return self.font_size * self.line_height


# Global configuration instance
CONFIG = AnchoringConfig()
