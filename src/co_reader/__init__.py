"""
Co-Reader Anchoring

Anchor highlights, notes and vocabulary to passages of PDF and HTML
documents, and recover their on-screen position after every re-render.
"""

__version__ = "1.0.0"
__license__ = "GPL-3.0-or-later"

# Package metadata
__all__ = [
    "__version__",
    "__license__",
]
