"""
Context Extractor - Fixed-radius text windows around a selection
The window captured at creation time is the fingerprint that resolution
checks before it trusts any stored offset.
"""

import unicodedata
from typing import Optional

DEFAULT_CONTEXT_RADIUS = 30
VOCABULARY_CONTEXT_RADIUS = 50
VOCABULARY_MAX_WORDS = 3


def extract_context(selected_text: str, content: str, radius: int = DEFAULT_CONTEXT_RADIUS,
                    start: Optional[int] = None) -> str:
    """
    Slice ``radius`` characters on each side of the selection out of its content

    Args:
        selected_text: The literal selected substring
        content: Text enclosing the selection
        radius: Characters to keep on each side, clipped to content bounds
        start: Known position of the selection in ``content``; used when the
               selection really sits there, otherwise the first occurrence wins

    Returns:
        The context window, or ``selected_text`` unpadded when it cannot be
        located in ``content``
    """
    if start is not None and 0 <= start and content[start:start + len(selected_text)] == selected_text:
        index = start
    else:
        index = content.find(selected_text)

    if index == -1:
        return selected_text

    begin = max(0, index - radius)
    end = min(len(content), index + len(selected_text) + radius)
    return content[begin:end]


def context_core(context: str, start_offset: int, end_offset: int, radius: int = DEFAULT_CONTEXT_RADIUS) -> str:
    """
    Strip the radius padding off a captured context

    The left padding is ``min(radius, start_offset)`` because the window was
    clipped at the start of the content; the core is as long as the selection.
    A context that is too short to hold both (the unpadded fallback of
    ``extract_context``) is used whole.
    """
    length = end_offset - start_offset
    left = min(radius, max(start_offset, 0))
    core = context[left:left + length]
    if length > 0 and len(core) == length:
        return core
    return context


def is_valid_selection(text: Optional[str]) -> bool:
    """A selection can be highlighted when it holds some non-whitespace text"""
    return bool(text and text.strip())


def is_single_word_selection(text: str) -> bool:
    """Single word: letters, combining marks, apostrophes and hyphens only"""
    trimmed = text.strip()
    if not trimmed:
        return False
    for ch in trimmed:
        if ch in "'-":
            continue
        if unicodedata.category(ch)[0] not in ("L", "M"):
            return False
    return True


def is_vocabulary_selection(text: str, max_words: int = VOCABULARY_MAX_WORDS) -> bool:
    """Vocabulary accepts a single word or a short phrase"""
    words = text.split()
    return 0 < len(words) <= max_words


def extract_vocabulary_context(selected_text: str, content: str,
                               radius: int = VOCABULARY_CONTEXT_RADIUS) -> str:
    """Wider window stored as the context sentence of a vocabulary entry"""
    return extract_context(selected_text.strip(), content, radius=radius).strip()
