"""
File Utilities - Reading and writing the text files the reader works with
Collection files are written as UTF-8; HTML sources and files written by
other tools may use any encoding, which chardet guesses from the bytes.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional
import logging
import chardet

logger = logging.getLogger(__name__)

DETECTION_SAMPLE_SIZE = 10000
MIN_DETECTION_CONFIDENCE = 0.5

# latin-1 maps every byte, so decoding always ends there
FALLBACK_ENCODINGS = ['cp1252', 'latin-1']


def detect_encoding(raw: bytes) -> Optional[str]:
    """
    Guess the encoding of a byte string

    Returns:
        Encoding name, or None when chardet is not confident enough
    """
    result = chardet.detect(raw[:DETECTION_SAMPLE_SIZE])
    encoding = result.get('encoding')
    confidence = result.get('confidence') or 0
    logger.debug(f"Detected encoding {encoding} (confidence: {confidence:.2f})")
    if not encoding or confidence < MIN_DETECTION_CONFIDENCE:
        return None
    return encoding


def decode_text(raw: bytes, preferred: str = 'utf-8') -> str:
    """
    Decode bytes, trying the preferred encoding, then chardet's guess,
    then the fallback encodings
    """
    candidates = [preferred]
    try:
        return raw.decode(preferred)
    except (UnicodeDecodeError, LookupError):
        pass

    detected = detect_encoding(raw)
    for encoding in [detected] + FALLBACK_ENCODINGS:
        if not encoding or encoding in candidates:
            continue
        candidates.append(encoding)
        try:
            text = raw.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
        logger.warning(f"Decoded text as {encoding} after {preferred} failed")
        return text
    # Unreachable while latin-1 is a fallback
    return raw.decode(preferred, errors='replace')


def read_text_file(file_path: str, encoding: Optional[str] = None) -> str:
    """
    Read a text file of unknown encoding

    Args:
        file_path: Path to the file
        encoding: Encoding to require instead of guessing

    Returns:
        File contents as string

    Raises:
        OSError: the file cannot be read
        UnicodeDecodeError: the file does not decode with ``encoding``
    """
    raw = Path(file_path).read_bytes()
    if encoding:
        return raw.decode(encoding)
    return decode_text(raw)


def write_text_atomic(file_path: str, content: str, encoding: str = 'utf-8'):
    """
    Replace a file's content in one step

    The content goes to a temporary file in the same directory which is then
    renamed over the target, so readers never see a half-written file. Missing
    parent directories are created.

    Raises:
        OSError: the file cannot be written
    """
    target = Path(file_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
    try:
        with os.fdopen(fd, 'w', encoding=encoding) as f:
            f.write(content)
        os.replace(temp_path, str(target))
    except OSError:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise
