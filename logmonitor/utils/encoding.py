# logmonitor/utils/encoding.py
"""
Byte -> text normalization for uploaded log files.

Uploaded logs come from Windows and legacy Unix boxes as often as from modern
systems, so the byte encoding is detected statistically (chardet) and mapped onto
a short list of Cyrillic code pages. Anything else is decoded as UTF-8.

Undecodable bytes are replaced, never raised: a single bad byte must not reject a
whole upload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import chardet

logger = logging.getLogger(__name__)

DEFAULT_CODEC = "utf-8-sig"  # UTF-8, dropping a leading BOM if present

# (substring of detected label, Python codec). Checked in order.
CODEC_PRECEDENCE: Tuple[Tuple[str, str], ...] = (
    ("windows-1251", "cp1251"),
    ("cp1251", "cp1251"),
    ("cp866", "cp866"),
    ("ibm866", "cp866"),
    ("koi8", "koi8_r"),
)


class DecodeError(Exception):
    """Raised when a buffer cannot be turned into text at all."""


@dataclass(frozen=True)
class DecodedText:
    text: str
    detected: Optional[str]
    confidence: float
    codec: str


def resolve_codec(label: Optional[str]) -> str:
    """Map a detector label onto the codec used for decoding."""
    lowered = (label or "").lower()
    for needle, codec in CODEC_PRECEDENCE:
        if needle in lowered:
            return codec
    return DEFAULT_CODEC


def detect_encoding(content: bytes) -> Tuple[Optional[str], float]:
    result = chardet.detect(content)
    return result.get("encoding"), float(result.get("confidence") or 0.0)


def decode_bytes(content: bytes) -> DecodedText:
    """
    Detect the encoding of `content` and decode it.

    Raises:
        DecodeError: if `content` is not a byte buffer or the detector/codec fails.
    """
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Expected bytes, got {type(content).__name__}")

    content = bytes(content)
    try:
        label, confidence = detect_encoding(content)
        codec = resolve_codec(label)
        text = content.decode(codec, errors="replace")
    except (LookupError, TypeError, ValueError) as e:
        raise DecodeError(f"Could not decode upload: {e}") from e

    logger.info("Detected encoding: %s (confidence: %.2f) -> %s", label, confidence, codec)
    return DecodedText(text=text, detected=label, confidence=confidence, codec=codec)
