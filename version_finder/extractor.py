"""
Version token extraction.

Pulls one normalized version token out of text the classifier has
already accepted.
"""

from __future__ import annotations

import re

from .classifier import strip_ansi


# goX.Y.Z and friends: a lowercase run glued to the number
RUNTIME_PREFIXED_RE = re.compile(r"(?<![A-Za-z0-9])[a-z]{2,}\d+\.\d+(?:\.\d+)?(?:[-.][A-Za-z0-9_]+)*")
TRIPLE_RE = re.compile(r"(?<![\d.])\d+\.\d+\.\d+(?:[-.][A-Za-z0-9_]+)*")
PAIR_RE = re.compile(r"(?<![\d.])\d+\.\d+(?:[-.][A-Za-z0-9_]+)*")
KEYWORD_NUMBER_RE = re.compile(
    r"(?:^|\s)(?:v|version)[ \t]*:?[ \t]*(\d+(?:\.\d+)*(?:[-.][A-Za-z0-9_]+)*)",
    re.IGNORECASE | re.MULTILINE,
)
EPOCH_RE = re.compile(r"^\d+:")

VERSION_PATTERNS = (RUNTIME_PREFIXED_RE, TRIPLE_RE, PAIR_RE)


def extract_version(text: str) -> str | None:
    """Extract a version number from text.

    Args:
        text: Output already judged to contain a version

    Returns:
        Version token (e.g., "go1.21.3", "2.34.1", "9") or None
    """
    if not text:
        return None
    text = strip_ansi(text)

    for pattern in VERSION_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(0)

    # Last resort: the number after a bare 'v' or 'version'
    m = KEYWORD_NUMBER_RE.search(text)
    return m.group(1) if m else None


def strip_epoch(version: str) -> str:
    """Remove a package epoch prefix ("2:1.4.0" -> "1.4.0")."""
    return EPOCH_RE.sub("", version.strip())
