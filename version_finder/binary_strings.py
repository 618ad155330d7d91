"""
Printable string extraction from binaries, in the manner of strings(1).
"""

from __future__ import annotations

import re

from .extractor import TRIPLE_RE, extract_version


CHUNK_SIZE = 64 * 1024

VERSION_LINE_RE = re.compile(r"version.*\d+\.\d+", re.IGNORECASE)
PRINTABLE_BYTES = bytes(range(0x20, 0x7f)) + b"\t"


def extract_strings(path: str, min_length: int = 4) -> list[str]:
    """Extract printable ASCII runs from a file.

    Args:
        path: File to scan
        min_length: Minimum run length

    Returns:
        Strings in file order

    Raises:
        OSError: If the file cannot be read
    """
    run_re = re.compile(rb"[\x20-\x7e\t]{%d,}" % min_length)
    found: list[str] = []
    # Run touching the end of the previous chunk, continued by the next one
    pending = bytearray()

    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            head = chunk.rstrip(PRINTABLE_BYTES)
            if not head:
                pending += chunk
                continue
            data = bytes(pending) + head
            found.extend(m.group(0).decode("ascii") for m in run_re.finditer(data))
            pending = bytearray(chunk[len(head):])

    found.extend(m.group(0).decode("ascii") for m in run_re.finditer(pending))
    return found


def find_version_in_strings(strings: list[str]) -> tuple[str, str] | None:
    """Find a version among extracted strings.

    Args:
        strings: Output of extract_strings

    Returns:
        Tuple of (version, source line) or None
    """
    unique = sorted({m.group(0) for s in strings for m in TRIPLE_RE.finditer(s)})
    if len(unique) == 1:
        version = unique[0]
        source = next(s for s in strings if version in s)
        return (version, source)

    for s in strings:
        if VERSION_LINE_RE.search(s):
            version = extract_version(s)
            if version:
                return (version, s.strip())
    return None
