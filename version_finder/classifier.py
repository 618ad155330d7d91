"""
Version-likelihood classification of free-form program output.

A layered cascade of pattern rules, most specific first. The first rule
that matches decides; text that matches none is rejected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .logging_config import get_logger
from .sandbox import STDERR_MARKER


# Upper bound of distinct dotted numbers the unique-number rule tolerates
MAX_UNIQUE_VERSIONS = 1

RULE_PROGRAM_VERSION = "program-version"
RULE_VERSION_KEYWORD = "version-keyword"
RULE_TOOLCHAIN = "toolchain"
RULE_UNIQUE_NUMBER = "unique-number"

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")

VERSION_KEYWORD_RE = re.compile(
    r"(?:^|\s)version(?:[ \t]*:[ \t]*|[ \t]+)\d",
    re.IGNORECASE | re.MULTILINE,
)

TOOLCHAIN_RE = re.compile(r"(?:compiled|linked).*?\d+\.\d+\.\d+", re.IGNORECASE)

DOTTED_NUMBER_RE = re.compile(r"(?<![\w.])(?:[A-Za-z]+)?\d+\.\d+(?:\.\d+)?(?:[-.][A-Za-z0-9]+)*")

# "python3" is also reported as "Python", "gcc-12" as "gcc"
NAME_SUFFIX_RE = re.compile(r"[-_.]?\d+(?:\.\d+)*$")


@dataclass(frozen=True)
class Verdict:
    """
    Classification result.

    Attributes:
        matched: Whether the text looks like it contains a version
        rule: Identifier of the rule that matched
    """
    matched: bool
    rule: str | None = None

    def __bool__(self) -> bool:
        return self.matched


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences."""
    return ANSI_ESCAPE_RE.sub("", text)


def strip_stderr(text: str) -> str:
    """Drop the stderr marker line and everything after it."""
    lines = text.splitlines()
    for index, line in enumerate(lines):
        if line.strip() == STDERR_MARKER:
            return "\n".join(lines[:index])
    return text


def program_names(base_name: str) -> tuple[str, ...]:
    """
    Get the names a program may use for itself in its output.

    Args:
        base_name: Base name of the executable

    Returns:
        The base name, plus the name without a trailing version suffix
    """
    names = [base_name]
    short = NAME_SUFFIX_RE.sub("", base_name)
    if short and short != base_name:
        names.append(short)
    return tuple(names)


def _names_pattern(base_name: str) -> str:
    return "|".join(re.escape(name) for name in program_names(base_name))


def _program_version_re(base_name: str) -> re.Pattern[str]:
    return re.compile(
        rf"(?:^|\s)(?:{_names_pattern(base_name)})[ \t]+"
        r"(?:version[ \t]+\d+(?:\.\d+)*"
        r"|v\d+(?:\.\d+)*"
        r"|(?-i:[a-z]+)\d+\.\d+(?:\.\d+)*"
        r"|\d+\.\d+)",
        re.IGNORECASE | re.MULTILINE,
    )


def _in_plausible_context(candidate: str, lines: list[str], base_name: str) -> bool:
    name_re = re.compile(rf"(?<![\w.-])(?:{_names_pattern(base_name)})(?![\w-])", re.IGNORECASE)
    for line in lines:
        if candidate not in line:
            continue
        if line.strip() == candidate:
            return True
        if name_re.search(line):
            return True
        if "version" in line.lower():
            return True
    return False


def looks_like_version(
    text: str,
    base_name: str,
    *,
    truncate_stderr: bool = False,
    max_unique: int | None = None,
) -> Verdict:
    """
    Decide whether text plausibly contains version information.

    Args:
        text: Captured program output
        base_name: Base name of the program
        truncate_stderr: Ignore everything after the stderr marker
        max_unique: Ambiguity limit for the unique-number rule
            (MAX_UNIQUE_VERSIONS when None)

    Returns:
        Verdict naming the rule that matched
    """
    logger = get_logger()
    text = strip_ansi(text)
    if truncate_stderr:
        text = strip_stderr(text)
    if not text.strip():
        return Verdict(False)

    if _program_version_re(base_name).search(text):
        logger.debug("Matched: program name + version")
        return Verdict(True, RULE_PROGRAM_VERSION)

    if VERSION_KEYWORD_RE.search(text):
        logger.debug("Matched: 'version' keyword + number")
        return Verdict(True, RULE_VERSION_KEYWORD)

    if TOOLCHAIN_RE.search(text):
        logger.debug("Matched: compiled/linked + N.N.N")
        return Verdict(True, RULE_TOOLCHAIN)

    limit = max_unique or MAX_UNIQUE_VERSIONS
    unique = sorted(set(DOTTED_NUMBER_RE.findall(text)))
    logger.debug(f"Found {len(unique)} unique version-like patterns")
    if 1 <= len(unique) <= limit:
        lines = text.splitlines()
        for candidate in unique:
            if _in_plausible_context(candidate, lines, base_name):
                logger.debug(f"Single version pattern '{candidate}' looks plausible")
                return Verdict(True, RULE_UNIQUE_NUMBER)

    logger.debug("No version information pattern found in output")
    return Verdict(False)
