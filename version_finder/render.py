"""
Output rendering and formatting.

Short mode prints exactly one ``<name> <version-or-status>`` line;
verbose mode prints the method header followed by the evidence.
"""

import os
import sys

from .pipeline import STATUS_FOUND, STATUS_FOUND_BUT_UNPARSED, STATUS_UNDETERMINED, Detection


USE_COLOR = os.environ.get("VERSION_FINDER_COLOR", "1") == "1"

GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def colorize(text: str, color: str) -> str:
    """Apply color to text.

    Args:
        text: Text to colorize
        color: ANSI color code

    Returns:
        Colored text, or plain text if colors are disabled or stdout is not a terminal
    """
    if not USE_COLOR or not text or not sys.stdout.isatty():
        return text
    return f"{color}{text}{RESET}"


def format_short(detection: Detection) -> str:
    """Render the two-token line."""
    if detection.status == STATUS_FOUND and detection.version:
        return f"{detection.name} {detection.version}"
    return f"{detection.name} {detection.status}"


def format_report(detection: Detection) -> str:
    """Render the verbose report.

    Args:
        detection: Detection result

    Returns:
        Header and evidence, or a failure sentence
    """
    display_name = detection.target.requested_name if detection.target else detection.name

    if detection.outcome is not None:
        header = f"Version information for '{display_name}' (found via: {detection.outcome.label}):"
        return f"{colorize(header, GREEN)}\n{detection.outcome.evidence.rstrip()}"

    if detection.status == STATUS_UNDETERMINED:
        return colorize(f"Error: Could not determine version information for '{display_name}'.", RED)

    if detection.error is not None:
        lines = [colorize(f"Error: {detection.error.message}", RED)]
        if detection.error.remediation:
            lines.append(f"       {detection.error.remediation}")
        return "\n".join(lines)

    return colorize(f"Error: {detection.status} for '{display_name}'.", RED)


def exit_code(detection: Detection) -> int:
    """Map a detection to the process exit code."""
    if detection.status in {STATUS_FOUND, STATUS_FOUND_BUT_UNPARSED}:
        return EXIT_SUCCESS
    return EXIT_FAILURE
