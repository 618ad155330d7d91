"""
Common utilities shared across version_finder modules.
"""

from __future__ import annotations

import getpass
import os
import platform

from .logging_config import get_logger


def get_os_type() -> str:
    """
    Get the platform family used to pick OS-specific helpers.

    Returns:
        One of 'linux', 'macos', 'freebsd' or 'unknown'
    """
    system = platform.system()
    if system == "Linux":
        return "linux"
    if system == "Darwin":
        return "macos"
    if system == "FreeBSD":
        return "freebsd"
    return "unknown"


def get_invoking_user() -> str:
    """
    Get the name of the user running this process.

    Returns:
        User name, or empty string if it cannot be determined
    """
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def vlog(msg: str, verbose: bool = False) -> None:
    """
    Log verbose message using structured logging.

    Args:
        msg: Message to log
        verbose: Whether verbose mode is enabled
    """
    if verbose or os.environ.get("VERSION_FINDER_DEBUG", "0") == "1":
        get_logger().debug(msg)
