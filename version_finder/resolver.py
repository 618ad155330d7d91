"""
Program path resolution and permission checks.

Runs once before any strategy: locates the executable the user asked
for and makes sure both the invoking user and the restricted user may
run it.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .errors import NoPermissionError, NoPermissionRestrictedUserError, NotFoundError
from .logging_config import get_logger

if TYPE_CHECKING:
    from .sandbox import SandboxRunner


@dataclass(frozen=True)
class Target:
    """
    The program whose version is being determined.

    Attributes:
        requested_name: Name as given (suffixed when the suffix fallback hit)
        resolved_path: Absolute path of the executable
        base_name: Final path component used for matching and output
        readable: Whether the invoking user can read the file
    """
    requested_name: str
    resolved_path: str
    base_name: str
    readable: bool = True


def resolve_program(name: str, suffix: str = "3") -> Target:
    """
    Locate the executable for a program name.

    Args:
        name: Bare command name or path
        suffix: Appended once when a bare name is not on PATH

    Returns:
        Target (permissions not yet checked)

    Raises:
        NotFoundError: If nothing matches
    """
    logger = get_logger()

    if os.sep in name or (os.altsep and os.altsep in name):
        if not os.path.isfile(name):
            raise NotFoundError(f"Program '{name}' not found in PATH or as specified.")
        # No realpath: multi-call binaries dispatch on the invoked name
        path = os.path.abspath(name)
        return Target(requested_name=name, resolved_path=path, base_name=os.path.basename(name))

    path = shutil.which(name)
    if path is None and suffix:
        suffixed = f"{name}{suffix}"
        logger.debug(f"Program '{name}' not found, trying '{suffixed}'")
        path = shutil.which(suffixed)
        if path is not None:
            name = suffixed

    if path is None:
        # Present but not executable: let check_permissions report it
        path = shutil.which(name, mode=os.F_OK)

    if path is None:
        raise NotFoundError(f"Program '{name}' not found in PATH or as specified.")

    path = os.path.abspath(path)
    logger.debug(f"Resolved program path: {path}")
    return Target(requested_name=name, resolved_path=path, base_name=os.path.basename(name))


def check_permissions(target: Target, runner: SandboxRunner) -> Target:
    """
    Verify execute permission for both identities and read permission.

    Args:
        target: Resolved target
        runner: Sandbox runner used for the restricted-user dry run

    Returns:
        Target with the readable flag set

    Raises:
        NoPermissionError: If the invoking user cannot execute the program
        NoPermissionRestrictedUserError: If the restricted user cannot
        PrivilegeSetupError: If the dry run cannot elevate
    """
    logger = get_logger()
    path = target.resolved_path

    if not os.access(path, os.X_OK):
        raise NoPermissionError(f"No execute permission for current user on '{path}'")

    readable = os.access(path, os.R_OK)
    if not readable:
        logger.warning(f"No read permission for current user on '{path}'. 'strings' method will be skipped.")

    if not runner.can_execute(path):
        raise NoPermissionRestrictedUserError(
            f"User '{runner.restricted_user}' does not have execute permission on '{path}'.",
            remediation=f"Check file permissions: ls -l {path}",
        )

    logger.debug(f"Permission checks passed for current user and '{runner.restricted_user}'")
    return replace(target, readable=readable)
