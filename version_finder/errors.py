"""
Error taxonomy for version detection.

Only resolution failures and sandbox setup failures are raised as
exceptions. Timeouts and failing commands are ExecutionResult outcomes
that strategies absorb.
"""

from __future__ import annotations


class VersionFinderError(Exception):
    """
    Base exception for fatal detection errors.

    Attributes:
        message: Human-readable error message
        remediation: Suggested fix for the error
        status: Short status token used in short output mode
    """
    status = "error"

    def __init__(self, message: str, remediation: str | None = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)


class NotFoundError(VersionFinderError):
    """Program could not be located."""
    status = "not-found"


class NoPermissionError(VersionFinderError):
    """Invoking user cannot execute the program."""
    status = "no-permission"


class NoPermissionRestrictedUserError(VersionFinderError):
    """Restricted user cannot execute the program."""
    status = "no-permission-user"


class PrivilegeSetupError(VersionFinderError):
    """Sandbox cannot switch to the restricted user without a prompt."""
    status = "privilege-error"
