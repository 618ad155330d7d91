"""
Strategy pipeline and the end-to-end detection flow.

Strategies run strictly one after another; the first success stops the
pipeline so riskier attempts are skipped.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Sequence

from .config import Config
from .errors import NoPermissionError, NoPermissionRestrictedUserError, NotFoundError, VersionFinderError
from .logging_config import get_logger
from .resolver import Target, check_permissions, resolve_program
from .sandbox import SandboxRunner
from .strategies import Strategy, StrategyOutcome, build_strategies


STATUS_FOUND = "found"
STATUS_FOUND_BUT_UNPARSED = "found-but-unparsed"
STATUS_UNDETERMINED = "undetermined"


class VersionPipeline:
    """Ordered strategies, stopping at the first success."""

    def __init__(self, strategies: Sequence[Strategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_config(cls, runner: SandboxRunner, config: Config) -> VersionPipeline:
        return cls(build_strategies(runner, config))

    def run(self, target: Target) -> StrategyOutcome | None:
        """
        Run strategies until one succeeds.

        Args:
            target: Resolved and permission-checked target

        Returns:
            First successful outcome, or None when undetermined

        Raises:
            PrivilegeSetupError: If the sandbox stops working mid-run
        """
        logger = get_logger()
        for strategy in self.strategies:
            logger.debug(f"Method '{strategy.method.value}' for {target.resolved_path}")
            outcome = strategy.attempt(target)
            if outcome is not None:
                logger.debug(f"Determined by method: {outcome.label}")
                return outcome
        logger.debug("Finished all methods without finding a version")
        return None


@dataclass(frozen=True)
class Detection:
    """
    Final result for one program.

    Attributes:
        name: Program name used in output (base name)
        status: found, found-but-unparsed, undetermined or an error status
        outcome: Successful strategy outcome, if any
        target: Resolved target, if resolution succeeded
        error: Fatal error for this program, if any
    """
    name: str
    status: str
    outcome: StrategyOutcome | None = None
    target: Target | None = None
    error: VersionFinderError | None = None

    @property
    def version(self) -> str | None:
        return self.outcome.version if self.outcome else None

    @property
    def found(self) -> bool:
        return self.outcome is not None


class VersionFinder:
    """
    Resolve, check and run the pipeline for program names.

    Sandbox prerequisites are verified once, lazily, after the first
    successful resolution so that unknown names never need sudo.
    """

    def __init__(
        self,
        config: Config,
        runner: SandboxRunner | None = None,
        pipeline: VersionPipeline | None = None,
    ):
        self.config = config
        self.runner = runner or SandboxRunner.from_config(config)
        self.pipeline = pipeline or VersionPipeline.from_config(self.runner, config)
        self._prerequisites_verified = False

    def ensure_prerequisites(self) -> None:
        """Verify the sandbox once; raises PrivilegeSetupError."""
        if not self._prerequisites_verified:
            self.runner.verify_prerequisites()
            self._prerequisites_verified = True

    def detect(self, name: str) -> Detection:
        """
        Determine the version of one program.

        Args:
            name: Program name or path

        Returns:
            Detection

        Raises:
            PrivilegeSetupError: If the sandbox cannot be used
        """
        try:
            target = resolve_program(name, self.config.name_suffix)
        except NotFoundError as e:
            return Detection(name=os.path.basename(name), status=e.status, error=e)

        self.ensure_prerequisites()

        try:
            target = check_permissions(target, self.runner)
        except (NoPermissionError, NoPermissionRestrictedUserError) as e:
            return Detection(name=target.base_name, status=e.status, target=target, error=e)

        outcome = self.pipeline.run(target)
        if outcome is None:
            status = STATUS_UNDETERMINED
        elif outcome.version is None:
            status = STATUS_FOUND_BUT_UNPARSED
        else:
            status = STATUS_FOUND
        return Detection(name=target.base_name, status=status, outcome=outcome, target=target)
