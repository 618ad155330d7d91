"""
Version detection strategies.

Each strategy is one self-contained way of finding a version and exposes
``attempt(target)``, returning a StrategyOutcome or None. Strategies
absorb timeouts and failing commands; only PrivilegeSetupError escapes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from .binary_strings import extract_strings, find_version_in_strings
from .classifier import looks_like_version, strip_stderr
from .config import Config
from .errors import PrivilegeSetupError
from .extractor import extract_version
from .logging_config import get_logger
from .package_db import PackageDatabase, select_package_database
from .resolver import Target
from .sandbox import FLAG_NOISE_RE, SUDOERS_HINT, ExecutionResult, Outcome, SandboxRunner, merge_output


# Programs often print their version and then exit 1 (usage-style exit)
ANALYZABLE_EXIT_CODES = (0, 1)

VERSION_FLAG_TOKEN_RE = re.compile(r"(?<![\w-])(--?[A-Za-z-]*version|--?[vV])(?![\w-])", re.IGNORECASE)


class Method(Enum):
    """Detection methods, in pipeline order."""
    FLAG = "flag"
    HELP = "help"
    PACKAGE_MANAGER = "package"
    BINARY_STRINGS = "strings"
    NO_ARGS = "noargs"


@dataclass(frozen=True)
class StrategyOutcome:
    """
    Successful result of one strategy.

    Attributes:
        method: Method that succeeded
        label: Human-readable description (e.g., "flag '--version'")
        evidence: Raw text the decision was based on
        version: Extracted version token (None if unparsable)
    """
    method: Method
    label: str
    evidence: str
    version: str | None = None


class Strategy(Protocol):
    method: Method

    def attempt(self, target: Target) -> StrategyOutcome | None:
        ...


def _execute(
    runner: SandboxRunner,
    target: Target,
    args: Sequence[str],
    description: str,
) -> ExecutionResult | None:
    """Run the target in the sandbox; None when it timed out."""
    logger = get_logger()
    result = runner.run(target.resolved_path, args)

    if result.outcome is Outcome.PRIVILEGE_ERROR:
        raise PrivilegeSetupError(
            f"Passwordless sudo required or TTY issue running as '{runner.restricted_user}'.",
            remediation=SUDOERS_HINT.format(user=runner.restricted_user),
        )
    if result.outcome is Outcome.TIMED_OUT:
        logger.warning(f"Program '{target.requested_name}' timed out with {description}.")
        return None
    return result


def _probe(
    runner: SandboxRunner,
    target: Target,
    args: Sequence[str],
    method: Method,
    label: str,
    max_unique: int,
) -> StrategyOutcome | None:
    """Run with args, classify the output and extract a version."""
    logger = get_logger()
    logger.debug(f"Trying {label}")

    result = _execute(runner, target, args, label)
    if result is None:
        return None
    if result.exit_code not in ANALYZABLE_EXIT_CODES:
        logger.debug(f"{label} failed with exit code {result.exit_code}")
        return None

    text = merge_output(result)
    verdict = looks_like_version(text, target.base_name, max_unique=max_unique)
    if not verdict:
        logger.debug(f"{label} ran but output didn't contain version info")
        return None

    logger.debug(f"{label} matched rule '{verdict.rule}'")
    return StrategyOutcome(method=method, label=label, evidence=text, version=extract_version(text))


def discover_version_flags(help_text: str) -> list[str]:
    """
    Find version-flag tokens mentioned in help text.

    Long tokens containing "version" always count; single-letter -v/-V
    only on lines that mention "version".

    Args:
        help_text: Output of --help / -h

    Returns:
        Unique flags in order of appearance
    """
    flags: list[str] = []
    for line in help_text.splitlines():
        mentions_version = "version" in line.lower()
        for m in VERSION_FLAG_TOKEN_RE.finditer(line):
            flag = m.group(1)
            if flag.lower().endswith("version") or mentions_version:
                if flag not in flags:
                    flags.append(flag)
    return flags


class FlagProbe:
    """Try common version flags in priority order."""
    method = Method.FLAG

    def __init__(self, runner: SandboxRunner, flags: Sequence[str], max_unique: int = 1):
        self.runner = runner
        self.flags = tuple(flags)
        self.max_unique = max_unique

    def attempt(self, target: Target) -> StrategyOutcome | None:
        for flag in self.flags:
            outcome = _probe(self.runner, target, [flag], self.method, f"flag '{flag}'", self.max_unique)
            if outcome is not None:
                return outcome
        return None


class HelpMining:
    """
    Mine help output for version flags, then for a version itself.

    Attributes:
        runner: Sandbox runner
        help_flags: Flags producing help text, tried until one yields a result
        probed_flags: Flags the flag strategy already tried
        max_unique: Ambiguity limit for the classifier
    """
    method = Method.HELP

    def __init__(
        self,
        runner: SandboxRunner,
        help_flags: Sequence[str],
        probed_flags: Sequence[str] = (),
        max_unique: int = 1,
    ):
        self.runner = runner
        self.help_flags = tuple(help_flags)
        self.probed_flags = frozenset(probed_flags)
        self.max_unique = max_unique

    def attempt(self, target: Target) -> StrategyOutcome | None:
        logger = get_logger()
        probed = set(self.probed_flags)

        for help_flag in self.help_flags:
            result = _execute(self.runner, target, [help_flag], f"help flag '{help_flag}'")
            if result is None or not result.has_output:
                logger.debug(f"No help output from '{help_flag}'")
                continue
            help_text = merge_output(result, drop_noise=False)
            outcome = self._mine(target, help_flag, help_text, probed)
            if outcome is not None:
                return outcome
        return None

    def _mine(
        self,
        target: Target,
        help_flag: str,
        help_text: str,
        probed: set[str],
    ) -> StrategyOutcome | None:
        """Probe version flags named in help_text, then classify the text itself."""
        logger = get_logger()

        if FLAG_NOISE_RE.search(help_text):
            logger.debug(f"Help flag '{help_flag}' was rejected, not searching for version flags")
        else:
            for flag in discover_version_flags(help_text):
                if flag in probed:
                    continue
                probed.add(flag)
                outcome = _probe(self.runner, target, [flag], self.method, f"help flag '{flag}'", self.max_unique)
                if outcome is not None:
                    return outcome

        verdict = looks_like_version(
            help_text, target.base_name, truncate_stderr=True, max_unique=self.max_unique
        )
        if not verdict:
            return None
        logger.debug(f"Help output of '{help_flag}' matched rule '{verdict.rule}'")
        evidence = strip_stderr(help_text)
        return StrategyOutcome(
            method=self.method,
            label=f"help flag '{help_flag}'",
            evidence=evidence,
            version=extract_version(evidence),
        )


class PackageLookup:
    """Ask the OS package database; the program is not executed."""
    method = Method.PACKAGE_MANAGER

    def __init__(self, database: PackageDatabase | None = None):
        self.database = database

    def attempt(self, target: Target) -> StrategyOutcome | None:
        db = self.database or select_package_database()
        if db is None:
            get_logger().debug("No supported package manager found or available")
            return None

        version = db.query_version(target.resolved_path, target.base_name)
        if not version:
            get_logger().debug(f"Package manager did not find version info for '{target.base_name}'")
            return None
        return StrategyOutcome(
            method=self.method,
            label="package manager",
            evidence=f"{target.base_name} version {version} (from package manager)",
            version=version,
        )


class BinaryScan:
    """Look for a version among the printable strings of the binary."""
    method = Method.BINARY_STRINGS

    def __init__(self, min_length: int = 4):
        self.min_length = min_length

    def attempt(self, target: Target) -> StrategyOutcome | None:
        logger = get_logger()
        if not target.readable:
            logger.debug(f"Cannot read '{target.resolved_path}', skipping strings")
            return None

        try:
            strings = extract_strings(target.resolved_path, self.min_length)
        except OSError as e:
            logger.debug(f"Reading '{target.resolved_path}' failed: {e}")
            return None

        found = find_version_in_strings(strings)
        if found is None:
            return None
        version, source = found
        logger.debug(f"Found version '{version}' in binary strings: {source}")
        return StrategyOutcome(
            method=self.method,
            label="strings",
            evidence=f"{target.base_name} version {version} (from strings: '{source}')",
            version=version,
        )


class NoArgs:
    """Run the program without arguments. Least reliable, last."""
    method = Method.NO_ARGS

    def __init__(self, runner: SandboxRunner, max_unique: int = 1):
        self.runner = runner
        self.max_unique = max_unique

    def attempt(self, target: Target) -> StrategyOutcome | None:
        return _probe(self.runner, target, [], self.method, "no arguments", self.max_unique)


def build_strategies(runner: SandboxRunner, config: Config) -> list[Strategy]:
    """
    Build the enabled strategies in their fixed order.

    Args:
        runner: Sandbox runner
        config: Configuration

    Returns:
        Ordered list of strategies
    """
    all_strategies: list[Strategy] = [
        FlagProbe(runner, config.version_flags, config.max_unique_versions),
        HelpMining(
            runner,
            config.help_flags,
            probed_flags=config.version_flags if config.is_enabled(Method.FLAG.value) else (),
            max_unique=config.max_unique_versions,
        ),
        PackageLookup(),
        BinaryScan(config.strings_min_length),
        NoArgs(runner, config.max_unique_versions),
    ]
    return [s for s in all_strategies if config.is_enabled(s.method.value)]
