"""
Version Finder - Determine CLI program versions safely.

Core Modules:
- Sandbox: Restricted-user execution with scrubbed environment and timeouts
- Analysis: Version-output classifier and version-token extractor
- Strategies: Version flags, help mining, package database, binary strings, no-args
- Pipeline: Resolution, permission checks and first-success strategy chain
"""

__version__ = "1.0.0"
__author__ = "Version Finder Contributors"

VERSION = __version__

# Errors
from .errors import (
    VersionFinderError,
    NotFoundError,
    NoPermissionError,
    NoPermissionRestrictedUserError,
    PrivilegeSetupError,
)

# Configuration
from .config import Config, SandboxConfig, load_config, load_config_file, validate_config

# Sandbox
from .sandbox import (
    Outcome,
    ExecutionRequest,
    ExecutionResult,
    SandboxRunner,
    build_environment,
    merge_output,
)

# Analysis
from .classifier import Verdict, looks_like_version
from .extractor import extract_version, strip_epoch

# Detection
from .resolver import Target, resolve_program, check_permissions
from .package_db import PackageDatabase, select_package_database
from .strategies import (
    Method,
    StrategyOutcome,
    FlagProbe,
    HelpMining,
    PackageLookup,
    BinaryScan,
    NoArgs,
    build_strategies,
)
from .pipeline import Detection, VersionFinder, VersionPipeline
from .scan import scan_directory

# Logging configuration
from .logging_config import (
    setup_logging,
    get_logger,
)

__all__ = [
    # Version
    "__version__",
    "VERSION",
    # Errors
    "VersionFinderError",
    "NotFoundError",
    "NoPermissionError",
    "NoPermissionRestrictedUserError",
    "PrivilegeSetupError",
    # Configuration
    "Config",
    "SandboxConfig",
    "load_config",
    "load_config_file",
    "validate_config",
    # Sandbox
    "Outcome",
    "ExecutionRequest",
    "ExecutionResult",
    "SandboxRunner",
    "build_environment",
    "merge_output",
    # Analysis
    "Verdict",
    "looks_like_version",
    "extract_version",
    "strip_epoch",
    # Detection
    "Target",
    "resolve_program",
    "check_permissions",
    "PackageDatabase",
    "select_package_database",
    "Method",
    "StrategyOutcome",
    "FlagProbe",
    "HelpMining",
    "PackageLookup",
    "BinaryScan",
    "NoArgs",
    "build_strategies",
    "Detection",
    "VersionFinder",
    "VersionPipeline",
    "scan_directory",
    # Logging
    "setup_logging",
    "get_logger",
]
