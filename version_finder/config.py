"""
Configuration file parsing and management.

Reads YAML configuration files and merges them from multiple sources
(custom path -> project -> user -> system -> defaults). Environment
variables and command-line flags are applied on top by the caller.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

import yaml

from .common import vlog


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".version-finder.yml",                                     # Project root (highest priority)
    ".version-finder.yaml",
    os.path.expanduser("~/.config/version-finder/config.yml"),  # User global
    os.path.expanduser("~/.config/version-finder/config.yaml"),
    "/etc/version-finder/config.yml",                          # System global
    "/etc/version-finder/config.yaml",
]

DEFAULT_VERSION_FLAGS = (
    "--version",
    "version",  # Some tools use 'version' as a subcommand
    "-v",
    "-V",
    "--Version",
    "-version",  # Java style
    "--ver",
    "-ver",
)

DEFAULT_HELP_FLAGS = ("--help", "-h")

VALID_METHODS = ("flag", "help", "package", "strings", "noargs")

DEFAULT_SANDBOX_PATH = "/usr/bin:/bin:/usr/sbin:/sbin:/usr/local/bin:/usr/local/sbin"


@dataclass(frozen=True)
class SandboxConfig:
    """
    Settings for the restricted execution environment.

    Attributes:
        path: PATH value handed to the target program
        home: HOME value handed to the target program
        locale: LC_ALL value handed to the target program
        extra_env: Additional variables to allow through
        timeout_command: Wall-clock wrapper binary; None picks one per OS,
            empty string disables the wrapper
    """
    path: str = DEFAULT_SANDBOX_PATH
    home: str = "/tmp"
    locale: str = "C"
    extra_env: dict[str, str] = field(default_factory=dict)
    timeout_command: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any]) -> SandboxConfig:
        """Create SandboxConfig from dictionary."""
        return SandboxConfig(
            path=data.get("path", DEFAULT_SANDBOX_PATH),
            home=data.get("home", "/tmp"),
            locale=data.get("locale", "C"),
            extra_env={str(k): str(v) for k, v in (data.get("extra_env") or {}).items()},
            timeout_command=data.get("timeout_command"),
        )


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for version detection.

    Attributes:
        restricted_user: Account that runs the target program
        timeout_seconds: Wall-clock limit for each invocation
        name_suffix: Suffix tried when a bare program name is not on PATH
        version_flags: Flags probed in order by the flag strategy
        help_flags: Flags used to obtain help text
        methods: Enabled strategies (order of execution is fixed)
        max_unique_versions: Ambiguity limit for the unique-number rule
        strings_min_length: Minimum printable run length for the binary scan
        sandbox: Restricted environment settings
        source: Path to the configuration file that was loaded
    """
    restricted_user: str = "versionchecker"
    timeout_seconds: float = 2
    name_suffix: str = "3"
    version_flags: tuple[str, ...] = DEFAULT_VERSION_FLAGS
    help_flags: tuple[str, ...] = DEFAULT_HELP_FLAGS
    methods: tuple[str, ...] = VALID_METHODS
    max_unique_versions: int = 1
    strings_min_length: int = 4
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    source: str = ""

    def __post_init__(self):
        """Validate config after initialization."""
        if not self.restricted_user:
            raise ValueError("restricted_user must not be empty")

        if self.timeout_seconds <= 0 or self.timeout_seconds > 60:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be greater than 0 and at most 60"
            )

        unknown = [m for m in self.methods if m not in VALID_METHODS]
        if unknown:
            raise ValueError(
                f"Invalid methods: {', '.join(unknown)}. "
                f"Must be among: {', '.join(VALID_METHODS)}"
            )

        if self.max_unique_versions < 1 or self.max_unique_versions > 10:
            raise ValueError(
                f"Invalid max_unique_versions: {self.max_unique_versions}. "
                "Must be between 1 and 10"
            )

        if self.strings_min_length < 2:
            raise ValueError(
                f"Invalid strings_min_length: {self.strings_min_length}. "
                "Must be at least 2"
            )

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        defaults = Config()
        return Config(
            restricted_user=data.get("restricted_user", defaults.restricted_user),
            timeout_seconds=data.get("timeout_seconds", defaults.timeout_seconds),
            name_suffix=str(data.get("name_suffix", defaults.name_suffix)),
            version_flags=tuple(data.get("version_flags", defaults.version_flags)),
            help_flags=tuple(data.get("help_flags", defaults.help_flags)),
            methods=tuple(data.get("methods", defaults.methods)),
            max_unique_versions=data.get("max_unique_versions", defaults.max_unique_versions),
            strings_min_length=data.get("strings_min_length", defaults.strings_min_length),
            sandbox=SandboxConfig.from_dict(data.get("sandbox") or {}),
            source=source,
        )

    def is_enabled(self, method: str) -> bool:
        """Check whether a strategy is enabled."""
        return method in self.methods

    def merge_with(self, other: Config) -> Config:
        """
        Merge this config with another, preferring values from this config.

        A value in this config wins when it differs from the default.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged Config object
        """
        defaults = Config()
        merged: dict[str, Any] = {}
        for f in fields(Config):
            if f.name in {"sandbox", "source"}:
                continue
            mine = getattr(self, f.name)
            merged[f.name] = mine if mine != getattr(defaults, f.name) else getattr(other, f.name)

        default_sandbox = SandboxConfig()
        sandbox_values: dict[str, Any] = {}
        for f in fields(SandboxConfig):
            mine = getattr(self.sandbox, f.name)
            theirs = getattr(other.sandbox, f.name)
            if f.name == "extra_env":
                combined = dict(theirs)
                combined.update(mine)
                sandbox_values[f.name] = combined
            else:
                sandbox_values[f.name] = mine if mine != getattr(default_sandbox, f.name) else theirs

        return Config(
            **merged,
            sandbox=SandboxConfig(**sandbox_values),
            source=self.source or other.source,
        )


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Parse a YAML file with PyYAML's safe loader.

    Args:
        file_path: Path to YAML file

    Returns:
        Top-level mapping ({} for an empty document), or None when the
        file cannot be read or parsed
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return None
    return document if isinstance(document, dict) else {}


def load_config_file(file_path: str, verbose: bool = False) -> Config | None:
    """
    Read one configuration file.

    Args:
        file_path: Path to configuration file
        verbose: Enable verbose logging

    Returns:
        Config, or None when the file is absent, unparsable or invalid
    """
    if not os.path.isfile(file_path):
        return None

    document = _load_yaml(file_path)
    if document is None:
        vlog(f"Ignoring unparsable config file {file_path}", verbose)
        return None

    try:
        config = Config.from_dict(document, source=file_path)
    except (ValueError, TypeError) as e:
        vlog(f"Ignoring invalid config file {file_path}: {e}", verbose)
        return None

    vlog(f"Read config file {file_path}", verbose)
    return config


def apply_env_overrides(config: Config, verbose: bool = False) -> Config:
    """
    Apply VERSION_FINDER_* environment variables on top of a config.

    Args:
        config: Loaded configuration
        verbose: Enable verbose logging

    Returns:
        Config with overrides applied

    Raises:
        ValueError: If an override value is invalid
    """
    user = os.environ.get("VERSION_FINDER_USER")
    if user:
        vlog(f"VERSION_FINDER_USER sets restricted user to '{user}'", verbose)
        config = replace(config, restricted_user=user)

    timeout = os.environ.get("VERSION_FINDER_TIMEOUT")
    if timeout:
        try:
            seconds = float(timeout)
        except ValueError:
            raise ValueError(f"Invalid VERSION_FINDER_TIMEOUT: {timeout}") from None
        vlog(f"VERSION_FINDER_TIMEOUT sets timeout to {seconds:g}s", verbose)
        config = replace(config, timeout_seconds=seconds)

    return config


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
) -> Config:
    """
    Build the effective configuration.

    Files are layered highest priority first: the --config path, then
    every existing entry of CONFIG_LOCATIONS. A key left at its default
    in a higher layer is taken from the next layer down. Environment
    overrides go on top of the result.

    Args:
        custom_path: Explicit configuration file (--config)
        verbose: Enable verbose logging

    Returns:
        Effective Config (defaults when no file exists)

    Raises:
        ValueError: If custom_path cannot be loaded or an override is invalid
    """
    layers: list[Config] = []

    if custom_path:
        explicit = load_config_file(custom_path, verbose)
        if explicit is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        layers.append(explicit)

    layers.extend(
        layer for layer in (load_config_file(path, verbose) for path in CONFIG_LOCATIONS)
        if layer is not None
    )

    effective = Config()
    if layers:
        effective = layers[0]
        for lower in layers[1:]:
            effective = effective.merge_with(lower)
        vlog(f"Effective config from: {', '.join(layer.source for layer in layers)}", verbose)
    else:
        vlog("No config file found, using built-in defaults", verbose)

    return apply_env_overrides(effective, verbose)


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: Config object to validate

    Returns:
        List of validation warning messages (empty if valid)
    """
    from .sandbox import is_session_variable

    warnings = []

    if len(config.version_flags) != len(set(config.version_flags)):
        warnings.append("Duplicate entries in version_flags")

    if not config.version_flags and config.is_enabled("flag"):
        warnings.append("Flag probing is enabled but version_flags is empty")

    if not config.help_flags and config.is_enabled("help"):
        warnings.append("Help mining is enabled but help_flags is empty")

    for name in config.sandbox.extra_env:
        if is_session_variable(name):
            warnings.append(f"sandbox.extra_env: '{name}' is a session variable and will be dropped")

    return warnings
