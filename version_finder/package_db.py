"""
Package database lookups, one backend per platform family.

Linux uses dpkg, macOS uses Homebrew and FreeBSD uses pkg. Lookups only
read package metadata and never execute the target program.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
from typing import Sequence

from .common import get_os_type
from .extractor import strip_epoch
from .logging_config import get_logger


QUERY_TIMEOUT_SECONDS = 5


def _query(args: Sequence[str], timeout: float = QUERY_TIMEOUT_SECONDS) -> str | None:
    """
    Run a package database query.

    Args:
        args: Command and arguments
        timeout: Timeout in seconds

    Returns:
        stdout on exit code 0, otherwise None
    """
    try:
        proc = subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            text=True,
            timeout=timeout,
            check=False,
            env={**os.environ, "TERM": "dumb", "LC_ALL": "C"},
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        get_logger().debug(f"Package query {args[0]} failed: {e}")
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout or ""


class PackageDatabase:
    """
    Version lookup in an OS package database.

    Attributes:
        name: Backend identifier
        binary: Command that must be present for the backend to work
        timeout: Timeout for each query
    """
    name = ""
    binary = ""

    def __init__(self, timeout: float = QUERY_TIMEOUT_SECONDS):
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def owner_of(self, path: str) -> str | None:
        """Name of the package that installed path."""
        raise NotImplementedError

    def version_of(self, package: str) -> str | None:
        """Recorded version of an installed package."""
        raise NotImplementedError

    def query_version(self, path: str, base_name: str) -> str | None:
        """
        Get the package version for an executable.

        Falls back to the base name as package name when no owner is found.

        Args:
            path: Resolved executable path
            base_name: Program base name

        Returns:
            Version without epoch, or None
        """
        logger = get_logger()
        owner = self.owner_of(path)
        if owner:
            logger.debug(f"Found package '{owner}' for path '{path}'")
            version = self.version_of(owner)
        else:
            logger.debug(f"No {self.name} package owns '{path}', trying '{base_name}'")
            version = self.version_of(base_name)

        if not version or not version.strip():
            return None
        return strip_epoch(version)


def _path_aliases(path: str) -> list[str]:
    """Paths under which a package may have registered the file."""
    aliases = [path]
    real = os.path.realpath(path)
    if real not in aliases:
        aliases.append(real)
    # merged /usr: /bin/ls and /usr/bin/ls are the same file
    for candidate in list(aliases):
        if candidate.startswith("/usr/"):
            alt = candidate[len("/usr"):]
        else:
            alt = "/usr" + candidate
        if alt not in aliases:
            aliases.append(alt)
    return aliases


class DpkgDatabase(PackageDatabase):
    name = "dpkg"
    binary = "dpkg-query"

    def owner_of(self, path: str) -> str | None:
        for candidate in _path_aliases(path):
            output = _query(["dpkg-query", "-S", candidate], self.timeout)
            if not output:
                continue
            for line in output.splitlines():
                # "diversion by ..." lines do not name an owner
                if ": " not in line or line.startswith("diversion "):
                    continue
                packages = line.split(": ", 1)[0]
                return packages.split(",")[0].strip().split(":")[0]
        return None

    def version_of(self, package: str) -> str | None:
        return _query(["dpkg-query", "-W", "--showformat=${Version}", package], self.timeout)


CELLAR_RE = re.compile(r"/Cellar/([^/]+)/")


class BrewDatabase(PackageDatabase):
    name = "brew"
    binary = "brew"

    def owner_of(self, path: str) -> str | None:
        m = CELLAR_RE.search(os.path.realpath(path))
        return m.group(1) if m else None

    def version_of(self, package: str) -> str | None:
        output = _query(["brew", "info", "--json=v1", package], self.timeout)
        if not output:
            return None
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, list) or not data:
            return None
        installed = data[0].get("installed") or []
        if not installed:
            return None
        return installed[0].get("version")


PKG_OWNER_RE = re.compile(r"was installed by package (\S+)")


class PkgDatabase(PackageDatabase):
    name = "pkg"
    binary = "pkg"

    def owner_of(self, path: str) -> str | None:
        output = _query(["pkg", "which", path], self.timeout)
        if not output:
            return None
        m = PKG_OWNER_RE.search(output)
        return m.group(1) if m else None

    def version_of(self, package: str) -> str | None:
        return _query(["pkg", "query", "%v", package], self.timeout)


PACKAGE_DATABASES: dict[str, type[PackageDatabase]] = {
    "linux": DpkgDatabase,
    "macos": BrewDatabase,
    "freebsd": PkgDatabase,
}


def select_package_database(os_type: str | None = None) -> PackageDatabase | None:
    """
    Get the package database for the platform, if installed.

    Args:
        os_type: Platform family (detected when None)

    Returns:
        PackageDatabase instance, or None if unsupported or unavailable
    """
    os_type = os_type or get_os_type()
    db_class = PACKAGE_DATABASES.get(os_type)
    if db_class is None:
        get_logger().debug(f"No package database supported on '{os_type}'")
        return None
    db = db_class()
    if not db.is_available():
        get_logger().debug(f"Package database '{db.name}' is not installed")
        return None
    return db
