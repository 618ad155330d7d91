"""
Tests for package database lookups (version_finder/package_db.py).
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from version_finder.package_db import (
    BrewDatabase,
    DpkgDatabase,
    PkgDatabase,
    _path_aliases,
    _query,
    select_package_database,
)


def _responder(table):
    """_query double answering by the argument tuple."""
    def _answer(args, timeout=None):
        return table.get(tuple(args))
    return _answer


class TestQuery:
    """Tests for the subprocess wrapper."""

    def test_success(self):
        """Test stdout is returned on exit code 0."""
        completed = MagicMock(returncode=0, stdout="coreutils: /usr/bin/ls\n")
        with patch("version_finder.package_db.subprocess.run", return_value=completed) as mock_run:
            assert _query(["dpkg-query", "-S", "/usr/bin/ls"]) == "coreutils: /usr/bin/ls\n"
        assert mock_run.call_args.kwargs["timeout"] == 5

    def test_failure_exit_code(self):
        """Test None on non-zero exit."""
        completed = MagicMock(returncode=1, stdout="")
        with patch("version_finder.package_db.subprocess.run", return_value=completed):
            assert _query(["dpkg-query", "-S", "/nope"]) is None

    @pytest.mark.parametrize("error", [
        FileNotFoundError("dpkg-query"),
        subprocess.TimeoutExpired(cmd="brew", timeout=5),
        PermissionError("denied"),
    ])
    def test_errors_become_no_data(self, error):
        """Test query errors are turned into None."""
        with patch("version_finder.package_db.subprocess.run", side_effect=error):
            assert _query(["brew", "info"]) is None


class TestDpkgDatabase:
    """Tests for the dpkg backend."""

    def test_owner_and_version(self):
        """Test owner lookup followed by the version query."""
        table = {
            ("dpkg-query", "-S", "/usr/bin/ls"): "coreutils: /usr/bin/ls\n",
            ("dpkg-query", "-W", "--showformat=${Version}", "coreutils"): "8.32-4.1ubuntu1",
        }
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().query_version("/usr/bin/ls", "ls") == "8.32-4.1ubuntu1"

    def test_epoch_stripped(self):
        """Test the epoch prefix is removed."""
        table = {
            ("dpkg-query", "-S", "/usr/bin/vim"): "vim: /usr/bin/vim\n",
            ("dpkg-query", "-W", "--showformat=${Version}", "vim"): "2:9.0.1378-2",
        }
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().query_version("/usr/bin/vim", "vim") == "9.0.1378-2"

    def test_multi_arch_owner(self):
        """Test 'pkg:arch, other: path' yields the first package name."""
        table = {("dpkg-query", "-S", "/usr/bin/ldd"): "libc-bin:amd64, libc-dev-bin: /usr/bin/ldd\n"}
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().owner_of("/usr/bin/ldd") == "libc-bin"

    def test_diversion_lines_skipped(self):
        """Test diversion notices are not taken as owners."""
        output = "diversion by dash from: /bin/sh\ndash: /bin/sh\n"
        table = {("dpkg-query", "-S", "/bin/sh"): output}
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().owner_of("/bin/sh") == "dash"

    def test_base_name_fallback(self):
        """Test the base name is used when no package owns the path."""
        table = {("dpkg-query", "-W", "--showformat=${Version}", "mytool"): "1.0-1"}
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().query_version("/opt/mytool/bin/mytool", "mytool") == "1.0-1"

    def test_unknown_everywhere(self):
        """Test None when neither path nor base name is known."""
        with patch("version_finder.package_db._query", return_value=None):
            assert DpkgDatabase().query_version("/opt/x/bin/x", "x") is None

    def test_empty_version(self):
        """Test an empty version field counts as unknown."""
        table = {("dpkg-query", "-W", "--showformat=${Version}", "x"): ""}
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert DpkgDatabase().query_version("/opt/x/bin/x", "x") is None


class TestBrewDatabase:
    """Tests for the Homebrew backend."""

    def test_cellar_owner_and_version(self):
        """Test owner from the Cellar path and version from JSON."""
        info = json.dumps([{"name": "jq", "installed": [{"version": "1.7.1"}]}])
        table = {("brew", "info", "--json=v1", "jq"): info}
        with patch("version_finder.package_db.os.path.realpath",
                   return_value="/opt/homebrew/Cellar/jq/1.7.1/bin/jq"), \
             patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert BrewDatabase().query_version("/opt/homebrew/bin/jq", "jq") == "1.7.1"

    def test_invalid_json(self):
        """Test unparsable output gives None."""
        with patch("version_finder.package_db._query", return_value="not json"):
            assert BrewDatabase().version_of("jq") is None

    def test_not_installed(self):
        """Test a formula without installed versions gives None."""
        info = json.dumps([{"name": "jq", "installed": []}])
        with patch("version_finder.package_db._query", return_value=info):
            assert BrewDatabase().version_of("jq") is None


class TestPkgDatabase:
    """Tests for the FreeBSD pkg backend."""

    def test_owner_and_version(self):
        """Test 'pkg which' owner lookup and 'pkg query' version."""
        table = {
            ("pkg", "which", "/usr/local/bin/jq"): "/usr/local/bin/jq was installed by package jq-1.7.1\n",
            ("pkg", "query", "%v", "jq-1.7.1"): "1.7.1\n",
        }
        with patch("version_finder.package_db._query", side_effect=_responder(table)):
            assert PkgDatabase().query_version("/usr/local/bin/jq", "jq") == "1.7.1"


class TestSelection:
    """Tests for select_package_database."""

    @pytest.mark.parametrize("os_type,expected", [
        ("linux", DpkgDatabase),
        ("macos", BrewDatabase),
        ("freebsd", PkgDatabase),
    ])
    def test_per_os(self, os_type, expected):
        """Test one backend per platform family."""
        with patch("version_finder.package_db.shutil.which", return_value="/usr/bin/x"):
            assert isinstance(select_package_database(os_type), expected)

    def test_unsupported_os(self):
        """Test None on unknown platforms."""
        assert select_package_database("unknown") is None

    def test_backend_not_installed(self):
        """Test None when the backend binary is missing."""
        with patch("version_finder.package_db.shutil.which", return_value=None):
            assert select_package_database("linux") is None


class TestPathAliases:
    """Tests for merged-/usr path aliases."""

    def test_usr_alias(self):
        """Test /bin and /usr/bin are both tried."""
        with patch("version_finder.package_db.os.path.realpath", side_effect=lambda p: p):
            assert _path_aliases("/bin/ls") == ["/bin/ls", "/usr/bin/ls"]
            assert _path_aliases("/usr/bin/ls") == ["/usr/bin/ls", "/bin/ls"]
