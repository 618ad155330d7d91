"""
Tests for version detection strategies (version_finder/strategies.py).

A scripted runner stands in for the sandbox; each test lists the
invocations that produce output.
"""

from unittest.mock import MagicMock, call, patch

import pytest

from version_finder.config import DEFAULT_VERSION_FLAGS, Config
from version_finder.errors import PrivilegeSetupError
from version_finder.resolver import Target
from version_finder.sandbox import Outcome
from version_finder.strategies import (
    BinaryScan,
    FlagProbe,
    HelpMining,
    Method,
    NoArgs,
    PackageLookup,
    build_strategies,
    discover_version_flags,
)


TARGET = Target(requested_name="foo", resolved_path="/opt/foo/bin/foo", base_name="foo")


class TestFlagProbe:
    """Tests for FlagProbe."""

    @pytest.mark.parametrize("flag", DEFAULT_VERSION_FLAGS)
    def test_every_default_flag(self, flag, fake_runner, make_result):
        """Test a program answering only one flag is still found."""
        runner = fake_runner({(flag,): make_result("foo 1.2.3\n")})
        outcome = FlagProbe(runner, DEFAULT_VERSION_FLAGS).attempt(TARGET)
        assert outcome is not None
        assert outcome.method is Method.FLAG
        assert outcome.label == f"flag '{flag}'"
        assert outcome.version == "1.2.3"
        assert outcome.evidence == "foo 1.2.3\n"

    def test_stops_at_first_success(self, fake_runner, make_result):
        """Test later flags are not tried after a success."""
        runner = fake_runner({
            ("--version",): make_result("foo 1.0.0"),
            ("-v",): make_result("foo 2.0.0"),
        })
        outcome = FlagProbe(runner, ["--version", "-v"]).attempt(TARGET)
        assert outcome.version == "1.0.0"
        assert runner.run.call_count == 1

    def test_flags_tried_in_order(self, fake_runner, make_result):
        """Test flags are probed in configured order."""
        runner = fake_runner({("-V",): make_result("foo 2.0.1")})
        FlagProbe(runner, ["--version", "version", "-V"]).attempt(TARGET)
        assert runner.run.call_args_list == [
            call(TARGET.resolved_path, ["--version"]),
            call(TARGET.resolved_path, ["version"]),
            call(TARGET.resolved_path, ["-V"]),
        ]

    def test_exit_code_one_analysed(self, fake_runner, make_result):
        """Test version output with exit code 1 is accepted."""
        runner = fake_runner({("--version",): make_result("foo 1.0.0", exit_code=1)})
        assert FlagProbe(runner, ["--version"]).attempt(TARGET).version == "1.0.0"

    def test_other_exit_codes_ignored(self, fake_runner, make_result):
        """Test output with exit code 2 is not analysed."""
        runner = fake_runner({("--version",): make_result("foo 1.0.0", exit_code=2)})
        assert FlagProbe(runner, ["--version"]).attempt(TARGET) is None

    def test_version_on_stderr(self, fake_runner, make_result):
        """Test versions printed on stderr are found."""
        runner = fake_runner({("-version",): make_result(stderr='foo version "17.0.2"')})
        outcome = FlagProbe(runner, ["-version"]).attempt(TARGET)
        assert outcome.version == "17.0.2"
        assert "--- STDERR ---" in outcome.evidence

    def test_flag_noise_ignored(self, fake_runner, make_result):
        """Test a parser complaint containing a number is not a version."""
        runner = fake_runner({
            ("-v",): make_result(stderr="foo 1.2: unknown option -v", exit_code=1),
        })
        assert FlagProbe(runner, ["-v"]).attempt(TARGET) is None

    def test_timeout_continues(self, fake_runner, make_result):
        """Test a timed out flag is skipped with a warning."""
        runner = fake_runner({
            ("--version",): make_result(exit_code=None, outcome=Outcome.TIMED_OUT),
            ("-V",): make_result("foo 3.1.4"),
        })
        with patch("version_finder.strategies.get_logger") as mock_logger:
            outcome = FlagProbe(runner, ["--version", "-V"]).attempt(TARGET)
        assert outcome.version == "3.1.4"
        mock_logger.return_value.warning.assert_called_once_with(
            "Program 'foo' timed out with flag '--version'."
        )

    def test_privilege_error_raises(self, fake_runner, make_result):
        """Test a sudo failure aborts the strategy."""
        runner = fake_runner({
            ("--version",): make_result(
                stderr="sudo: a password is required", exit_code=1, outcome=Outcome.PRIVILEGE_ERROR
            ),
        })
        with pytest.raises(PrivilegeSetupError):
            FlagProbe(runner, ["--version"]).attempt(TARGET)


class TestDiscoverVersionFlags:
    """Tests for discover_version_flags."""

    def test_long_and_short_flags(self):
        """Test flags on a line mentioning 'version'."""
        help_text = "  -V, --show-version   print version and exit\n  -v   verbose output\n"
        assert discover_version_flags(help_text) == ["-V", "--show-version"]

    def test_long_flag_anywhere(self):
        """Test long tokens ending in 'version' always count."""
        assert discover_version_flags("usage: foo [--print-version] [-q]") == ["--print-version"]

    def test_no_flags(self):
        """Test help without version flags."""
        assert discover_version_flags("usage: foo [-q] FILE") == []

    def test_unique(self):
        """Test repeated flags are reported once."""
        help_text = "usage: foo [--version]\n  --version  show version\n"
        assert discover_version_flags(help_text) == ["--version"]


class TestHelpMining:
    """Tests for HelpMining."""

    def test_discovered_flag(self, fake_runner, make_result):
        """Test a flag named in help output is probed."""
        runner = fake_runner({
            ("--help",): make_result("usage: foo [--print-version] FILE\n"),
            ("--print-version",): make_result("foo 4.5.6\n"),
        })
        outcome = HelpMining(runner, ["--help", "-h"]).attempt(TARGET)
        assert outcome.method is Method.HELP
        assert outcome.label == "help flag '--print-version'"
        assert outcome.version == "4.5.6"

    def test_probed_flags_skipped(self, fake_runner, make_result):
        """Test flags the flag strategy already tried are not repeated."""
        runner = fake_runner({
            ("--help",): make_result("usage: foo [--version]\n  --version  show version\n"),
        })
        outcome = HelpMining(runner, ["--help"], probed_flags=["--version"]).attempt(TARGET)
        assert outcome is None
        assert call(TARGET.resolved_path, ["--version"]) not in runner.run.call_args_list

    def test_version_in_help_text(self, fake_runner, make_result):
        """Test a version printed in the help banner."""
        runner = fake_runner({
            ("-h",): make_result("foo 3.4.5 - frobnicates files\nusage: foo [opts]\n", exit_code=1),
        })
        outcome = HelpMining(runner, ["--help", "-h"]).attempt(TARGET)
        assert outcome.label == "help flag '-h'"
        assert outcome.version == "3.4.5"

    def test_help_stderr_not_evidence(self, fake_runner, make_result):
        """Test stderr after the banner is not used to classify help output."""
        runner = fake_runner({
            ("--help",): make_result("usage: foo [opts]\n", stderr="foo 9.9.9\n"),
        })
        assert HelpMining(runner, ["--help"]).attempt(TARGET) is None

    def test_rejected_help_flag(self, fake_runner, make_result):
        """Test no flags are mined when the help flag itself was rejected."""
        runner = fake_runner({
            ("--help",): make_result("usage: foo [--version]\n", stderr="invalid option -- '-'", exit_code=1),
        })
        assert HelpMining(runner, ["--help"]).attempt(TARGET) is None
        assert runner.run.call_args_list == [call(TARGET.resolved_path, ["--help"])]

    def test_no_help_output(self, fake_runner, make_result):
        """Test None when no help flag produces output."""
        runner = fake_runner({("--help",): make_result(""), ("-h",): make_result("")})
        assert HelpMining(runner, ["--help", "-h"]).attempt(TARGET) is None


class TestPackageLookup:
    """Tests for PackageLookup."""

    def test_version_from_database(self):
        """Test the package version is reported."""
        db = MagicMock()
        db.query_version.return_value = "2.34.1-1ubuntu1"
        outcome = PackageLookup(db).attempt(TARGET)
        assert outcome.method is Method.PACKAGE_MANAGER
        assert outcome.label == "package manager"
        assert outcome.version == "2.34.1-1ubuntu1"
        assert outcome.evidence == "foo version 2.34.1-1ubuntu1 (from package manager)"
        db.query_version.assert_called_once_with("/opt/foo/bin/foo", "foo")

    def test_not_packaged(self):
        """Test None when the database knows nothing."""
        db = MagicMock()
        db.query_version.return_value = None
        assert PackageLookup(db).attempt(TARGET) is None

    def test_no_database(self):
        """Test None when no package database is available."""
        with patch("version_finder.strategies.select_package_database", return_value=None):
            assert PackageLookup().attempt(TARGET) is None


class TestBinaryScan:
    """Tests for BinaryScan."""

    def test_version_in_binary(self, tmp_path):
        """Test a version string embedded in binary data."""
        binary = tmp_path / "foo"
        binary.write_bytes(b"\x7fELF\x00\x01\x02\xff" + b"foo-1.2.3\x00" + b"\x00\xfe\xfd")
        outcome = BinaryScan().attempt(Target("foo", str(binary), "foo"))
        assert outcome.method is Method.BINARY_STRINGS
        assert outcome.label == "strings"
        assert outcome.version == "1.2.3"
        assert "foo-1.2.3" in outcome.evidence

    def test_unreadable_skipped(self, tmp_path):
        """Test targets flagged unreadable are not opened."""
        target = Target("foo", str(tmp_path / "foo"), "foo", readable=False)
        with patch("version_finder.strategies.extract_strings") as mock_extract:
            assert BinaryScan().attempt(target) is None
        mock_extract.assert_not_called()

    def test_read_error(self, tmp_path):
        """Test a vanished file gives None."""
        assert BinaryScan().attempt(Target("foo", str(tmp_path / "gone"), "foo")) is None


class TestNoArgs:
    """Tests for NoArgs."""

    def test_banner_without_arguments(self, fake_runner, make_result):
        """Test a version printed when run bare."""
        runner = fake_runner({(): make_result("Foo shell 5.2.15\n> ")})
        outcome = NoArgs(runner).attempt(TARGET)
        assert outcome.method is Method.NO_ARGS
        assert outcome.label == "no arguments"
        assert outcome.version == "5.2.15"


class TestBuildStrategies:
    """Tests for build_strategies."""

    def test_default_order(self, fake_runner):
        """Test all strategies in fixed order."""
        strategies = build_strategies(fake_runner(), Config())
        assert [s.method for s in strategies] == [
            Method.FLAG,
            Method.HELP,
            Method.PACKAGE_MANAGER,
            Method.BINARY_STRINGS,
            Method.NO_ARGS,
        ]

    def test_order_independent_of_config(self, fake_runner):
        """Test configured method order does not change execution order."""
        config = Config(methods=("noargs", "strings", "flag"))
        strategies = build_strategies(fake_runner(), config)
        assert [s.method for s in strategies] == [Method.FLAG, Method.BINARY_STRINGS, Method.NO_ARGS]

    def test_help_probes_all_when_flags_disabled(self, fake_runner):
        """Test help mining repeats nothing only if flags actually ran."""
        strategies = build_strategies(fake_runner(), Config(methods=("help",)))
        assert strategies[0].probed_flags == frozenset()
