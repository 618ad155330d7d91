"""
Shared fixtures: throw-away programs and a scripted sandbox runner.
"""

from unittest.mock import MagicMock

import pytest

from version_finder import config as config_module
from version_finder.sandbox import ExecutionResult, Outcome, SandboxRunner


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep real config files and VERSION_FINDER_* variables out of tests."""
    monkeypatch.setattr(config_module, "CONFIG_LOCATIONS", [])
    for name in (
        "VERSION_FINDER_USER",
        "VERSION_FINDER_TIMEOUT",
        "VERSION_FINDER_DEBUG",
        "VERSION_FINDER_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_script(tmp_path):
    """Create an executable /bin/sh script in tmp_path."""
    def _make(name, body, mode=0o755, directory=None):
        path = (directory or tmp_path) / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(mode)
        return str(path)
    return _make


@pytest.fixture
def make_result():
    """Build ExecutionResult values with sensible defaults."""
    def _make(stdout="", stderr="", exit_code=0, outcome=None):
        if outcome is None:
            outcome = Outcome.SUCCESS if exit_code == 0 else Outcome.COMMAND_ERROR
        return ExecutionResult(outcome=outcome, exit_code=exit_code, stdout=stdout, stderr=stderr)
    return _make


@pytest.fixture
def fake_runner(make_result):
    """
    SandboxRunner double answering from a table keyed by argument tuple.

    Unlisted invocations fail with exit code 2 and an unknown-option error.
    """
    def _make(responses=None, can_execute=True):
        responses = dict(responses or {})
        rejected = make_result(stderr="error: unknown option", exit_code=2)

        runner = MagicMock(spec=SandboxRunner)
        runner.restricted_user = "versionchecker"
        runner.run.side_effect = lambda path, args=(), timeout_seconds=None: responses.get(
            tuple(args), rejected
        )
        runner.can_execute.return_value = can_execute
        return runner
    return _make
