"""
Sandboxed execution of untrusted programs.

Every invocation runs as a restricted, non-interactive account through
``sudo -n``, with an environment rebuilt from an allow-list and a hard
wall-clock limit. Output is captured on pipes, so nothing is left on disk.
"""

from __future__ import annotations

import os
import pwd
import re
import shutil
import signal
import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from .common import get_invoking_user, get_os_type
from .config import Config, SandboxConfig
from .errors import PrivilegeSetupError
from .logging_config import get_logger


STDERR_MARKER = "--- STDERR ---"

# Exit statuses of GNU timeout: TERM was enough / KILL was needed
TIMEOUT_EXIT_CODES = (124, 137)

# Never handed to the target, whatever the configuration says
SESSION_VARIABLES = frozenset({
    "DISPLAY",
    "XAUTHORITY",
    "WAYLAND_DISPLAY",
    "DBUS_SESSION_BUS_ADDRESS",
    "XDG_RUNTIME_DIR",
    "XDG_CURRENT_DESKTOP",
    "DESKTOP_SESSION",
    "SESSION_MANAGER",
    "GNOME_TERMINAL_SCREEN",
    "TERM_SESSION_ID",
    "TMUX",
    "TMUX_PANE",
    "STY",
    "WINDOWID",
    "SUDO_ASKPASS",
})
SESSION_PREFIXES = ("XDG_SESSION_", "SSH_", "DBUS_", "WAYLAND_", "KDE_", "GNOME_")

PRIVILEGE_ERROR_RE = re.compile(
    r"sudo: (a password is required"
    r"|sorry, you must have a tty"
    r"|a terminal is required"
    r"|unknown user"
    r"|.*is not allowed to execute"
    r"|.*is not in the sudoers file)",
    re.IGNORECASE,
)

# stderr produced by argument parsers rejecting the probe flag
FLAG_NOISE_RE = re.compile(
    r"flag provided but not defined"
    r"|unrecognized option"
    r"|unrecognised option"
    r"|unknown option"
    r"|invalid option"
    r"|illegal option",
    re.IGNORECASE,
)

USER_HINTS = {
    "linux": "sudo useradd -r -s /bin/false {user}",
    "macos": "sudo dscl . -create /Users/{user} UserShell /usr/bin/false",
    "freebsd": "sudo pw useradd {user} -d /nonexistent -s /usr/sbin/nologin",
}
SUDOERS_HINT = "Add a sudoers rule: <your_user> ALL=({user}) NOPASSWD: ALL"


class Outcome(Enum):
    """Tri-state execution outcome plus the fatal privilege case."""
    SUCCESS = "success"
    COMMAND_ERROR = "command-error"
    TIMED_OUT = "timed-out"
    PRIVILEGE_ERROR = "privilege-error"


@dataclass(frozen=True)
class ExecutionRequest:
    """
    A single sandboxed invocation.

    Attributes:
        path: Absolute path of the program
        args: Arguments passed to the program
        timeout_seconds: Wall-clock limit
        restricted_user: Account the program runs as
        environment: Complete environment of the program
    """
    path: str
    args: tuple[str, ...]
    timeout_seconds: float
    restricted_user: str
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionResult:
    """
    Captured result of a sandboxed invocation.

    Attributes:
        outcome: Execution outcome
        exit_code: Process exit code (None when timed out or never started)
        stdout: Captured standard output
        stderr: Captured standard error
        duration_seconds: Wall-clock time spent
    """
    outcome: Outcome
    exit_code: int | None
    stdout: str
    stderr: str
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def has_output(self) -> bool:
        return bool(self.stdout.strip() or self.stderr.strip())


def is_session_variable(name: str) -> bool:
    """Check whether an environment variable belongs to a login/display session."""
    return name in SESSION_VARIABLES or name.startswith(SESSION_PREFIXES)


def build_environment(sandbox: SandboxConfig) -> dict[str, str]:
    """
    Build the allow-listed environment for one execution.

    Args:
        sandbox: Sandbox settings

    Returns:
        New environment mapping (never derived from os.environ)
    """
    env = {
        "PATH": sandbox.path,
        "HOME": sandbox.home,
        "LC_ALL": sandbox.locale,
        "TERM": "dumb",  # Disable ANSI/color output
    }
    for name, value in sandbox.extra_env.items():
        if is_session_variable(name):
            get_logger().debug(f"Dropping session variable from sandbox environment: {name}")
            continue
        env[name] = value
    return env


def merge_output(result: ExecutionResult, drop_noise: bool = True) -> str:
    """
    Combine stdout and stderr for analysis.

    stderr is appended under a marker line unless it looks like an
    argument parser rejecting the flag.

    Args:
        result: Execution result
        drop_noise: Leave out stderr that only reports an unknown flag

    Returns:
        Text to classify
    """
    output = result.stdout
    stderr = result.stderr
    if not stderr.strip():
        return output
    if drop_noise and FLAG_NOISE_RE.search(stderr):
        get_logger().debug("Ignoring stderr content (likely flag error)")
        return output
    if output and not output.endswith("\n"):
        output += "\n"
    return f"{output}{STDERR_MARKER}\n{stderr}"


def default_timeout_command(os_type: str | None = None) -> str:
    """
    Get the GNU timeout binary name for the platform.

    Args:
        os_type: Platform family (detected when None)

    Returns:
        Binary name, or empty string when unsupported
    """
    os_type = os_type or get_os_type()
    if os_type == "linux":
        return "timeout"
    if os_type in {"macos", "freebsd"}:
        return "gtimeout"
    return ""


class SandboxRunner:
    """
    Runs programs as the restricted user with a scrubbed environment.

    Attributes:
        restricted_user: Account programs run as
        environment: Allow-listed environment used for every request
        timeout_seconds: Default wall-clock limit
        timeout_command: GNU timeout binary run inside the elevation, or ""
    """

    # Parent-side slack on top of the inner timeout before SIGKILL
    KILL_GRACE_SECONDS = 2.0

    def __init__(
        self,
        restricted_user: str,
        environment: dict[str, str],
        timeout_seconds: float = 2,
        timeout_command: str = "",
    ):
        self.restricted_user = restricted_user
        self.environment = dict(environment)
        self.timeout_seconds = timeout_seconds
        self.timeout_command = timeout_command

    @classmethod
    def from_config(cls, config: Config) -> SandboxRunner:
        """Create a runner from configuration."""
        timeout_command = config.sandbox.timeout_command
        if timeout_command is None:
            timeout_command = default_timeout_command()
        return cls(
            restricted_user=config.restricted_user,
            environment=build_environment(config.sandbox),
            timeout_seconds=config.timeout_seconds,
            timeout_command=timeout_command,
        )

    def _elevation_prefix(self) -> list[str]:
        # -n: fail instead of prompting for a password
        return ["sudo", "-n", "-u", self.restricted_user, "--"]

    def _timeout_prefix(self, timeout_seconds: float) -> list[str]:
        if not self.timeout_command:
            return []
        return [self.timeout_command, "-k", "1", f"{timeout_seconds:g}"]

    def build_command(self, request: ExecutionRequest) -> list[str]:
        """
        Build the full argv for a request.

        Args:
            request: Execution request

        Returns:
            argv: elevation, timeout wrapper, ``env -i`` with the allow-list, program
        """
        env_args = [f"{name}={value}" for name, value in sorted(request.environment.items())]
        return [
            *self._elevation_prefix(),
            *self._timeout_prefix(request.timeout_seconds),
            "env", "-i", *env_args,
            request.path, *request.args,
        ]

    def run(
        self,
        path: str,
        args: Sequence[str] = (),
        timeout_seconds: float | None = None,
    ) -> ExecutionResult:
        """
        Run a program in the sandbox.

        Args:
            path: Absolute path of the program
            args: Arguments
            timeout_seconds: Wall-clock limit (runner default when None)

        Returns:
            ExecutionResult
        """
        request = ExecutionRequest(
            path=path,
            args=tuple(args),
            timeout_seconds=timeout_seconds or self.timeout_seconds,
            restricted_user=self.restricted_user,
            environment=dict(self.environment),
        )
        return self.execute(request)

    def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute a prepared request.

        Args:
            request: Execution request

        Returns:
            ExecutionResult
        """
        argv = self.build_command(request)
        get_logger().debug(f"Executing as '{request.restricted_user}': {request.path} {' '.join(request.args)}")
        return self._spawn(argv, request.timeout_seconds, wrapped=bool(self.timeout_command))

    def _spawn(self, argv: list[str], timeout_seconds: float, wrapped: bool) -> ExecutionResult:
        """Spawn argv, wait under the deadline and classify the result."""
        logger = get_logger()
        deadline = timeout_seconds + self.KILL_GRACE_SECONDS if wrapped else timeout_seconds
        start = time.monotonic()
        backstop_fired = False

        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,  # Own process group for killpg
            )
        except OSError as e:
            logger.debug(f"Could not start {argv[0]}: {e}")
            return ExecutionResult(
                outcome=Outcome.PRIVILEGE_ERROR,
                exit_code=None,
                stdout="",
                stderr=str(e),
            )

        stdout_b: bytes | None = b""
        stderr_b: bytes | None = b""
        try:
            try:
                stdout_b, stderr_b = proc.communicate(timeout=deadline)
            except subprocess.TimeoutExpired:
                backstop_fired = True
                logger.debug(f"Deadline of {deadline:g}s exceeded, killing process group {proc.pid}")
                self._kill(proc)
                try:
                    stdout_b, stderr_b = proc.communicate(timeout=self.KILL_GRACE_SECONDS)
                except subprocess.TimeoutExpired:
                    stdout_b, stderr_b = b"", b""
        finally:
            # Also reached on KeyboardInterrupt and other signals
            if proc.poll() is None:
                self._kill(proc)
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()

        duration = time.monotonic() - start
        stdout = _decode(stdout_b)
        stderr = _decode(stderr_b)

        if backstop_fired:
            return ExecutionResult(Outcome.TIMED_OUT, None, stdout, stderr, duration)

        code = proc.returncode
        if code == 0:
            outcome = Outcome.SUCCESS
        elif wrapped and code in TIMEOUT_EXIT_CODES and duration >= timeout_seconds:
            outcome = Outcome.TIMED_OUT
            code = None
        elif code == 1 and PRIVILEGE_ERROR_RE.search(stderr):
            outcome = Outcome.PRIVILEGE_ERROR
        else:
            outcome = Outcome.COMMAND_ERROR

        logger.debug(f"Finished with outcome {outcome.value} (exit code {code}) in {duration:.2f}s")
        return ExecutionResult(outcome, code, stdout, stderr, duration)

    def _kill(self, proc: subprocess.Popen) -> None:
        """
        Kill the whole process group of proc with SIGKILL and reap it.

        A root-owned sudo parent cannot be signalled by the invoking user;
        the inner timeout wrapper is what terminates the program then.
        """
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        except PermissionError:
            get_logger().warning(f"Not permitted to signal process group {proc.pid}")
        try:
            proc.wait(timeout=self.KILL_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            get_logger().warning(f"Process {proc.pid} did not exit after SIGKILL")

    def check_privilege(self) -> ExecutionResult:
        """
        Check that the restricted user can be assumed without a prompt.

        Returns:
            ExecutionResult of running ``true`` as the restricted user
        """
        return self._spawn([*self._elevation_prefix(), "true"], self.timeout_seconds, wrapped=False)

    def can_execute(self, path: str) -> bool:
        """
        Dry run: can the restricted user execute path?

        Args:
            path: Absolute path of the program

        Returns:
            True if ``test -x`` succeeds as the restricted user

        Raises:
            PrivilegeSetupError: If elevation itself fails
        """
        result = self._spawn(
            [*self._elevation_prefix(), "test", "-x", path],
            self.timeout_seconds,
            wrapped=False,
        )
        if result.outcome is Outcome.PRIVILEGE_ERROR:
            raise PrivilegeSetupError(
                f"Cannot run commands as '{self.restricted_user}' via passwordless sudo.",
                remediation=SUDOERS_HINT.format(user=self.restricted_user),
            )
        return result.succeeded

    def verify_prerequisites(self) -> None:
        """
        Verify the sandbox can be used at all.

        Raises:
            PrivilegeSetupError: If any prerequisite is missing
        """
        user = self.restricted_user
        os_type = get_os_type()

        if get_invoking_user() == user:
            raise PrivilegeSetupError(
                f"The restricted user '{user}' must differ from the invoking user.",
                remediation="Run as a regular user or configure a different restricted_user.",
            )

        try:
            pwd.getpwnam(user)
        except KeyError:
            raise PrivilegeSetupError(
                f"User '{user}' does not exist.",
                remediation=USER_HINTS.get(os_type, USER_HINTS["linux"]).format(user=user),
            ) from None

        if not shutil.which("sudo"):
            raise PrivilegeSetupError("sudo is not installed.")

        if self.timeout_command and not shutil.which(self.timeout_command):
            hint = "brew install coreutils" if os_type == "macos" else "pkg install coreutils"
            raise PrivilegeSetupError(
                f"GNU timeout ({self.timeout_command}) not found.",
                remediation=hint if os_type in {"macos", "freebsd"} else None,
            )

        result = self.check_privilege()
        if not result.succeeded:
            raise PrivilegeSetupError(
                f"Current user '{get_invoking_user()}' cannot run commands as '{user}' via passwordless sudo.",
                remediation=SUDOERS_HINT.format(user=user),
            )
        get_logger().debug(f"Passwordless sudo to '{user}' works")


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")
