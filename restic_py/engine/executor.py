"""
Subprocess execution for restic commands.

``CommandRunner`` launches restic with the repository location and password
injected through the environment, captures stdout and stderr into bounded
buffers and honours the caller's ``Context`` for cancellation and deadlines.
"""

import logging
import os
import shlex
import subprocess
import threading
from pathlib import Path
from typing import IO, Callable, Dict, List, Optional, Sequence

from restic_py.context import Context
from restic_py.errors import (
    OutputLimitError,
    ResticNotFoundError,
    UsageError,
    classify_stderr,
)
from restic_py.version import RESTIC_BINARY, VersionChecker, default_checker

logger = logging.getLogger("restic_py.engine.executor")

DEFAULT_MAX_OUTPUT = 64 * 1024 * 1024
DEFAULT_MAX_ERROR = 1024 * 1024

# How often a waiting command re-checks its context.
POLL_INTERVAL = 0.1

_READ_CHUNK = 64 * 1024

CommandHook = Callable[[Context, List[str]], None]

_command_hook: Optional[CommandHook] = None


def set_command_hook(hook: Optional[CommandHook]) -> None:
    """
    Install a hook called with the argument vector of every restic command.

    The hook runs right before the process is started. Pass None to remove it.
    """
    global _command_hook
    _command_hook = hook


class LimitedBuffer:
    """A byte buffer that refuses to grow past *limit* bytes."""

    def __init__(self, limit: int):
        self.limit = limit
        self._buf = bytearray()

    def write(self, data: bytes) -> int:
        """
        Append *data* to the buffer.

        Raises:
            OutputLimitError: The write would exceed the limit. Nothing is stored.
        """
        if len(self._buf) + len(data) > self.limit:
            raise OutputLimitError(f"output exceeds limit of {self.limit} bytes")
        self._buf.extend(data)
        return len(data)

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def __len__(self) -> int:
        return len(self._buf)


class _Pump(threading.Thread):
    """Copies a child's pipe into a ``LimitedBuffer`` until EOF or overflow."""

    def __init__(
        self, stream: IO[bytes], buffer: LimitedBuffer, overflow: threading.Event
    ):
        super().__init__(daemon=True)
        self.stream = stream
        self.buffer = buffer
        self.overflow = overflow
        self.error: Optional[OutputLimitError] = None

    def run(self) -> None:
        try:
            while True:
                chunk = os.read(self.stream.fileno(), _READ_CHUNK)
                if not chunk:
                    break
                self.buffer.write(chunk)
        except OutputLimitError as e:
            self.error = e
            self.overflow.set()
        except (OSError, ValueError):
            # The pipe was closed under us after the process was killed.
            pass
        finally:
            self.stream.close()


class CommandRunner:
    """Runs restic commands for a repository."""

    def __init__(
        self,
        binary: str = RESTIC_BINARY,
        max_output: int = DEFAULT_MAX_OUTPUT,
        max_error: int = DEFAULT_MAX_ERROR,
        checker: Optional[VersionChecker] = None,
    ):
        """
        Initialize the runner.

        Args:
            binary: Name or path of the restic binary
            max_output: Maximum number of stdout bytes kept from one command
            max_error: Maximum number of stderr bytes kept from one command
            checker: Readiness check to consult before each command
        """
        self.binary = binary
        self.max_output = max_output
        self.max_error = max_error
        self.checker = checker or default_checker(binary)

    def _get_env(self, location: str, password: str) -> Dict[str, str]:
        """Build the child environment from scratch."""
        env = {
            "RESTIC_PASSWORD": password,
            "RESTIC_REPOSITORY": location,
        }
        try:
            env["HOME"] = str(Path.home())
        except (RuntimeError, KeyError):
            logger.debug("Could not determine home directory, HOME not set")
        env["PATH"] = os.environ.get("PATH", "")
        return env

    def run(
        self,
        ctx: Optional[Context],
        location: str,
        password: str,
        args: Sequence[str],
        cwd: Optional[str] = None,
    ) -> str:
        """
        Run restic and return its standard output.

        Args:
            ctx: Context controlling cancellation and deadline
            location: Repository location (``RESTIC_REPOSITORY``)
            password: Repository password (``RESTIC_PASSWORD``)
            args: restic arguments, subcommand first
            cwd: Working directory for the process

        Returns:
            The captured stdout text

        Raises:
            UsageError: Empty repository location or password
            CommandCancelledError: The context was cancelled or expired
            OutputLimitError: restic wrote more than the configured limit
            ResticError: restic failed, classified from its stderr
        """
        if not location:
            raise UsageError("repository path is empty")
        if not password:
            raise UsageError("repository password is empty")

        ctx = ctx or Context()
        cancelled = ctx.error()
        if cancelled is not None:
            raise cancelled

        self.checker.ensure_ready()

        argv = list(args)
        if _command_hook is not None:
            _command_hook(ctx, argv)

        cmd = [self.binary] + argv
        cmd_str = " ".join(shlex.quote(str(arg)) for arg in cmd)
        logger.debug(f"Running command: {cmd_str}")

        try:
            proc = subprocess.Popen(
                cmd,
                env=self._get_env(location, password),
                cwd=cwd or None,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            if e.filename != self.binary:
                raise
            raise ResticNotFoundError(f"{self.binary} binary not found") from e
        assert proc.stdout is not None and proc.stderr is not None

        overflow = threading.Event()
        stdout = LimitedBuffer(self.max_output)
        stderr = LimitedBuffer(self.max_error)
        pumps = [
            _Pump(proc.stdout, stdout, overflow),
            _Pump(proc.stderr, stderr, overflow),
        ]
        for pump in pumps:
            pump.start()

        try:
            self._wait(ctx, proc, overflow)
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            for pump in pumps:
                pump.join()

        for pump in pumps:
            if pump.error is not None:
                logger.error(f"Command output too large: {cmd_str}")
                raise pump.error

        stderr_text = stderr.getvalue().decode("utf-8", errors="replace")
        if proc.returncode != 0:
            logger.error(f"Command failed: {cmd_str}")
            logger.error(f"Return code: {proc.returncode}")
            logger.error(f"Stderr: {stderr_text}")
            raise classify_stderr(stderr_text)

        return stdout.getvalue().decode("utf-8", errors="replace")

    def _wait(
        self, ctx: Context, proc: "subprocess.Popen[bytes]", overflow: threading.Event
    ) -> None:
        """Block until the process exits, killing it on cancellation or overflow."""
        while True:
            cancelled = ctx.error()
            if cancelled is not None:
                logger.warning(f"Killing restic (pid {proc.pid}): {cancelled}")
                raise cancelled
            if overflow.is_set():
                return

            timeout = POLL_INTERVAL
            remaining = ctx.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)
            try:
                proc.wait(timeout=timeout)
                return
            except subprocess.TimeoutExpired:
                continue
