"""
restic binary readiness check.

Before the first command runs we make sure the restic binary is on ``PATH``
and recent enough. The check runs once per binary and process; the outcome,
good or bad, is cached and shared by every caller.
"""

import logging
import re
import shutil
import subprocess
import threading
from typing import Dict, Optional

from packaging.version import InvalidVersion, Version

from restic_py.errors import ResticError, ResticNotFoundError, ResticVersionError

logger = logging.getLogger("restic_py.version")

RESTIC_BINARY = "restic"
MIN_VERSION = "0.16.0"

_VERSION_RE = re.compile(r"restic (\d+\.\d+\S*)")


def parse_version(text: str) -> Optional[Version]:
    """
    Extract the version from ``restic version`` output.

    Returns:
        The parsed version, or None when the output names no version

    Raises:
        InvalidVersion: The version token is not a valid version string
    """
    match = _VERSION_RE.search(text)
    if not match:
        return None
    return Version(match.group(1))


class VersionChecker:
    """Checks, once, that a restic binary is installed and new enough."""

    def __init__(self, binary: str = RESTIC_BINARY, min_version: str = MIN_VERSION):
        self.binary = binary
        self.min_version = min_version
        self._lock = threading.Lock()
        self._checked = False
        self._error: Optional[ResticError] = None

    def ensure_ready(self) -> None:
        """
        Raise the cached readiness error, running the check on first use.

        Raises:
            ResticNotFoundError: The binary is not on PATH
            ResticVersionError: The binary is older than ``min_version``
        """
        with self._lock:
            if not self._checked:
                self._error = self._check()
                self._checked = True
            error = self._error

        if error is not None:
            raise type(error)(str(error))

    def _check(self) -> Optional[ResticError]:
        path = shutil.which(self.binary)
        if path is None:
            logger.error(f"{self.binary} must be installed and exported in $PATH")
            return ResticNotFoundError(f"{self.binary} binary not found in PATH")

        try:
            result = subprocess.run(
                [path, "version"],
                capture_output=True,
                text=True,
                check=True,
            )
        except (subprocess.CalledProcessError, OSError) as e:
            logger.error(f"Failed to run '{self.binary} version': {e}")
            return ResticNotFoundError(f"failed to run {self.binary} version: {e}")

        try:
            found = parse_version(result.stdout)
        except InvalidVersion as e:
            logger.error(f"Unrecognized restic version: {e}")
            found = None

        if found is None or found < Version(self.min_version):
            logger.error(f"restic must be minimum version {self.min_version}")
            return ResticVersionError(
                f"restic must be minimum version {self.min_version}, "
                f"got: {result.stdout.strip()}"
            )

        logger.debug(f"Using {path} ({result.stdout.strip()})")
        return None


_checkers: Dict[str, VersionChecker] = {}
_checkers_lock = threading.Lock()


def default_checker(binary: str = RESTIC_BINARY) -> VersionChecker:
    """Return the process-wide checker for *binary*."""
    with _checkers_lock:
        checker = _checkers.get(binary)
        if checker is None:
            checker = _checkers[binary] = VersionChecker(binary)
        return checker
