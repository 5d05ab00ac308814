"""
Error types for restic-py.

restic has no structured error channel, so failures are recognized by
matching well-known fragments of its stderr output. ``classify_stderr`` maps
that text onto the closed set of exceptions defined here.
"""

import logging
from typing import List, Optional, Tuple, Type

logger = logging.getLogger("restic_py.errors")


class ResticError(Exception):
    """Base class for all errors raised by restic-py."""

    default_message = "restic command failed"

    def __init__(self, message: Optional[str] = None, stderr: str = ""):
        super().__init__(message or self.default_message)
        self.stderr = stderr


class RepositoryExistsError(ResticError):
    """Raised when initializing a repository that already exists."""

    default_message = "repository already exists"


class RepositoryNotFoundError(ResticError):
    """Raised when no repository exists at the given location."""

    default_message = "repository not found"


class InvalidPasswordError(ResticError):
    """Raised when the repository password is incorrect."""

    default_message = "invalid repository password"


class InvalidSnapshotIDError(ResticError):
    """Raised when a snapshot reference has an invalid format."""

    default_message = "invalid snapshot ID"


class RepositoryLockedError(ResticError):
    """Raised when the repository is locked by another process."""

    default_message = "repository locked by another process"


class ResticNotFoundError(ResticError):
    """Raised when the restic binary cannot be found in PATH."""

    default_message = "restic binary not found in PATH"


class ResticVersionError(ResticError):
    """Raised when the installed restic is older than the supported minimum."""

    default_message = "restic version does not meet minimum requirements"


class UsageError(ResticError, ValueError):
    """Raised for invalid arguments, before any command is run."""

    default_message = "invalid usage"


class ParseError(ResticError):
    """
    Raised when restic succeeded but its output could not be parsed.

    The operation itself did happen; only the structured result is missing.
    """

    default_message = "failed to parse restic output"


class NoSummaryError(ParseError):
    """Raised when restic output holds no summary record."""

    default_message = "no summary found"


class CommandCancelledError(ResticError):
    """Raised when the command context was cancelled."""

    default_message = "context canceled"


class DeadlineExceededError(CommandCancelledError):
    """Raised when the command context's deadline has passed."""

    default_message = "context deadline exceeded"


class OutputLimitError(ResticError):
    """Raised when restic writes more output than the configured limit."""

    default_message = "output limit exceeded"


class SnapshotNotFoundError(ResticError):
    """Raised when a snapshot lookup matches nothing."""

    default_message = "snapshot not found"


class CommandError(ResticError):
    """Generic restic failure carrying the raw stderr text."""


# First match wins, so keep the order stable.
_STDERR_PATTERNS: List[Tuple[str, Type[ResticError]]] = [
    ("config file already exists", RepositoryExistsError),
    ("wrong password", InvalidPasswordError),
    ("invalid password", InvalidPasswordError),
    ("Is there a repository at the following location?", RepositoryNotFoundError),
    ("repository does not exist", RepositoryNotFoundError),
    ("unable to create lock in backend", RepositoryLockedError),
    ("repository is already locked", RepositoryLockedError),
    ("returned error, retrying after", InvalidSnapshotIDError),
]


def classify_stderr(stderr: str) -> ResticError:
    """
    Translate restic's stderr output into a typed error.

    Args:
        stderr: Captured standard error of a failed restic command

    Returns:
        The matching ``ResticError`` subclass instance, or a ``CommandError``
        carrying the raw text when nothing matched
    """
    for fragment, error_cls in _STDERR_PATTERNS:
        if fragment in stderr:
            logger.debug(f"Classified restic error as {error_cls.__name__}")
            return error_cls(stderr=stderr)

    return CommandError(stderr.strip() or None, stderr=stderr)
