"""
restic-py - a typed Python facade over the restic backup tool.

Build restic invocations, run them, and get typed results back.
"""

from importlib.metadata import version as _version

from restic_py.context import Context
from restic_py.engine import (
    BackupSummary,
    ForgetGroup,
    ForgetReason,
    RestoreSummary,
    Snapshot,
)
from restic_py.engine.executor import CommandRunner, set_command_hook
from restic_py.engine.restic import Repository
from restic_py.errors import (
    CommandCancelledError,
    CommandError,
    DeadlineExceededError,
    InvalidPasswordError,
    InvalidSnapshotIDError,
    NoSummaryError,
    OutputLimitError,
    ParseError,
    RepositoryExistsError,
    RepositoryLockedError,
    RepositoryNotFoundError,
    ResticError,
    ResticNotFoundError,
    ResticVersionError,
    SnapshotNotFoundError,
    UsageError,
)
from restic_py.ids import ID, is_valid_reference
from restic_py.options import (
    filter_by_host,
    filter_by_path,
    filter_by_tag,
    filter_latest,
    forget_by_host,
    forget_by_path,
    forget_by_tag,
    forget_keep_last,
    forget_snapshot,
    forget_with_prune,
    restore_by_host,
    restore_by_path,
    restore_by_tag,
    restore_exclude,
    restore_include,
    with_exclude,
    with_host,
    with_include,
    with_tags,
)

__version__ = _version("restic-py")

__all__ = [
    "BackupSummary",
    "CommandCancelledError",
    "CommandError",
    "CommandRunner",
    "Context",
    "DeadlineExceededError",
    "ForgetGroup",
    "ForgetReason",
    "ID",
    "InvalidPasswordError",
    "InvalidSnapshotIDError",
    "NoSummaryError",
    "OutputLimitError",
    "ParseError",
    "Repository",
    "RepositoryExistsError",
    "RepositoryLockedError",
    "RepositoryNotFoundError",
    "ResticError",
    "ResticNotFoundError",
    "ResticVersionError",
    "RestoreSummary",
    "Snapshot",
    "SnapshotNotFoundError",
    "UsageError",
    "filter_by_host",
    "filter_by_path",
    "filter_by_tag",
    "filter_latest",
    "forget_by_host",
    "forget_by_path",
    "forget_by_tag",
    "forget_keep_last",
    "forget_snapshot",
    "forget_with_prune",
    "is_valid_reference",
    "restore_by_host",
    "restore_by_path",
    "restore_by_tag",
    "restore_exclude",
    "restore_include",
    "set_command_hook",
    "with_exclude",
    "with_host",
    "with_include",
    "with_tags",
]
