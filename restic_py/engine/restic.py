"""
Restic repository facade for restic-py.

This module provides ``Repository``, a typed wrapper around the restic
command-line tool. Each method builds the restic arguments, runs restic
through a ``CommandRunner`` and turns its JSON output into result objects.
Failures surface as the exceptions in ``restic_py.errors``.
"""

import logging
import os
from pathlib import Path, PurePath
from typing import Any, List, Optional, Sequence, Union

import orjson

from restic_py.context import Context
from restic_py.engine import BackupSummary, ForgetGroup, RestoreSummary, Snapshot
from restic_py.engine.executor import CommandRunner
from restic_py.engine.summary import extract_summary
from restic_py.errors import (
    InvalidSnapshotIDError,
    ParseError,
    SnapshotNotFoundError,
    UsageError,
)
from restic_py.ids import is_valid_reference
from restic_py.options import (
    BackupOption,
    BackupOptions,
    FilterOption,
    FilterOptions,
    ForgetOption,
    ForgetOptions,
    RestoreOption,
    RestoreOptions,
)

logger = logging.getLogger("restic_py.engine.restic")

PathLike = Union[str, Path]


def _require_path(value: PathLike, what: str) -> str:
    # Path("") collapses to ".", so a Path without components counts as empty.
    if isinstance(value, PurePath):
        if not value.parts:
            raise UsageError(f"empty {what}")
        return str(value)
    if not value:
        raise UsageError(f"empty {what}")
    return value


def _decode(data: Union[str, bytes], what: str) -> Any:
    try:
        return orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise ParseError(f"failed to decode {what}: {e}") from e


class Repository:
    """
    Handle on a restic repository.

    A handle is just the repository location and its password. It holds no
    open resources, so it can be created freely and shared; restic's own
    repository locks are the only coordination between concurrent callers.
    """

    def __init__(
        self,
        location: str,
        password: str,
        runner: Optional[CommandRunner] = None,
    ):
        """
        Create a handle without touching the repository.

        Args:
            location: Repository location, as understood by restic (``-r``)
            password: Repository password
            runner: Command runner to use, a default ``CommandRunner`` if None
        """
        self._location = location
        self._password = password
        self._runner = runner or CommandRunner()

    @property
    def location(self) -> str:
        return self._location

    @property
    def password(self) -> str:
        return self._password

    def __repr__(self) -> str:
        return f"Repository(location={self._location!r})"

    @classmethod
    def open(
        cls, location: str, password: str, runner: Optional[CommandRunner] = None
    ) -> "Repository":
        """
        Open an existing repository.

        Nothing is checked here; call ``validate`` to verify the location and
        password before relying on them.
        """
        return cls(location, password, runner=runner)

    @classmethod
    def init(
        cls,
        location: str,
        password: str,
        ctx: Optional[Context] = None,
        runner: Optional[CommandRunner] = None,
    ) -> "Repository":
        """
        Initialize a new repository.

        Raises:
            RepositoryExistsError: A repository already exists at *location*
        """
        repo = cls(location, password, runner=runner)
        logger.info(f"Initializing repository at {location}")
        repo._run(ctx, ["init", "--json"])
        logger.info(f"Initialized repository at {location}")
        return repo

    def _run(
        self, ctx: Optional[Context], args: Sequence[str], cwd: Optional[str] = None
    ) -> str:
        return self._runner.run(ctx, self._location, self._password, args, cwd=cwd)

    def validate(self, ctx: Optional[Context] = None) -> None:
        """
        Check that the repository exists and the password is right.

        Raises:
            InvalidPasswordError: The password is wrong
            RepositoryNotFoundError: There is no repository at the location
        """
        self._run(ctx, ["snapshots", "--json", "--no-lock", "--latest", "1"])
        logger.debug(f"Repository {self._location} is accessible")

    def backup(
        self, path: PathLike, *options: BackupOption, ctx: Optional[Context] = None
    ) -> BackupSummary:
        """
        Back up the contents of a directory.

        restic runs inside *path* and backs up ``.``, so the snapshot records
        relative paths.

        Args:
            path: Directory to back up
            options: Backup options such as ``with_tags`` or ``with_host``
            ctx: Context for cancellation and deadline

        Returns:
            The backup summary

        Raises:
            UsageError: *path* is empty (including ``Path("")``, which equals
                ``Path(".")``) or not an existing directory
            ParseError: restic succeeded but its summary could not be read
        """
        source = _require_path(path, "path")
        if not os.path.exists(source):
            raise UsageError(f"backup source does not exist: {source}")
        if not os.path.isdir(source):
            raise UsageError(f"backup source is not a directory: {source}")

        args = ["backup", "--json"]
        args.extend(BackupOptions.build(*options).args())
        args.append(".")

        logger.info(f"Backing up {source}")
        stdout = self._run(ctx, args, cwd=source)

        summary = BackupSummary.from_dict(
            _decode(extract_summary(stdout), "backup summary")
        )
        logger.info(f"Created snapshot: {summary.snapshot_id}")
        return summary

    def _list(self, ctx: Optional[Context], args: List[str]) -> List[Snapshot]:
        stdout = self._run(ctx, ["snapshots", "--json", "--no-lock"] + args)
        data = _decode(stdout, "snapshot list")
        if not isinstance(data, list):
            raise ParseError(f"unexpected snapshot list payload: {type(data).__name__}")
        return [Snapshot.from_dict(snap) for snap in data]

    def snapshots(
        self, *filters: FilterOption, ctx: Optional[Context] = None
    ) -> List[Snapshot]:
        """
        List snapshots, optionally filtered.

        Runs without taking a repository lock (``--no-lock``).
        """
        return self._list(ctx, FilterOptions.build(*filters).args())

    def snapshot_by_id(
        self, snapshot_id: str, ctx: Optional[Context] = None
    ) -> Snapshot:
        """
        Return the snapshot with the given (short or full) ID.

        Raises:
            SnapshotNotFoundError: No snapshot matches *snapshot_id*
        """
        if not snapshot_id:
            raise UsageError("empty snapshot id")

        snapshots = self._list(ctx, [snapshot_id])
        if not snapshots:
            raise SnapshotNotFoundError(f"no snapshot with id '{snapshot_id}'")
        return snapshots[0]

    def restore(
        self,
        snapshot_id: str,
        target: PathLike,
        *options: RestoreOption,
        ctx: Optional[Context] = None,
    ) -> RestoreSummary:
        """
        Restore a snapshot into a directory.

        Args:
            snapshot_id: ``latest``, a short or full ID, optionally with ``:<path>``
            target: Directory to restore into, created if missing
            options: Restore options such as ``restore_include``
            ctx: Context for cancellation and deadline

        Returns:
            The restore summary

        Raises:
            UsageError: *target* is empty, ``Path("")`` included
            InvalidSnapshotIDError: *snapshot_id* is empty or not a valid reference
            ParseError: restic succeeded but its summary could not be read
        """
        target_dir = _require_path(target, "target path")
        if not is_valid_reference(snapshot_id):
            raise InvalidSnapshotIDError(f"invalid snapshot ID: {snapshot_id!r}")

        if not os.path.exists(target_dir):
            logger.debug(f"Creating restore target {target_dir}")
            os.makedirs(target_dir, mode=0o755, exist_ok=True)

        args = ["restore", snapshot_id, "--target", target_dir, "--json"]
        args.extend(RestoreOptions.build(*options).args())

        logger.info(f"Restoring snapshot {snapshot_id} to {target_dir}")
        stdout = self._run(ctx, args)

        summary = RestoreSummary.from_dict(
            _decode(extract_summary(stdout), "restore summary")
        )
        logger.info(
            f"Restored {summary.files_restored} of {summary.total_files} files "
            f"from snapshot {snapshot_id}"
        )
        return summary

    def forget(
        self, *options: ForgetOption, ctx: Optional[Context] = None
    ) -> List[ForgetGroup]:
        """
        Remove snapshots from the repository index.

        If a snapshot ID is given, restic ignores host, path and tag filters.
        restic prints no group report in that mode, so forgetting by ID removes
        the snapshot and then raises ``ParseError``.

        Returns:
            One ``ForgetGroup`` per snapshot group restic evaluated

        Raises:
            UsageError: No option was set
            ParseError: restic succeeded but its output could not be read. The
                snapshots were forgotten regardless.
        """
        forget_options = ForgetOptions.build(*options)
        if forget_options.is_empty():
            raise UsageError("at least one option must be set")

        args = ["forget"] + forget_options.args() + ["--json"]
        stdout = self._run(ctx, args)

        data = _decode(extract_summary(stdout), "forget output")
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ParseError(f"unexpected forget payload: {type(data).__name__}")

        groups = [ForgetGroup.from_dict(group) for group in data]
        removed = sum(len(group.remove) for group in groups)
        logger.info(f"Forgot {removed} snapshots")
        return groups

    def unlock(self, ctx: Optional[Context] = None) -> None:
        """Remove all locks, including those of other running processes."""
        self._run(ctx, ["unlock", "--remove-all", "--json"])
        logger.info(f"Removed all locks from {self._location}")
