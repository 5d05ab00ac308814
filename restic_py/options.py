"""
Option records for restic commands.

Each command family has a dataclass holding its options. Records start out
zero-valued, are filled in by applying option functions (``with_tags("daily")``,
``forget_keep_last(3)``, ...) and are compiled to restic arguments with
``args()``. Compiling never fails: unset options simply add nothing.

The flag order emitted by ``args()`` is fixed and does not depend on the order
in which option functions were applied.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Type, TypeVar

T = TypeVar("T", bound="_Options")


class _Options:
    """Shared build logic for option records."""

    @classmethod
    def build(cls: Type[T], *options: Callable[[T], None]) -> T:
        """Apply option functions, in order, to a zero-valued record."""
        record = cls()
        for option in options:
            option(record)
        return record

    def args(self) -> List[str]:
        raise NotImplementedError

    def is_empty(self) -> bool:
        """Return True when no option contributes any argument."""
        return not self.args()


def _repeat(flag: str, values: List[str]) -> List[str]:
    args: List[str] = []
    for value in values:
        args.extend([flag, value])
    return args


def _filter_args(hosts: List[str], paths: List[str], tags: List[str]) -> List[str]:
    return _repeat("--host", hosts) + _repeat("--path", paths) + _repeat("--tag", tags)


@dataclass
class BackupOptions(_Options):
    """Options for ``restic backup``."""

    host: str = ""
    tags: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)

    def args(self) -> List[str]:
        args: List[str] = []
        if self.host:
            args.extend(["--host", self.host])
        args.extend(_repeat("--tag", self.tags))
        args.extend(_repeat("--exclude", self.exclude))
        args.extend(_repeat("--include", self.include))
        return args


@dataclass
class FilterOptions(_Options):
    """Snapshot filters for ``restic snapshots``."""

    hosts: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    latest: int = 0

    def args(self) -> List[str]:
        args = _filter_args(self.hosts, self.paths, self.tags)
        if self.latest > 0:
            args.extend(["--latest", str(self.latest)])
        return args


@dataclass
class ForgetOptions(_Options):
    """Options for ``restic forget``."""

    snapshot_id: str = ""
    hosts: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    keep_last: int = 0
    prune: bool = False

    def args(self) -> List[str]:
        args: List[str] = []
        # restic reads the snapshot ID positionally, it has to come first.
        if self.snapshot_id:
            args.append(self.snapshot_id)
        args.extend(_filter_args(self.hosts, self.paths, self.tags))
        if self.keep_last > 0:
            args.extend(["--keep-last", str(self.keep_last)])
        if self.prune:
            args.append("--prune")
        return args


@dataclass
class RestoreOptions(_Options):
    """Options for ``restic restore``."""

    hosts: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    include: List[str] = field(default_factory=list)

    def args(self) -> List[str]:
        args = _filter_args(self.hosts, self.paths, self.tags)
        args.extend(_repeat("--exclude", self.exclude))
        args.extend(_repeat("--include", self.include))
        return args


BackupOption = Callable[[BackupOptions], None]
FilterOption = Callable[[FilterOptions], None]
ForgetOption = Callable[[ForgetOptions], None]
RestoreOption = Callable[[RestoreOptions], None]


# Backup options


def with_host(host: str) -> BackupOption:
    """Set the hostname recorded in the snapshot."""

    def apply(opts: BackupOptions) -> None:
        opts.host = host

    return apply


def with_tags(*tags: str) -> BackupOption:
    """Add tags to the snapshot."""

    def apply(opts: BackupOptions) -> None:
        opts.tags.extend(tags)

    return apply


def with_exclude(*patterns: str) -> BackupOption:
    """Exclude files matching the given patterns."""

    def apply(opts: BackupOptions) -> None:
        opts.exclude.extend(patterns)

    return apply


def with_include(*patterns: str) -> BackupOption:
    """Explicitly include files matching the given patterns."""

    def apply(opts: BackupOptions) -> None:
        opts.include.extend(patterns)

    return apply


# Snapshot filters


def filter_by_host(*hosts: str) -> FilterOption:
    def apply(opts: FilterOptions) -> None:
        opts.hosts.extend(hosts)

    return apply


def filter_by_path(*paths: str) -> FilterOption:
    def apply(opts: FilterOptions) -> None:
        opts.paths.extend(paths)

    return apply


def filter_by_tag(*tags: str) -> FilterOption:
    def apply(opts: FilterOptions) -> None:
        opts.tags.extend(tags)

    return apply


def filter_latest(n: int) -> FilterOption:
    """Only return the latest *n* snapshots per host and path."""

    def apply(opts: FilterOptions) -> None:
        opts.latest = n

    return apply


# Forget options


def forget_snapshot(snapshot_id: str) -> ForgetOption:
    """
    Forget one specific snapshot.

    restic ignores host, path and tag filters when an ID is given.
    """

    def apply(opts: ForgetOptions) -> None:
        opts.snapshot_id = snapshot_id

    return apply


def forget_with_prune() -> ForgetOption:
    """Prune unreferenced data right after forgetting."""

    def apply(opts: ForgetOptions) -> None:
        opts.prune = True

    return apply


def forget_by_host(*hosts: str) -> ForgetOption:
    def apply(opts: ForgetOptions) -> None:
        opts.hosts.extend(hosts)

    return apply


def forget_by_path(*paths: str) -> ForgetOption:
    def apply(opts: ForgetOptions) -> None:
        opts.paths.extend(paths)

    return apply


def forget_by_tag(*tags: str) -> ForgetOption:
    def apply(opts: ForgetOptions) -> None:
        opts.tags.extend(tags)

    return apply


def forget_keep_last(n: int) -> ForgetOption:
    """Keep the last *n* snapshots."""

    def apply(opts: ForgetOptions) -> None:
        opts.keep_last = n

    return apply


# Restore options


def restore_by_host(*hosts: str) -> RestoreOption:
    def apply(opts: RestoreOptions) -> None:
        opts.hosts.extend(hosts)

    return apply


def restore_by_path(*paths: str) -> RestoreOption:
    def apply(opts: RestoreOptions) -> None:
        opts.paths.extend(paths)

    return apply


def restore_by_tag(*tags: str) -> RestoreOption:
    def apply(opts: RestoreOptions) -> None:
        opts.tags.extend(tags)

    return apply


def restore_exclude(*patterns: str) -> RestoreOption:
    def apply(opts: RestoreOptions) -> None:
        opts.exclude.extend(patterns)

    return apply


def restore_include(*patterns: str) -> RestoreOption:
    def apply(opts: RestoreOptions) -> None:
        opts.include.extend(patterns)

    return apply
