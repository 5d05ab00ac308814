"""
Engine package for restic-py.

This module provides the result types produced by restic commands. They
mirror the JSON restic prints with ``--json`` and are built with
``from_dict``, which raises ``ParseError`` on malformed input.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from restic_py.errors import ParseError
from restic_py.ids import ID

_FRACTION = re.compile(r"\.(\d+)")


def parse_time(value: str) -> datetime:
    """
    Parse a restic timestamp.

    restic prints nanosecond precision (``2024-01-01T12:00:00.123456789Z``);
    the fraction is cut down to the microseconds ``datetime`` can hold.
    """
    value = value.replace("Z", "+00:00")
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, 1)
    return datetime.fromisoformat(value)


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ParseError(f"unexpected {what} payload: {type(data).__name__}")
    return data


def _optional_id(value: Any) -> Optional[ID]:
    if value in (None, ""):
        return None
    return ID.parse(value)


@dataclass
class BackupSummary:
    """Final summary of ``restic backup``."""

    snapshot_id: str = ""
    message_type: str = ""
    files_new: int = 0
    files_changed: int = 0
    files_unmodified: int = 0
    dirs_new: int = 0
    dirs_changed: int = 0
    dirs_unmodified: int = 0
    data_blobs: int = 0
    tree_blobs: int = 0
    data_added: int = 0
    total_files_processed: int = 0
    total_bytes_processed: int = 0
    total_duration: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> "BackupSummary":
        data = _require_dict(data, "backup summary")
        try:
            return cls(
                snapshot_id=str(data.get("snapshot_id") or ""),
                message_type=str(data.get("message_type") or ""),
                files_new=int(data.get("files_new", 0)),
                files_changed=int(data.get("files_changed", 0)),
                files_unmodified=int(data.get("files_unmodified", 0)),
                dirs_new=int(data.get("dirs_new", 0)),
                dirs_changed=int(data.get("dirs_changed", 0)),
                dirs_unmodified=int(data.get("dirs_unmodified", 0)),
                data_blobs=int(data.get("data_blobs", 0)),
                tree_blobs=int(data.get("tree_blobs", 0)),
                data_added=int(data.get("data_added", 0)),
                total_files_processed=int(data.get("total_files_processed", 0)),
                total_bytes_processed=int(data.get("total_bytes_processed", 0)),
                total_duration=float(data.get("total_duration", 0.0)),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"invalid backup summary: {e}") from e


@dataclass
class RestoreSummary:
    """Final summary of ``restic restore``."""

    message_type: str = ""
    total_files: int = 0
    files_restored: int = 0
    total_bytes: int = 0
    bytes_restored: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "RestoreSummary":
        data = _require_dict(data, "restore summary")
        try:
            return cls(
                message_type=str(data.get("message_type") or ""),
                total_files=int(data.get("total_files", 0)),
                files_restored=int(data.get("files_restored", 0)),
                total_bytes=int(data.get("total_bytes", 0)),
                bytes_restored=int(data.get("bytes_restored", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"invalid restore summary: {e}") from e


@dataclass
class Snapshot:
    """Represents a backup snapshot."""

    id: Optional[ID]
    time: datetime
    paths: List[str]
    short_id: str = ""
    tree: Optional[ID] = None
    parent: Optional[ID] = None
    original: Optional[ID] = None
    hostname: str = ""
    username: str = ""
    uid: int = 0
    gid: int = 0
    excludes: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    program_version: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        data = _require_dict(data, "snapshot")
        try:
            return cls(
                id=_optional_id(data.get("id")),
                short_id=data.get("short_id") or "",
                time=parse_time(data["time"]),
                paths=list(data.get("paths") or []),
                tree=_optional_id(data.get("tree")),
                parent=_optional_id(data.get("parent")),
                original=_optional_id(data.get("original")),
                hostname=data.get("hostname") or "",
                username=data.get("username") or "",
                uid=int(data.get("uid") or 0),
                gid=int(data.get("gid") or 0),
                excludes=list(data.get("excludes") or []),
                tags=list(data.get("tags") or []),
                program_version=data.get("program_version") or "",
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ParseError(f"invalid snapshot: {e!r}") from e


@dataclass
class ForgetReason:
    """Why ``restic forget`` kept a snapshot."""

    snapshot: Snapshot
    matches: List[str] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "ForgetReason":
        data = _require_dict(data, "forget reason")
        return cls(
            snapshot=Snapshot.from_dict(data.get("snapshot")),
            matches=list(data.get("matches") or []),
            counters=dict(data.get("counters") or {}),
        )


@dataclass
class ForgetGroup:
    """One snapshot group as reported by ``restic forget``."""

    tags: List[str] = field(default_factory=list)
    host: str = ""
    paths: List[str] = field(default_factory=list)
    keep: List[Snapshot] = field(default_factory=list)
    remove: List[Snapshot] = field(default_factory=list)
    reasons: List[ForgetReason] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "ForgetGroup":
        data = _require_dict(data, "forget group")
        try:
            return cls(
                tags=list(data.get("tags") or []),
                host=data.get("host") or "",
                paths=list(data.get("paths") or []),
                keep=[Snapshot.from_dict(s) for s in data.get("keep") or []],
                remove=[Snapshot.from_dict(s) for s in data.get("remove") or []],
                reasons=[ForgetReason.from_dict(r) for r in data.get("reasons") or []],
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"invalid forget group: {e}") from e
