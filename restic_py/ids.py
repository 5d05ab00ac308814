"""
Snapshot identifiers.

restic identifies snapshots (and trees) by the SHA-256 of their content,
printed as 64 lowercase hex characters. The first 8 characters form the
short ID shown by ``restic snapshots``.
"""

import re
from typing import Union

ID_SIZE = 32

_HEX_ID = re.compile(r"[0-9a-fA-F]{%d}" % (ID_SIZE * 2))
_REFERENCE = re.compile(r"(latest|[0-9a-f]{8}|[0-9a-f]{64})(:.*)?", re.DOTALL)


def is_valid_reference(reference: str) -> bool:
    """
    Check whether *reference* names a snapshot restic can restore.

    Accepts ``latest``, a short (8 hex chars) or full (64 hex chars) ID, each
    optionally followed by ``:<path>`` to select a subfolder.
    """
    return bool(_REFERENCE.fullmatch(reference))


class ID:
    """A 32-byte content hash referencing data in a repository."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if len(raw) != ID_SIZE:
            raise ValueError(f"invalid length for ID: {len(raw)} bytes")
        self._raw = bytes(raw)

    @classmethod
    def parse(cls, value: str) -> "ID":
        """Parse an ID from its hex representation."""
        if not isinstance(value, str) or len(value) != ID_SIZE * 2:
            raise ValueError(f"invalid length for ID: {value!r}")
        if not _HEX_ID.fullmatch(value):
            raise ValueError(f"invalid ID: {value!r}")
        return cls(bytes.fromhex(value))

    @property
    def raw(self) -> bytes:
        return self._raw

    def short(self) -> str:
        """Return the 8-character short form."""
        return str(self)[:8]

    def to_json(self) -> str:
        return f'"{self}"'

    def __str__(self) -> str:
        return self._raw.hex()

    def __repr__(self) -> str:
        return f"ID({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ID):
            return self._raw == other._raw
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._raw)


def parse_id(value: Union[str, "ID"]) -> ID:
    """Return *value* as an ``ID``, parsing it if needed."""
    if isinstance(value, ID):
        return value
    return ID.parse(value)
