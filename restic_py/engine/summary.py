"""
Summary extraction from restic's JSON output.

With ``--json`` restic prints one JSON object per line: status updates while
it works, then a final summary. ``backup`` and ``restore`` tag the summary
with ``"message_type": "summary"``. ``forget`` has no such discriminator and
only prints a record carrying a ``"tags"`` field, so that is used as a
fallback when no tagged summary shows up.
"""

import logging
from typing import Optional

import orjson

from restic_py.errors import NoSummaryError

logger = logging.getLogger("restic_py.engine.summary")

SUMMARY_MESSAGE_TYPE = "summary"
TAGS_MARKER = '"tags":'


def _message_type(line: str) -> Optional[str]:
    try:
        data = orjson.loads(line)
    except orjson.JSONDecodeError:
        return None
    if isinstance(data, dict):
        value = data.get("message_type")
        return value if isinstance(value, str) else None
    return None


def extract_summary(output: str) -> bytes:
    """
    Find the summary record in restic's line-delimited JSON output.

    The first line whose ``message_type`` is ``summary`` wins and ends the
    scan. Otherwise the last line containing a ``"tags":`` field is used,
    since later records supersede earlier ones.

    Args:
        output: Captured stdout of a restic command run with ``--json``

    Returns:
        The selected line, verbatim, as UTF-8 bytes

    Raises:
        NoSummaryError: No line qualifies under either rule
    """
    fallback: Optional[str] = None

    for line in output.splitlines():
        if not line.strip():
            continue
        if _message_type(line) == SUMMARY_MESSAGE_TYPE:
            return line.encode("utf-8")
        if TAGS_MARKER in line:
            fallback = line

    if fallback is not None:
        logger.debug("No summary message in output, using last tagged record")
        return fallback.encode("utf-8")

    raise NoSummaryError()
