"""Cross-repository identity markers.

Every mirror commit produced by the engine ends with a git trailer naming
the standard commit it replays::

    Mirror-Standard-Hash: 3f1c0d...

The mirror's own history is therefore the only state needed to resume: a
commit without exactly one well-formed marker is not ours.
"""

from __future__ import annotations

import re

MARKER_KEY = "Mirror-Standard-Hash"

_MARKER_LINE = re.compile(
    rf"^{MARKER_KEY}:[ \t]*(\S*)[ \t]*$", re.MULTILINE | re.IGNORECASE
)
_HASH = re.compile(r"^[0-9a-f]{40}$")


def format_marker(standard_hash: str) -> str:
    return f"{MARKER_KEY}: {standard_hash}"


def strip_markers(message: str) -> str:
    """Remove every marker line from *message*."""
    return _MARKER_LINE.sub("", message).rstrip()


def with_marker(message: str, standard_hash: str) -> str:
    """Return *message* carrying exactly one marker for *standard_hash*.

    Marker lines already present (e.g. a standard commit that quotes one)
    are dropped first.
    """
    if not _HASH.match(standard_hash):
        raise ValueError(f"Not a full commit hash: {standard_hash!r}")
    body = strip_markers(message)
    if not body:
        return format_marker(standard_hash) + "\n"
    return f"{body}\n\n{format_marker(standard_hash)}\n"


def parse_marker(message: str) -> str | None:
    """Extract the standard hash from a mirror commit message.

    Returns ``None`` when the message has no marker, a malformed one, or
    markers naming different commits.
    """
    values = {m.group(1).lower() for m in _MARKER_LINE.finditer(message)}
    if len(values) != 1:
        return None
    (value,) = values
    return value if _HASH.match(value) else None
