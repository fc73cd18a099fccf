"""
Input validation functions for history-mirror.

Provides validation for revisions and allow-list paths so bad input is
rejected before any git command runs.
"""

import re
from pathlib import PurePosixPath

_HEX = re.compile(r"^[0-9a-fA-F]+$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Root commit")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_revision(revision: str) -> tuple[bool, str]:
    """
    Validate a revision given on the command line.

    Args:
        revision: Commit hash or ref name

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or contain whitespace
        - Cannot start with '-' (would be read as a git option)
        - Cannot be a range ('..')
        - A purely hexadecimal revision must be 4 to 40 characters
    """
    if not revision or not revision.strip():
        return (False, format_validation_error("Root commit", "cannot be empty"))

    if any(c.isspace() for c in revision):
        return (
            False,
            format_validation_error("Root commit", "cannot contain whitespace"),
        )

    if revision.startswith("-"):
        return (False, format_validation_error("Root commit", "cannot start with '-'"))

    if ".." in revision:
        return (
            False,
            format_validation_error("Root commit", "must be a single commit, not a range"),
        )

    if _HEX.match(revision) and not 4 <= len(revision) <= 40:
        return (
            False,
            format_validation_error(
                "Root commit", "hash must be 4 to 40 hexadecimal characters"
            ),
        )

    return (True, "")


def validate_allow_path(path: str, kind: str = "path") -> tuple[bool, str]:
    """
    Validate an allow-list folder or file.

    Args:
        path: Repository-relative POSIX path
        kind: Word used in the error message ("folder" or "file")

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty
        - Must be relative to the repository root
        - Cannot contain '..' (path traversal protection)
    """
    field_name = f"Allow-list {kind} '{path}'"
    if not path or not path.strip().strip("/"):
        return (False, format_validation_error(f"Allow-list {kind}", "cannot be empty"))

    pure = PurePosixPath(path.strip())
    if pure.is_absolute():
        return (
            False,
            format_validation_error(field_name, "must be relative to the repository root"),
        )

    if ".." in pure.parts:
        return (False, format_validation_error(field_name, "cannot contain '..'"))

    return (True, "")
