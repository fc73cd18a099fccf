"""Working-tree file I/O for the mirror repository.

All paths handed to these helpers are repository-relative POSIX paths
coming from git diffs.  ``resolve_in_root`` is the single place where they
are turned into filesystem paths, and it refuses anything that would land
outside the repository root.
"""

from __future__ import annotations

import stat
from pathlib import Path, PurePosixPath

# =============================================================================
# Path Validation
# =============================================================================


def resolve_in_root(root: Path, relative_path: str) -> Path:
    """Resolve a repository-relative path against *root*.

    Args:
        root: Repository working-tree root.
        relative_path: POSIX path relative to *root*.

    Returns:
        Absolute path under *root*.

    Raises:
        ValueError: If the path is empty, absolute, contains ``..`` or
            points into the ``.git`` directory.
    """
    if not relative_path:
        raise ValueError("Path cannot be empty")
    pure = PurePosixPath(relative_path)
    if pure.is_absolute():
        raise ValueError(f"Path must be relative: {relative_path}")
    if ".." in pure.parts:
        raise ValueError(f"Path cannot contain '..': {relative_path}")
    if pure.parts and pure.parts[0] == ".git":
        raise ValueError(f"Path points into .git: {relative_path}")
    return root.joinpath(*pure.parts)


# =============================================================================
# File Write/Remove
# =============================================================================


def write_file(path: Path, data: bytes, executable: bool = False) -> int:
    """Write *data* to *path*, creating parent directories as needed.

    Args:
        path: Output file path.
        data: Raw content.
        executable: Set the owner/group/other execute bits.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    mode = path.stat().st_mode
    exec_bits = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    if executable:
        path.chmod(mode | exec_bits)
    elif mode & exec_bits:
        path.chmod(mode & ~exec_bits)
    return len(data)


def remove_file(path: Path, stop_at: Path) -> bool:
    """Remove *path* and prune parent directories left empty.

    Pruning stops at *stop_at* (never removed).

    Returns:
        ``True`` if a file was removed, ``False`` if it did not exist.
    """
    if not path.exists() and not path.is_symlink():
        return False
    path.unlink()

    parent = path.parent
    while parent != stop_at and stop_at in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    return True
