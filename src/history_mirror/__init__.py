"""Filtered, resumable replication of git history into a mirror repository."""

__version__ = "0.1.0"
