"""Backup package: versioned export and atomic restore of a user's data."""

from finnan.backup.engine import BackupEngine, parse_snapshot, unresolved_references

__all__ = [
    "BackupEngine",
    "parse_snapshot",
    "unresolved_references",
]
