"""
Filesystem permission backups.
"""

from .archiver import ArchiveReport, PermissionsArchiver, bundle_name, prune_bundles, sanitize_name

__all__ = ["ArchiveReport", "PermissionsArchiver", "bundle_name", "prune_bundles", "sanitize_name"]
