"""
ACL snapshots of data drives, bundled and rotated on every drive.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import socket
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from config import DataDrive
from utils.commands import run_command
from utils.errors import PermissionBackupError

BUNDLE_PREFIX = "acl-backup_"
BUNDLE_SUFFIX = ".tar.gz"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
DEFAULT_BACKUP_SUBDIR = ".acl-backups"
DEFAULT_RETENTION = 10
MANIFEST_NAME = "manifest.json"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")
_BUNDLE_NAME_RE = re.compile(
    re.escape(BUNDLE_PREFIX) + r"\d{8}T\d{6}Z_[A-Za-z0-9._-]+" + re.escape(BUNDLE_SUFFIX) + r"\Z"
)


def sanitize_name(name: str) -> str:
    """Replace every character outside letters, digits, '.', '_' and '-' with '_'."""
    return _UNSAFE_CHARS_RE.sub("_", name)


def bundle_name(hostname: str, created_at: datetime) -> str:
    """Build a bundle file name whose lexical order follows creation time."""
    stamp = created_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)
    return f"{BUNDLE_PREFIX}{stamp}_{sanitize_name(hostname)}{BUNDLE_SUFFIX}"


def prune_bundles(directory: Path, keep: int, logger: Optional[logging.Logger] = None) -> list[Path]:
    """Delete all but the newest ``keep`` bundles in directory; return what was removed."""
    logger = logger or logging.getLogger("array_maintenance")
    keep = max(1, keep)
    bundles = sorted(
        path
        for path in directory.glob(f"{BUNDLE_PREFIX}*{BUNDLE_SUFFIX}")
        if _BUNDLE_NAME_RE.match(path.name) and path.is_file()
    )
    stale = bundles[:-keep]
    for path in stale:
        path.unlink()
        logger.info("Pruned old permission bundle %s", path)
    return stale


@dataclass
class ArchiveReport:
    """Summary of one permission backup pass."""

    bundle_name: str
    copied_to: list[Path] = field(default_factory=list)
    failed_drives: list[str] = field(default_factory=list)
    pruned: list[Path] = field(default_factory=list)


class PermissionsArchiver:
    """Dump ACLs per data drive, bundle them and distribute the bundle."""

    def __init__(
        self,
        backup_subdir: str = DEFAULT_BACKUP_SUBDIR,
        retention: int = DEFAULT_RETENTION,
        work_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        hostname: Optional[str] = None,
    ) -> None:
        self.backup_subdir = backup_subdir
        self.retention = max(1, int(retention))
        self.work_dir = work_dir
        self.logger = logger or logging.getLogger("array_maintenance")
        self.clock = clock
        self.hostname = hostname or socket.gethostname()

    def run(self, drives: Sequence[DataDrive]) -> ArchiveReport:
        """Create, distribute and rotate one bundle.

        Raises PermissionBackupError when an ACL dump or the bundle step
        fails; the caller decides what that means for the run.
        """
        created_at = self.clock()
        name = bundle_name(self.hostname, created_at)
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix="acl-backup-", dir=self.work_dir))
        try:
            members = [self._dump_acls(drive, staging) for drive in drives]
            members.append(self._write_manifest(drives, staging, created_at))
            bundle = self._create_bundle(staging, name, members)
            report = ArchiveReport(bundle_name=name)
            for drive in drives:
                self._distribute(bundle, drive, report)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        self.logger.info(
            "Permission backup %s copied to %s drive(s), %s failed, %s pruned",
            name,
            len(report.copied_to),
            len(report.failed_drives),
            len(report.pruned),
        )
        return report

    def _dump_acls(self, drive: DataDrive, staging: Path) -> str:
        member = f"{sanitize_name(drive.name)}.acl"
        args = [
            "getfacl",
            "--recursive",
            "--one-file-system",
            "--absolute-names",
            "--numeric",
            drive.path,
        ]
        self.logger.info("Dumping ACLs for %s (%s)", drive.name, drive.path)
        try:
            result = run_command(args, logger=self.logger, stdout_path=staging / member)
        except OSError as exc:
            raise PermissionBackupError(f"ACL dump failed for {drive.name}: {exc}") from exc
        if not result.ok:
            raise PermissionBackupError(
                f"ACL dump failed for {drive.name} (rc={result.returncode})",
                details=result.stderr.strip(),
            )
        return member

    def _write_manifest(self, drives: Sequence[DataDrive], staging: Path, created_at: datetime) -> str:
        manifest = {
            "created_at": created_at.astimezone(timezone.utc).isoformat(),
            "hostname": self.hostname,
            "drives": [{"name": drive.name, "path": drive.path} for drive in drives],
        }
        (staging / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        return MANIFEST_NAME

    def _create_bundle(self, staging: Path, name: str, members: list[str]) -> Path:
        bundle = staging / name
        args = ["tar", "-czf", str(bundle), "-C", str(staging), *members]
        try:
            result = run_command(args, logger=self.logger)
        except OSError as exc:
            raise PermissionBackupError(f"Bundle creation failed: {exc}") from exc
        if not result.ok or not bundle.is_file():
            raise PermissionBackupError(
                f"Bundle creation failed (rc={result.returncode})",
                details=result.stderr.strip(),
            )
        return bundle

    def _distribute(self, bundle: Path, drive: DataDrive, report: ArchiveReport) -> None:
        target_dir = Path(drive.path) / self.backup_subdir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            destination = target_dir / bundle.name
            shutil.copy2(bundle, destination)
        except OSError as exc:
            report.failed_drives.append(drive.name)
            self.logger.error("Copying permission bundle to %s failed: %s", target_dir, exc)
            return
        report.copied_to.append(destination)
        try:
            report.pruned.extend(prune_bundles(target_dir, self.retention, logger=self.logger))
        except OSError as exc:
            self.logger.error("Pruning permission bundles in %s failed: %s", target_dir, exc)
