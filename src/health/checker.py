"""
Mount state and SMART health checks for array drives.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import psutil

from config import ArrayConfig
from utils.commands import run_command
from utils.errors import HealthCheckError, PreflightError

HEALTH_MARKERS = ("PASSED", "SMART Health Status: OK")
# smartctl exit status bits 0 and 1: command line did not parse, device open failed
SMARTCTL_QUERY_FAILED_MASK = 0b11


@dataclass(frozen=True)
class DriveTarget:
    """A drive to check: its label, role and expected mount point."""

    label: str
    role: str
    mount_point: Path


@dataclass
class DriveStatus:
    """Outcome of checking one drive."""

    target: DriveTarget
    mounted: bool
    device: Optional[str] = None
    healthy: bool = False
    detail: str = ""


@dataclass
class HealthReport:
    """Per-drive results for one preflight pass."""

    statuses: list[DriveStatus] = field(default_factory=list)

    @property
    def unmounted(self) -> list[DriveStatus]:
        return [status for status in self.statuses if not status.mounted]

    @property
    def unhealthy(self) -> list[DriveStatus]:
        return [status for status in self.statuses if status.mounted and not status.healthy]

    @property
    def devices(self) -> list[str]:
        seen: list[str] = []
        for status in self.statuses:
            if status.device and status.device not in seen:
                seen.append(status.device)
        return seen


def drive_targets(array: ArrayConfig) -> list[DriveTarget]:
    """Return data and parity drives with the mount point each must live on."""
    targets = [
        DriveTarget(label=drive.name, role="data", mount_point=Path(drive.path))
        for drive in array.data
    ]
    for index, parity_file in enumerate(array.parity, start=1):
        targets.append(
            DriveTarget(
                label=f"parity{index}",
                role="parity",
                mount_point=Path(parity_file).parent,
            )
        )
    return targets


def _normalize(path: str | Path) -> str:
    return os.path.normpath(str(path))


class DriveHealthChecker:
    """Validate mount state and physical health of every configured drive."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("array_maintenance")
        self._health_cache: dict[str, tuple[bool, str]] = {}

    def check(self, array: ArrayConfig, ignore_health: bool = False) -> HealthReport:
        """Check all drives and enforce the mount and health policy."""
        mounts = self._mount_table()
        report = HealthReport()
        for target in drive_targets(array):
            source = mounts.get(_normalize(target.mount_point))
            if source is None:
                report.statuses.append(DriveStatus(target=target, mounted=False, detail="not mounted"))
                continue
            device = self.resolve_device(source)
            healthy, detail = self.query_health(device)
            report.statuses.append(
                DriveStatus(target=target, mounted=True, device=device, healthy=healthy, detail=detail)
            )

        for status in report.statuses:
            self.logger.info(
                "Drive %s (%s) at %s: mounted=%s device=%s healthy=%s",
                status.target.label,
                status.target.role,
                status.target.mount_point,
                status.mounted,
                status.device or "-",
                status.healthy,
            )

        if report.unmounted:
            names = ", ".join(f"{s.target.label} ({s.target.mount_point})" for s in report.unmounted)
            raise PreflightError(f"Drives not mounted: {names}")
        if report.unhealthy:
            names = ", ".join(f"{s.target.label} ({s.device})" for s in report.unhealthy)
            if not ignore_health:
                raise HealthCheckError(f"Drives failed health check: {names}")
            self.logger.warning("Continuing despite unhealthy drives: %s", names)
        return report

    def resolve_device(self, source: str) -> str:
        """Resolve a mount source to the whole-disk block device behind it."""
        device = os.path.realpath(source) if source.startswith("/dev/") else source
        try:
            result = run_command(["lsblk", "-no", "PKNAME", device], logger=self.logger)
        except OSError as exc:
            self.logger.warning("lsblk failed for %s: %s", device, exc)
            return device
        parents = result.stdout.split() if result.ok else []
        return f"/dev/{parents[0]}" if parents else device

    def query_health(self, device: str) -> tuple[bool, str]:
        """Return (healthy, detail) from the device's SMART health report."""
        if device in self._health_cache:
            return self._health_cache[device]
        try:
            result = run_command(["smartctl", "-H", device], logger=self.logger)
        except OSError as exc:
            outcome = (False, f"smartctl failed: {exc}")
        else:
            if result.returncode & SMARTCTL_QUERY_FAILED_MASK:
                outcome = (False, f"smartctl query failed (rc={result.returncode})")
            elif any(marker in result.stdout for marker in HEALTH_MARKERS):
                outcome = (True, "passed")
            else:
                outcome = (False, "unrecognized health response")
        self._health_cache[device] = outcome
        return outcome

    def standby(self, devices: list[str]) -> None:
        """Spin down the given devices; failures are only warnings."""
        for device in devices:
            try:
                result = run_command(["hdparm", "-y", device], logger=self.logger)
            except OSError as exc:
                self.logger.warning("Standby failed for %s: %s", device, exc)
                continue
            if result.ok:
                self.logger.info("Drive %s put into standby", device)
            else:
                self.logger.warning("Standby failed for %s: %s", device, result.stderr.strip())

    def _mount_table(self) -> dict[str, str]:
        return {
            _normalize(part.mountpoint): part.device
            for part in psutil.disk_partitions(all=True)
        }
