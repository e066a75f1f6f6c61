"""
Drive mount and health checks.
"""

from .checker import DriveHealthChecker, DriveStatus, DriveTarget, HealthReport, drive_targets

__all__ = ["DriveHealthChecker", "DriveStatus", "DriveTarget", "HealthReport", "drive_targets"]
