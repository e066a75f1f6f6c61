"""
Error taxonomy and stable exit codes for maintenance runs.
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes, one per failure class."""

    SUCCESS = 0
    FAILURE = 1
    PREFLIGHT = 2
    HEALTH = 3
    ENGINE_MISSING = 4
    SYNC = 5
    SCRUB = 6
    LOCK = 7
    DIFF = 8
    PERMISSIONS = 9
    INTERRUPTED = 130
    TERMINATED = 143


class MaintenanceError(RuntimeError):
    """Base class for fatal maintenance failures."""

    exit_code: ExitCode = ExitCode.FAILURE

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.details = details


class ConfigurationError(MaintenanceError):
    """Raised when the array configuration or settings cannot be loaded."""

    exit_code = ExitCode.FAILURE


class PreflightError(MaintenanceError):
    """Raised when the environment is not fit for a run."""

    exit_code = ExitCode.PREFLIGHT


class EngineBusyError(PreflightError):
    """Raised when another engine process appears to be running."""


class HealthCheckError(MaintenanceError):
    """Raised when a drive fails its health query."""

    exit_code = ExitCode.HEALTH


class EngineMissingError(MaintenanceError):
    """Raised when the engine binary cannot be found."""

    exit_code = ExitCode.ENGINE_MISSING


class ChangeDetectionError(MaintenanceError):
    exit_code = ExitCode.DIFF


class SyncError(MaintenanceError):
    exit_code = ExitCode.SYNC


class ScrubError(MaintenanceError):
    exit_code = ExitCode.SCRUB


class PermissionBackupError(MaintenanceError):
    exit_code = ExitCode.PERMISSIONS
