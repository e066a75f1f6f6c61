"""
Primary orchestration entry point for array maintenance runs.
"""

from __future__ import annotations

import argparse
import logging
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import yaml

from config import AppConfig, ArrayConfig, find_array_config, load_array_config
from config.array_config import ENGINE_CONFIG_NAME
from engine import DiffClassification, DiffResult, EngineRunner, should_backup_and_sync
from engine.runner import DEFAULT_ENGINE_BINARY, DEFAULT_SCRUB_PERCENT
from health import DriveHealthChecker, HealthReport
from orchestrator import __version__
from permissions import PermissionsArchiver
from permissions.archiver import DEFAULT_BACKUP_SUBDIR, DEFAULT_RETENTION
from utils import InstanceLockError, hold_instance_lock, require_tools, setup_logging
from utils.errors import (
    ChangeDetectionError,
    ConfigurationError,
    ExitCode,
    MaintenanceError,
    PreflightError,
    ScrubError,
    SyncError,
)
from utils.instance_guard import DEFAULT_LOCK_PATH

REQUIRED_TOOLS = ("smartctl", "lsblk", "getfacl", "tar")
STANDBY_TOOLS = ("hdparm",)


class TerminationRequested(BaseException):
    """Raised from a signal handler so scoped cleanup runs before exit."""


@dataclass(frozen=True)
class RunOptions:
    """Per-invocation switches supplied by the command line."""

    config_path: Optional[Path] = None
    ignore_health: bool = False
    scrub_percent: int = DEFAULT_SCRUB_PERCENT
    scrub_older_than: Optional[int] = None
    skip_diff: bool = False
    skip_scrub: bool = False
    standby: bool = False


class Orchestrator:
    """Coordinate preflight, change detection, backup, sync and scrub."""

    def __init__(
        self,
        settings: AppConfig,
        array: ArrayConfig,
        config_path: Path,
        options: RunOptions,
        logger: Optional[logging.Logger] = None,
        engine: Optional[EngineRunner] = None,
        health_checker: Optional[DriveHealthChecker] = None,
        archiver: Optional[PermissionsArchiver] = None,
    ) -> None:
        self.settings = settings
        self.array = array
        self.config_path = config_path
        self.options = options
        self.logger = logger or logging.getLogger("array_maintenance")
        self.engine = engine or EngineRunner(
            config_path,
            binary=str(settings.get("engine", "binary", default=DEFAULT_ENGINE_BINARY)),
            logger=self.logger,
        )
        self.health_checker = health_checker or DriveHealthChecker(logger=self.logger)
        work_dir = settings.get("permissions", "work_dir")
        self.archiver = archiver or PermissionsArchiver(
            backup_subdir=str(settings.get("permissions", "backup_subdir", default=DEFAULT_BACKUP_SUBDIR)),
            retention=int(settings.get("permissions", "retention", default=DEFAULT_RETENTION)),
            work_dir=settings.resolve_path("permissions", "work_dir") if work_dir else None,
            logger=self.logger,
        )

    def run(self) -> None:
        """Run every phase in order; the first fatal error propagates."""
        self._preflight()
        health = self._run_health_check()

        diff: Optional[DiffResult] = None
        if self.options.skip_diff:
            self.logger.warning("Change detection skipped; backup and sync will run unconditionally")
        else:
            diff = self._run_diff()

        if should_backup_and_sync(diff, skip_diff=self.options.skip_diff):
            self._run_permission_backup()
            self._run_sync()
        else:
            self.logger.info("No changes detected; skipping permission backup and sync")

        if self.options.skip_scrub:
            self.logger.info("Scrub skipped by request")
        else:
            self._run_scrub()

        if self.options.standby:
            self.health_checker.standby(health.devices)

    def _preflight(self) -> None:
        self.engine.ensure_available()
        tools = list(REQUIRED_TOOLS)
        if self.options.standby:
            tools.extend(STANDBY_TOOLS)
        require_tools(tools)
        if not self.array.data:
            raise PreflightError(f"No data drives configured in {self.config_path}")
        if not self.array.parity:
            raise PreflightError(f"No parity files configured in {self.config_path}")

    def _run_health_check(self) -> HealthReport:
        return self.health_checker.check(self.array, ignore_health=self.options.ignore_health)

    def _run_diff(self) -> DiffResult:
        diff = self.engine.diff()
        if diff.classification is DiffClassification.ERROR:
            raise ChangeDetectionError("Change detection failed", details=diff.stderr.strip())
        self.logger.info("Change detection: %s", diff.summary())
        return diff

    def _run_permission_backup(self) -> None:
        self.archiver.run(self.array.data)

    def _run_sync(self) -> None:
        result = self.engine.sync()
        if not result.ok:
            raise SyncError(f"Sync failed (rc={result.returncode})", details=result.stderr.strip())
        self.logger.info("Sync completed")

    def _run_scrub(self) -> None:
        result = self.engine.scrub(
            percent=self.options.scrub_percent,
            older_than=self.options.scrub_older_than,
        )
        if not result.ok:
            raise ScrubError(f"Scrub failed (rc={result.returncode})", details=result.stderr.strip())
        self.logger.info("Scrub completed")


def _percentage(value: str) -> int:
    number = int(value)
    if not 0 <= number <= 100:
        raise argparse.ArgumentTypeError(f"must be between 0 and 100, got {number}")
    return number


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="array-maintenance",
        description="Check drives, back up permissions, then diff, sync and scrub the parity array.",
    )
    parser.add_argument("-c", "--config", type=Path, help="alternate array configuration file")
    parser.add_argument("--settings", type=Path, help="tool settings YAML file")
    parser.add_argument("--ignore-health", action="store_true", help="continue past unhealthy (but mounted) drives")
    parser.add_argument(
        "--scrub-percent",
        type=_percentage,
        default=DEFAULT_SCRUB_PERCENT,
        help=f"percentage of blocks to scrub (default {DEFAULT_SCRUB_PERCENT})",
    )
    parser.add_argument("--scrub-older-than", type=_non_negative, help="only scrub blocks older than DAYS")
    parser.add_argument("--skip-diff", action="store_true", help="skip change detection and force backup and sync")
    parser.add_argument("--skip-scrub", action="store_true", help="do not scrub")
    parser.add_argument("--standby", action="store_true", help="spin drives down after the run")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def options_from_args(args: argparse.Namespace) -> RunOptions:
    return RunOptions(
        config_path=args.config,
        ignore_health=args.ignore_health,
        scrub_percent=args.scrub_percent,
        scrub_older_than=args.scrub_older_than,
        skip_diff=args.skip_diff,
        skip_scrub=args.skip_scrub,
        standby=args.standby,
    )


def _raise_termination(signum, frame) -> None:
    raise TerminationRequested(signum)


def _install_signal_handlers() -> dict:
    return {
        signum: signal.signal(signum, _raise_termination)
        for signum in (signal.SIGTERM, signal.SIGHUP)
    }


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        if handler is not None:
            signal.signal(signum, handler)


def _load_settings(path: Optional[Path]) -> AppConfig:
    try:
        return AppConfig.load(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot load settings: {exc}") from exc


def execute(options: RunOptions, settings: AppConfig, logger: logging.Logger) -> None:
    """Resolve the array configuration and run the workflow under the instance lock."""
    config_name = str(settings.get("engine", "config_name", default=ENGINE_CONFIG_NAME))
    config_path = find_array_config(options.config_path, name=config_name)
    if options.config_path is not None and config_path != options.config_path.expanduser():
        logger.warning("Config %s not readable; using %s", options.config_path, config_path)
    array = load_array_config(config_path)
    logger.info(
        "Loaded %s: %s data drive(s), %s parity file(s)",
        config_path,
        len(array.data),
        len(array.parity),
    )
    lock_path = settings.resolve_path("lock", "path", default=str(DEFAULT_LOCK_PATH))
    with hold_instance_lock(lock_path):
        logger.debug("Holding instance lock %s", lock_path)
        Orchestrator(settings, array, config_path, options, logger=logger).run()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point; the only place that turns failures into exit codes."""
    args = build_parser().parse_args(argv)
    options = options_from_args(args)
    try:
        settings = _load_settings(args.settings)
    except ConfigurationError as exc:
        setup_logging().error("%s", exc)
        return int(ExitCode.FAILURE)

    log_file = settings.resolve_path("logging", "file") if settings.get("logging", "file") else None
    logger = setup_logging(log_file, level=str(settings.get("logging", "level", default="INFO")))
    previous_handlers = _install_signal_handlers()
    try:
        execute(options, settings, logger)
    except InstanceLockError as exc:
        logger.error("Could not acquire instance lock: %s", exc)
        return int(ExitCode.LOCK)
    except MaintenanceError as exc:
        logger.error("%s", exc)
        if exc.details:
            logger.error("Details: %s", exc.details)
        return int(exc.exit_code)
    except TerminationRequested as exc:
        logger.error("Terminated by signal %s", exc.args[0] if exc.args else "?")
        return int(ExitCode.TERMINATED)
    except KeyboardInterrupt:
        logger.error("Interrupted by user")
        return int(ExitCode.INTERRUPTED)
    except Exception:
        logger.exception("Unexpected failure")
        return int(ExitCode.FAILURE)
    finally:
        _restore_signal_handlers(previous_handlers)
    logger.info("Maintenance run completed")
    return int(ExitCode.SUCCESS)


if __name__ == "__main__":
    raise SystemExit(main())
