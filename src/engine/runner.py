"""
Invocation of the external parity engine's diff, sync and scrub verbs.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from engine.decision import DiffClassification, DiffResult, parse_diff_counts
from utils.commands import CommandResult, is_process_running, run_command
from utils.errors import EngineBusyError, EngineMissingError

DEFAULT_ENGINE_BINARY = "snapraid"
DEFAULT_SCRUB_PERCENT = 10
DIFF_RC_NO_CHANGE = 0
DIFF_RC_CHANGES_FOUND = 2


@dataclass(frozen=True)
class EngineResult:
    """Outcome of a sync or scrub invocation."""

    verb: str
    ok: bool
    returncode: int
    stdout: str
    stderr: str


class EngineRunner:
    """Run engine verbs against one array configuration file.

    Every call blocks until the engine exits; nothing is retried. A
    presence check for another engine process runs right before each
    invocation. It narrows but cannot close the window in which a
    separately started engine could race this one.
    """

    def __init__(
        self,
        config_path: Path,
        binary: str = DEFAULT_ENGINE_BINARY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config_path = config_path
        self.binary = binary
        self.logger = logger or logging.getLogger("array_maintenance")

    def ensure_available(self) -> str:
        """Return the resolved engine executable or raise EngineMissingError."""
        resolved = shutil.which(self.binary)
        if resolved is None:
            raise EngineMissingError(f"Engine binary not found: {self.binary}")
        return resolved

    def diff(self) -> DiffResult:
        """Run change detection and classify the outcome."""
        result = self._invoke("diff")
        if result.returncode == DIFF_RC_NO_CHANGE:
            classification = DiffClassification.NO_CHANGE
        elif result.returncode == DIFF_RC_CHANGES_FOUND:
            classification = DiffClassification.CHANGES_FOUND
        else:
            classification = DiffClassification.ERROR
        counts = (
            parse_diff_counts(result.stdout)
            if classification is DiffClassification.CHANGES_FOUND
            else {}
        )
        return DiffResult(
            classification=classification,
            counts=counts,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def sync(self) -> EngineResult:
        """Commit the current on-disk state into parity."""
        return self._to_engine_result("sync", self._invoke("sync"))

    def scrub(self, percent: int = DEFAULT_SCRUB_PERCENT, older_than: Optional[int] = None) -> EngineResult:
        """Verify a percentage of synchronized blocks, optionally only older ones."""
        if not 0 <= percent <= 100:
            raise ValueError(f"Scrub percentage must be between 0 and 100, got {percent}")
        extra = ["-p", str(percent)]
        if older_than is not None:
            extra.extend(["-o", str(older_than)])
        return self._to_engine_result("scrub", self._invoke("scrub", extra))

    def _invoke(self, verb: str, extra: Optional[list[str]] = None) -> CommandResult:
        executable = self.ensure_available()
        if is_process_running(Path(executable).name):
            raise EngineBusyError(f"Another {self.binary} process is already running")
        args = [executable, "-c", str(self.config_path), verb, *(extra or [])]
        self.logger.info("Running engine %s", verb)
        result = run_command(args, logger=self.logger)
        self.logger.debug("Engine %s exited with %s", verb, result.returncode)
        return result

    def _to_engine_result(self, verb: str, result: CommandResult) -> EngineResult:
        return EngineResult(
            verb=verb,
            ok=result.ok,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
