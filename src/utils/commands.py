"""
External command helpers.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import psutil

from utils.errors import PreflightError


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(
    args: Sequence[str],
    logger: Optional[logging.Logger] = None,
    stdout_path: Optional[Path] = None,
) -> CommandResult:
    """Run a command to completion, capturing output.

    There is no timeout. When ``stdout_path`` is given, standard output is
    streamed to that file instead of being captured in memory.
    """
    logger = logger or logging.getLogger("array_maintenance")
    argv = tuple(str(arg) for arg in args)
    logger.debug("Running: %s", " ".join(argv))
    if stdout_path is not None:
        with stdout_path.open("w", encoding="utf-8") as handle:
            result = subprocess.run(
                argv, stdout=handle, stderr=subprocess.PIPE, text=True, check=False
            )
        return CommandResult(argv, result.returncode, "", result.stderr or "")
    result = subprocess.run(argv, capture_output=True, text=True, check=False)
    return CommandResult(argv, result.returncode, result.stdout or "", result.stderr or "")


def missing_tools(names: Iterable[str]) -> list[str]:
    """Return the subset of tool names not found on PATH."""
    return [name for name in names if shutil.which(name) is None]


def require_tools(names: Iterable[str]) -> None:
    """Raise PreflightError if any required tool is missing."""
    missing = missing_tools(names)
    if missing:
        raise PreflightError(f"Required tools not found on PATH: {', '.join(missing)}")


def is_process_running(name: str) -> bool:
    """Best-effort check for a running process with the given executable name."""
    for proc in psutil.process_iter(["name"]):
        try:
            if proc.info.get("name") == name:
                return True
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return False
