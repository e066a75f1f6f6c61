"""
Change-detection results and the backup/sync decision.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

DIFF_LINE_RE = re.compile(r"^\s*(\d+)\s+(\w+)$")
CHANGE_KINDS = ("added", "removed", "updated", "moved", "copied", "restored")


class DiffClassification(Enum):
    NO_CHANGE = "no_change"
    ERROR = "error"
    CHANGES_FOUND = "changes_found"


@dataclass(frozen=True)
class DiffResult:
    """Outcome of one change-detection pass."""

    classification: DiffClassification
    counts: dict[str, int] = field(default_factory=dict)
    stdout: str = ""
    stderr: str = ""

    def summary(self) -> str:
        if not self.counts:
            return self.classification.value
        return ", ".join(f"{kind}={count}" for kind, count in self.counts.items())


def parse_diff_counts(output: str) -> dict[str, int]:
    """Map each ``<count> <kind>`` line of diff output to its count."""
    counts: dict[str, int] = {}
    for line in output.splitlines():
        match = DIFF_LINE_RE.match(line)
        if match:
            counts[match.group(2)] = int(match.group(1))
    return counts


def is_changed(diff: DiffResult) -> bool:
    """True when changes were found and at least one non-equal counter is positive."""
    if diff.classification is not DiffClassification.CHANGES_FOUND:
        return False
    return any(diff.counts.get(kind, 0) > 0 for kind in CHANGE_KINDS)


def should_backup_and_sync(diff: DiffResult | None, skip_diff: bool = False) -> bool:
    """Gate for both the permission backup and the synchronize phase."""
    if skip_diff:
        return True
    return diff is not None and is_changed(diff)
