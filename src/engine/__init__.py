"""
Parity engine integration.
"""

from .decision import DiffClassification, DiffResult, is_changed, parse_diff_counts, should_backup_and_sync
from .runner import EngineResult, EngineRunner

__all__ = [
    "DiffClassification",
    "DiffResult",
    "EngineResult",
    "EngineRunner",
    "is_changed",
    "parse_diff_counts",
    "should_backup_and_sync",
]
