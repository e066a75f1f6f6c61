"""
Utility helpers for array maintenance.
"""

from .commands import CommandResult, is_process_running, missing_tools, require_tools, run_command
from .instance_guard import InstanceLock, InstanceLockError, acquire_instance_lock, hold_instance_lock
from .logging_setup import setup_logging

__all__ = [
    "setup_logging",
    "CommandResult",
    "run_command",
    "missing_tools",
    "require_tools",
    "is_process_running",
    "InstanceLock",
    "InstanceLockError",
    "acquire_instance_lock",
    "hold_instance_lock",
]
