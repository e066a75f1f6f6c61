"""
Configuration package for array maintenance.
"""

from .array_config import (
    ArrayConfig,
    DataDrive,
    OtherDirective,
    find_array_config,
    load_array_config,
    parse_array_config,
)
from .settings import AppConfig

__all__ = [
    "AppConfig",
    "ArrayConfig",
    "DataDrive",
    "OtherDirective",
    "find_array_config",
    "load_array_config",
    "parse_array_config",
]
