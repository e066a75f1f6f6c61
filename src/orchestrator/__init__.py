"""
Orchestration package for array maintenance runs.
"""

__version__ = "1.0.0"
