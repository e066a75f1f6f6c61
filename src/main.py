"""
Main entry point for running array maintenance from a source checkout.
"""

import sys

from orchestrator.main import main

if __name__ == "__main__":
    sys.exit(main())
