"""
Entry point for running sam-backup as a module.

Usage:
    python -m sambackup [command] [options]
"""

from sambackup.cli import main

if __name__ == "__main__":
    main()
