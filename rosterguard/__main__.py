"""
Entry point for running the CLI as a module.

Usage:
    python -m rosterguard <command>
"""

from rosterguard.cli import main

if __name__ == "__main__":
    main()
