"""
Entry point for running cdnctl as a module.

Usage:
    python -m cdnctl [command] [options]
"""

from cdnctl.cli import main

if __name__ == "__main__":
    main()
