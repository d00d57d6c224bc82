"""
Genie — generate machine-owned files from ``*.genie.py`` templates.

Usage:
    python -m genie.main --help
    python -m genie.main --check
"""

__version__ = "0.1.0"
