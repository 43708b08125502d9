# ithbat/__init__.py
"""
Ithbat package initializer.
Defines package version and exposes the CLI.
"""
__version__ = "0.1.0"

# Expose CLI entry point
from ithbat.cli import cli as main_cli  # noqa: E402
