"""UI module for taskforge.

This module provides user interface components including:
- CLI interface (Typer-based)
- Progress display around backend calls

The CLI can be run directly:
    python -m taskforge.ui.cli run build "Your task here"

Note: We don't export CLI components from __init__.py to avoid
module loading issues when running as a script.
"""

__all__ = []  # CLI is run directly, no exports needed
