"""Command line interface (``fee-import`` / ``python -m fee_import.cli``)."""

from .__main__ import main

__all__ = ["main"]
