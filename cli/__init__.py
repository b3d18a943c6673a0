"""
Command-line entrypoints: ``npi-sync`` (import) and ``npi-wipe`` (bulk delete).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync_npi import main as sync_main
    from .wipe_collection import main as wipe_main

__all__ = ["sync_main", "wipe_main"]
