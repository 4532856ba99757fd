"""
CLI runner module.

Provides commands:
- analyze: Classify receipt text
- ingest: Create a pending transaction
- pending / edit / confirm / cancel: Review the owner's transaction
- sweep / watch: Expire stale pending transactions
- stats: Counters and confirmed value
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
