"""
State Store (JSON snapshot based).

Authoritative in-memory index of transactions with a durable snapshot:
- Pending transactions, at most one per owner
- Confirmed transactions (append-only log)

Snapshot write failures are raised, never swallowed.
"""

from ..errors import PersistenceError
from .json_store import (
    TransactionRecord,
    TransactionStatus,
    TransactionStore,
)

__all__ = [
    "TransactionStore",
    "TransactionRecord",
    "TransactionStatus",
    "PersistenceError",
]
