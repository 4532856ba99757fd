"""
Transaction lifecycle.

Provides:
- LifecycleManager: create, edit, confirm, cancel, expire
- EditRequest: typed partial update of the editable fields
- Error taxonomy re-exported for handlers
"""

from ..errors import (
    DuplicatePending,
    EmptyReceiptText,
    InvalidEditCommand,
    InvalidEditValue,
    LifecycleError,
    NoPendingTransaction,
    PersistenceError,
    RecordNotFound,
    UnknownEditField,
    ValidationError,
)
from .edits import EDITABLE_FIELDS, EditRequest
from .manager import ConfirmOutcome, LifecycleManager, TransactionStats

__all__ = [
    "LifecycleManager",
    "ConfirmOutcome",
    "TransactionStats",
    "EditRequest",
    "EDITABLE_FIELDS",
    "LifecycleError",
    "RecordNotFound",
    "NoPendingTransaction",
    "ValidationError",
    "DuplicatePending",
    "PersistenceError",
    "EmptyReceiptText",
    "UnknownEditField",
    "InvalidEditValue",
    "InvalidEditCommand",
]
