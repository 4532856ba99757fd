"""
Services around the lifecycle core.

Provides:
- ReceiptIntakeService: OCR text → pending transaction
- parse_edit_command: chat edit command → EditRequest
- ExpirySweeper: periodic expiry of stale pending transactions
"""

from .commands import parse_edit_command
from .expiry import ExpirySweeper
from .intake import NOT_IDENTIFIED, InboundReceipt, IntakeResult, ReceiptIntakeService

__all__ = [
    "ReceiptIntakeService",
    "InboundReceipt",
    "IntakeResult",
    "NOT_IDENTIFIED",
    "parse_edit_command",
    "ExpirySweeper",
]
