"""
Outbound payload for confirmed transactions.

The webhook consumer expects camelCase keys and the upper-case status.
"""

from typing import Any

from ..state_store import TransactionRecord


def build_publish_payload(record: TransactionRecord) -> dict[str, Any]:
    """Build the webhook body for a confirmed record."""
    return {
        "id": record.id,
        "category": record.category.upper(),
        "amount": record.amount,
        "installments": record.installments,
        "lastFourDigits": record.last_four_digits,
        "ownerId": record.owner_id,
        "payerLabel": record.payer_label,
        "sourceText": record.source_text,
        "createdAt": record.created_at,
        "status": record.status.value.upper(),
    }
