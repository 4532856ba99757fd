"""
Transaction lifecycle management.

State machine:
    pending --edit--> pending
    pending --confirm--> confirmed   (terminal, published once)
    pending --cancel/expire--> cancelled (terminal, dropped)

Records are created already pending; there is no draft state.
"""

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from ..analysis import ClassificationResult, ExtractedFields, PaymentCategory, parse_brl_amount
from ..config import LifecycleConfig
from ..errors import InvalidEditValue, NoPendingTransaction, ValidationError
from ..publisher import BasePublisher, PublishError
from ..state_store import TransactionRecord, TransactionStatus, TransactionStore
from .edits import EditRequest

logger = logging.getLogger(__name__)

_HAS_DIGIT = re.compile(r"\d")


@dataclass
class ConfirmOutcome:
    """Result of a confirmation.

    The record is confirmed locally even when ``published`` is False.
    """

    record: TransactionRecord
    published: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class TransactionStats:
    """Aggregate counters over the store."""

    pending_count: int
    confirmed_count: int
    total_confirmed_value: Decimal
    unique_confirmed_owners: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleManager:
    """
    Orchestrates create/edit/confirm/cancel/expire against the store.

    Responsibilities:
    - One pending transaction per owner (atomic check-and-create)
    - Edits restricted to the editable fields while pending
    - Exactly one publish per confirmation
    """

    def __init__(
        self,
        store: TransactionStore,
        publisher: BasePublisher,
        config: LifecycleConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.publisher = publisher
        self.config = config or LifecycleConfig()
        self.clock = clock

    # === Creation ===

    def create(
        self,
        owner_id: str,
        channel_id: str,
        classification: ClassificationResult,
        fields: ExtractedFields,
        source_text: str,
        asset_ref: str | None = None,
        payer_label: str = "",
    ) -> TransactionRecord:
        """
        Create a pending transaction.

        Raises:
            DuplicatePending: If the owner already has one (nothing is created)
            PersistenceError: If the snapshot write fails (nothing is created)
        """
        record = TransactionRecord(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            channel_id=channel_id,
            category=classification.category.value,
            amount=fields.amount,
            installments=fields.installments,
            last_four_digits=fields.last_four_digits,
            payer_label=payer_label,
            source_text=source_text,
            created_at=self.clock().isoformat(),
            asset_ref=asset_ref,
            status=TransactionStatus.PENDING,
        )
        created = self.store.add_pending(record)
        logger.info(
            "Created pending transaction %s for owner %s (%s, %s)",
            created.short_id,
            owner_id,
            created.category,
            created.amount or "no amount",
        )
        return created

    # === Queries ===

    def get_pending_by_owner(self, owner_id: str) -> TransactionRecord | None:
        return self.store.get_pending_by_owner(owner_id)

    def require_pending_by_owner(self, owner_id: str) -> TransactionRecord:
        """
        Raises:
            NoPendingTransaction: If the owner has nothing pending
        """
        record = self.store.get_pending_by_owner(owner_id)
        if record is None:
            raise NoPendingTransaction(owner_id)
        return record

    def get_record(self, record_id: str) -> TransactionRecord | None:
        """Find a record by id, pending first, then the confirmed log."""
        record = self.store.get_pending(record_id)
        if record is not None:
            return record
        for confirmed in self.store.list_confirmed():
            if confirmed.id == record_id:
                return confirmed
        return None

    def list_pending(self) -> list[TransactionRecord]:
        return self.store.list_pending()

    def list_confirmed(self) -> list[TransactionRecord]:
        return self.store.list_confirmed()

    def confirmed_by_owner(self, owner_id: str) -> list[TransactionRecord]:
        return [r for r in self.store.list_confirmed() if r.owner_id == owner_id]

    # === Transitions ===

    def edit(self, record_id: str, request: EditRequest) -> TransactionRecord:
        """
        Apply the provided fields to a pending record.

        Values are not validated beyond their type; a bad amount is only
        rejected at confirm time.

        Raises:
            RecordNotFound: If no pending record has this id
            InvalidEditValue: If the request changes nothing
            PersistenceError: If the snapshot write fails (record unchanged)
        """
        if request.is_empty:
            raise InvalidEditValue("Edit request has no fields")

        changes = request.changes()
        if "category" in changes:
            parsed = PaymentCategory.parse(changes["category"])
            changes["category"] = parsed.value if parsed else changes["category"].strip()

        updated = self.store.update_pending(record_id, lambda r: replace(r, **changes))
        logger.info("Edited transaction %s: %s", updated.short_id, ", ".join(sorted(changes)))
        return updated

    def _finalize(self, record: TransactionRecord) -> TransactionRecord:
        if not _HAS_DIGIT.search(record.amount or ""):
            raise ValidationError(
                record.id, "amount", "amount not identified, edit it before confirming"
            )

        category = PaymentCategory.parse(record.category)
        if category is None or category is PaymentCategory.UNKNOWN:
            category = PaymentCategory.CREDIT

        installments = min(max(record.installments, 1), self.config.max_installments)

        return replace(
            record,
            category=category.canonical_name,
            installments=installments,
            status=TransactionStatus.CONFIRMED,
        )

    def confirm(self, record_id: str) -> ConfirmOutcome:
        """
        Confirm a pending record and publish it once.

        The record is committed to the snapshot before publishing. A publish
        failure is reported in the outcome; the record stays confirmed.

        Raises:
            RecordNotFound: If no pending record has this id
            ValidationError: If the amount has no digits (record stays pending)
            PersistenceError: If the snapshot write fails (record stays
                pending, nothing is published)
        """
        confirmed = self.store.close_pending(record_id, self._finalize)
        logger.info(
            "Confirmed transaction %s for owner %s (%s, %s, %dx)",
            confirmed.short_id,
            confirmed.owner_id,
            confirmed.category,
            confirmed.amount,
            confirmed.installments,
        )

        try:
            message_id = self.publisher.publish(confirmed)
        except PublishError as e:
            logger.error(
                "Transaction %s confirmed but not published: %s", confirmed.short_id, e
            )
            return ConfirmOutcome(record=confirmed, published=False, error=str(e))

        return ConfirmOutcome(record=confirmed, published=True, message_id=message_id)

    def cancel(self, record_id: str) -> TransactionRecord:
        """
        Cancel a pending record. Nothing is published.

        Raises:
            RecordNotFound: If no pending record has this id
            PersistenceError: If the snapshot write fails (record stays pending)
        """
        cancelled = self.store.close_pending(
            record_id, lambda r: replace(r, status=TransactionStatus.CANCELLED)
        )
        logger.info("Cancelled transaction %s", cancelled.short_id)
        return cancelled

    def expire(self, ttl_hours: float | None = None) -> list[TransactionRecord]:
        """
        Drop pending records older than the TTL. No notification is sent.

        Returns:
            The expired records
        """
        ttl = self.config.pending_ttl_hours if ttl_hours is None else ttl_hours
        cutoff = self.clock() - timedelta(hours=ttl)
        expired = self.store.remove_pending_older_than(cutoff)
        if expired:
            logger.info("Expired %d pending transactions older than %sh", len(expired), ttl)
        return expired

    # === Owner-scoped helpers (one pending per owner) ===

    def edit_for_owner(self, owner_id: str, request: EditRequest) -> TransactionRecord:
        return self.edit(self.require_pending_by_owner(owner_id).id, request)

    def confirm_for_owner(self, owner_id: str) -> ConfirmOutcome:
        return self.confirm(self.require_pending_by_owner(owner_id).id)

    def cancel_for_owner(self, owner_id: str) -> TransactionRecord:
        return self.cancel(self.require_pending_by_owner(owner_id).id)

    # === Stats ===

    def get_stats(self) -> TransactionStats:
        """Counts and the total value of confirmed transactions."""
        pending_count, _ = self.store.counts()
        confirmed = self.store.list_confirmed()

        total = Decimal("0")
        for record in confirmed:
            try:
                total += parse_brl_amount(record.amount)
            except (InvalidOperation, ValueError):
                logger.debug("Unparsable amount in %s: %r", record.short_id, record.amount)

        return TransactionStats(
            pending_count=pending_count,
            confirmed_count=len(confirmed),
            total_confirmed_value=total,
            unique_confirmed_owners=len({r.owner_id for r in confirmed}),
        )
