"""
Receipt intake.

Inbound OCR text → analysis → pending transaction. Fields the analysis
could not find are stored as NOT_IDENTIFIED so the owner sees the gap and
can fill it in with an edit.
"""

import logging
from dataclasses import dataclass, replace

from ..analysis import FieldExtractor, ReceiptAnalysis, TypeClassifier, analyze_receipt
from ..errors import EmptyReceiptText
from ..lifecycle import LifecycleManager
from ..state_store import TransactionRecord

logger = logging.getLogger(__name__)

NOT_IDENTIFIED = "Não identificado"


@dataclass(frozen=True)
class InboundReceipt:
    """Text recovered from one photographed receipt."""

    raw_text: str
    owner_id: str
    channel_id: str
    asset_ref: str | None = None
    payer_label: str = ""


@dataclass
class IntakeResult:
    """Pending transaction created from a receipt."""

    record: TransactionRecord
    analysis: ReceiptAnalysis


class ReceiptIntakeService:
    """Turns inbound receipts into pending transactions."""

    def __init__(
        self,
        manager: LifecycleManager,
        classifier: TypeClassifier | None = None,
        extractor: FieldExtractor | None = None,
    ):
        self.manager = manager
        self.classifier = classifier or TypeClassifier()
        self.extractor = extractor or FieldExtractor()

    def analyze(self, raw_text: str) -> ReceiptAnalysis:
        return analyze_receipt(raw_text, self.classifier, self.extractor)

    def ingest(self, receipt: InboundReceipt) -> IntakeResult:
        """
        Analyze a receipt and open a pending transaction for its owner.

        Raises:
            EmptyReceiptText: If the OCR text is blank
            DuplicatePending: If the owner already has a pending transaction
            PersistenceError: If the snapshot write fails
        """
        if not receipt.raw_text or not receipt.raw_text.strip():
            raise EmptyReceiptText(f"No text recovered for owner {receipt.owner_id}")

        analysis = self.analyze(receipt.raw_text)
        logger.info(
            "Receipt from %s classified as %s via %s",
            receipt.owner_id,
            analysis.category.value,
            analysis.classification.strategy_used,
        )

        fields = replace(
            analysis.fields,
            amount=analysis.fields.amount or NOT_IDENTIFIED,
            last_four_digits=analysis.fields.last_four_digits or NOT_IDENTIFIED,
        )
        record = self.manager.create(
            owner_id=receipt.owner_id,
            channel_id=receipt.channel_id,
            classification=analysis.classification,
            fields=fields,
            source_text=receipt.raw_text,
            asset_ref=receipt.asset_ref,
            payer_label=receipt.payer_label,
        )
        return IntakeResult(record=record, analysis=analysis)
