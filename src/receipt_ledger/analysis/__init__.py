"""
Receipt text analysis.

Provides:
- normalize_text: canonical text for keyword matching
- TypeClassifier: cascading payment category detection
- FieldExtractor: amount, card digits and installments from raw text
- analyze_receipt: the two combined, as used by intake

All functions are pure and deterministic.
"""

from dataclasses import dataclass

from .categories import CATEGORY_PRIORITY, PaymentCategory
from .classifier import ClassificationResult, TypeClassifier
from .fields import ExtractedFields, FieldExtractor, parse_brl_amount
from .normalize import normalize_text


@dataclass(frozen=True)
class ReceiptAnalysis:
    """Classification and extracted fields for one receipt."""

    classification: ClassificationResult
    fields: ExtractedFields

    @property
    def category(self) -> PaymentCategory:
        return self.classification.category

    def to_dict(self) -> dict:
        return {
            "category": self.classification.category.value,
            "strategy": self.classification.strategy_used,
            "amount": self.fields.amount,
            "last_four_digits": self.fields.last_four_digits,
            "installments": self.fields.installments,
            "installment_label": self.fields.installment_label,
        }


def analyze_receipt(
    raw_text: str,
    classifier: TypeClassifier | None = None,
    extractor: FieldExtractor | None = None,
) -> ReceiptAnalysis:
    """Classify ``raw_text`` and extract its fields."""
    classifier = classifier or TypeClassifier()
    extractor = extractor or FieldExtractor()

    classification = classifier.classify(normalize_text(raw_text))
    fields = extractor.extract(raw_text, classification.category)
    return ReceiptAnalysis(classification=classification, fields=fields)


__all__ = [
    "analyze_receipt",
    "normalize_text",
    "parse_brl_amount",
    "ClassificationResult",
    "ExtractedFields",
    "FieldExtractor",
    "PaymentCategory",
    "ReceiptAnalysis",
    "TypeClassifier",
    "CATEGORY_PRIORITY",
]
