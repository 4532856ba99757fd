"""
Keyword tables for payment category detection.

Each category owns a list of keywords and a weight. Higher weights mark
keywords that are specific to one instrument (voucher brands) over
generic words that appear on many receipts ("vale", "cupom").

Keywords are written the way they appear on receipts and normalized once
at import time, so accented and unaccented spellings collapse.
"""

from dataclasses import dataclass

from .categories import PaymentCategory
from .normalize import normalize_text


@dataclass(frozen=True)
class CategoryPattern:
    """Weighted keyword list for one category."""

    category: PaymentCategory
    keywords: tuple[str, ...]
    weight: float


def _keywords(*words: str) -> tuple[str, ...]:
    # Normalize and drop duplicates produced by accent folding, keep order
    seen: dict[str, None] = {}
    for word in words:
        normalized = normalize_text(word)
        if normalized:
            seen.setdefault(normalized, None)
    return tuple(seen)


CATEGORY_PATTERNS: tuple[CategoryPattern, ...] = (
    CategoryPattern(
        category=PaymentCategory.MEAL_VOUCHER,
        keywords=_keywords(
            "refeicao", "refeição", "refei cao", "refei",
            "vale refeicao", "vale refeição", "ben", "greencard",
            "alelo refeicao", "alelo refeição",
            "ticket refeicao", "ticket refeição",
            "sodexo refeicao", "sodexo refeição",
        ),
        weight=3,
    ),
    CategoryPattern(
        category=PaymentCategory.FOOD_VOUCHER,
        keywords=_keywords(
            "alimentacao", "alimentação", "alimenta cao", "alimenta",
            "meal", "aumentac",
            "vale alimentacao", "vale alimentação",
            "ticket alimentacao", "ticket alimentação",
            "sodexo alimentacao", "sodexo alimentação",
        ),
        weight=3,
    ),
    CategoryPattern(
        category=PaymentCategory.CREDIT,
        keywords=_keywords(
            "credito", "crédito", "credit", "parcelado", "parcelas", "vezes",
            "mastercard credit", "visa credit", "elo credit",
            "amex", "american express",
            "cartao credito", "cartão crédito",
            "comprovante credito", "conprovante credito",
        ),
        weight=2,
    ),
    CategoryPattern(
        category=PaymentCategory.DEBIT,
        keywords=_keywords(
            "debito", "débito", "debit", "conprovante debito",
            "mastercard debit", "visa debit", "elo debit",
            "cartao debito", "cartão débito",
            "senha digitada", "comprovante debito",
        ),
        weight=2,
    ),
    CategoryPattern(
        category=PaymentCategory.GENERIC_VOUCHER,
        keywords=_keywords(
            "voucher", "vale", "gift card", "presente", "cupom",
            "desconto", "promocional", "cortesia",
            "venda a voucher", "venda à voucher",
        ),
        weight=1,
    ),
)

# Short stems for OCR output with broken spacing ("refei cao", "cr dito").
# Checked by plain containment, only when keyword and fuzzy stages fail.
FRAGMENT_PATTERNS: tuple[CategoryPattern, ...] = (
    CategoryPattern(
        category=PaymentCategory.MEAL_VOUCHER,
        keywords=("refei", "refeic", "alelo", "ben"),
        weight=3,
    ),
    CategoryPattern(
        category=PaymentCategory.FOOD_VOUCHER,
        keywords=("alimen", "meal", "ticket", "sodexo"),
        weight=3,
    ),
    CategoryPattern(
        category=PaymentCategory.CREDIT,
        keywords=("credit", "parcel", "vezes", "cr dit"),
        weight=1,
    ),
    CategoryPattern(
        category=PaymentCategory.GENERIC_VOUCHER,
        keywords=("vouche", "vale", "cupom"),
        weight=1,
    ),
)
