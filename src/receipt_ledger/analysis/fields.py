"""
Field extraction from raw receipt OCR text.

Works on the raw text, not the normalized one: the "R$" prefix, masked
card digits ("****1234") and decimal commas are the signal here.

Supported fields:
- Amount: "R$ 1.234,56", "Valor: R$ 23,33", split groups "refeicao r 23 33"
- Last four card digits: doc numbers, masked cards, "final 1234"
- Installments: "3x de R$ 20,00", "3 vezes", "4 parcelas", "parcelado em 5"
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal

from .categories import PaymentCategory

logger = logging.getLogger(__name__)

_BRL = r"\d{1,3}(?:\.\d{3})*,\d{2}"

# Amount patterns, most specific first. Two capture groups mean OCR split
# the integer and decimal parts ("R$23,33" read as "r 23 33").
AMOUNT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"refeicao\s+r\s+(\d+)\s+(\d{2})", re.IGNORECASE),
    re.compile(r"alimentacao\s+r\s+(\d+)\s+(\d{2})", re.IGNORECASE),
    re.compile(rf"valor:\s*r\$?\s*({_BRL})", re.IGNORECASE),
    re.compile(rf"valor\s+da\s+\w+\s+r\$?\s*({_BRL})", re.IGNORECASE),
    re.compile(rf"valor\s+do\s+\w+\s+r\$?\s*({_BRL})", re.IGNORECASE),
    re.compile(rf"(?:total|valor|importo|amount)[\s:]*r\$?\s*({_BRL})", re.IGNORECASE),
    re.compile(rf"r\$\s*({_BRL})", re.IGNORECASE),
    re.compile(rf"({_BRL})\s*reais?", re.IGNORECASE),
    re.compile(rf"({_BRL})(?=\s|$)"),
    re.compile(r"(\d+,\d)(?!\d)"),
]

# Card digit patterns, most specific first. The last match of the first
# pattern that fires is used.
LAST_FOUR_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"alelo\s+doc\s+(\d+)", re.IGNORECASE),
    re.compile(r"doc\s+(\d+)", re.IGNORECASE),
    re.compile(r"\*{4,}\s*(\d{4})"),
    re.compile(r"final\s*(\d{4})", re.IGNORECASE),
    re.compile(r"terminado\s+em\s*(\d{4})", re.IGNORECASE),
    re.compile(r"cart[aã]o\s*\*{4,}\s*(\d{4})", re.IGNORECASE),
    re.compile(r"[a-zA-Z]\s*(\d{4})\s*$", re.MULTILINE),
    re.compile(r"\b(\d{4})\b(?=\s*$)", re.MULTILINE),
    # Last resort: four digits closing a line, even inside a longer number
    re.compile(r"(\d{4})\s*$", re.MULTILINE),
]

CASH_PATTERN = re.compile(r"\b(?:a\s*vista|à\s*vista|avista)\b")

INSTALLMENT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(\d{1,2})\s*x\s*(?:de\s*)?r?\$?\s*\d+", re.IGNORECASE),
    re.compile(r"(\d{1,2})\s*vezes", re.IGNORECASE),
    re.compile(r"(\d{1,2})\s*parcelas?", re.IGNORECASE),
    re.compile(r"parcelado\s+em\s+(\d{1,2})", re.IGNORECASE),
]


@dataclass(frozen=True)
class ExtractedFields:
    """Fields extracted from a single receipt."""

    amount: str = ""  # "R$ 23,33" or "" when nothing matched
    last_four_digits: str = ""  # 0-4 digits
    installments: int = 1
    installment_label: str = "1x"


def parse_brl_amount(amount_str: str) -> Decimal:
    """
    Parse a Brazilian currency string ("R$ 1.234,56") to Decimal.

    Raises:
        decimal.InvalidOperation: If no number can be read
    """
    cleaned = re.sub(r"[^\d,.\-]", "", amount_str)
    cleaned = cleaned.replace(".", "").replace(",", ".")
    return Decimal(cleaned)


def extract_amount(text: str) -> str:
    """Return the first amount found as "R$ <int>,<dec>", or ""."""
    if not text:
        return ""
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        if match.lastindex and match.lastindex >= 2:
            return f"R$ {match.group(1)},{match.group(2)}"
        logger.debug("Amount matched by %s: %s", pattern.pattern, match.group(0))
        return f"R$ {match.group(1)}"
    return ""


def extract_last_four_digits(text: str) -> str:
    """Return the trailing card digits (at most four), or ""."""
    if not text:
        return ""
    for pattern in LAST_FOUR_PATTERNS:
        matches = pattern.findall(text)
        if matches:
            digits = matches[-1]
            return digits[-4:]
    return ""


def extract_installments(text: str, category: PaymentCategory) -> tuple[int, str]:
    """
    Return ``(installments, label)``.

    Only credit purchases can be split. Cash phrases ("à vista") and every
    other category settle in a single payment.
    """
    if not text or CASH_PATTERN.search(text.lower()):
        return 1, "1x"
    if category is not PaymentCategory.CREDIT:
        return 1, "1x"

    for pattern in INSTALLMENT_PATTERNS:
        for match in pattern.finditer(text):
            installments = int(match.group(1))
            if installments > 0:
                return installments, f"{installments}x"
    return 1, "1x"


class FieldExtractor:
    """Runs all field extractors over raw text."""

    def extract(self, text: str, category: PaymentCategory) -> ExtractedFields:
        installments, label = extract_installments(text, category)
        return ExtractedFields(
            amount=extract_amount(text),
            last_four_digits=extract_last_four_digits(text),
            installments=installments,
            installment_label=label,
        )
