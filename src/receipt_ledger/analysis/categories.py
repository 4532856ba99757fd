"""
Payment categories (SSOT).

Wire values follow the downstream webhook contract, which predates this
package and uses Portuguese names. The canonical published form of a
category is its upper-case value ("CREDITO", "REFEICAO", ...).
"""

from enum import Enum

from .normalize import normalize_text


class PaymentCategory(str, Enum):
    """Payment instrument inferred from a receipt."""

    CREDIT = "credito"
    DEBIT = "debito"
    FOOD_VOUCHER = "alimentacao"
    MEAL_VOUCHER = "refeicao"
    GENERIC_VOUCHER = "voucher"
    UNKNOWN = "desconhecido"

    @property
    def canonical_name(self) -> str:
        """Upper-case name used in confirmed records and publish payloads."""
        return self.value.upper()

    @classmethod
    def known(cls) -> tuple["PaymentCategory", ...]:
        """The five categories a transaction can be confirmed with."""
        return tuple(c for c in cls if c is not cls.UNKNOWN)

    @classmethod
    def parse(cls, text: str | None) -> "PaymentCategory | None":
        """
        Resolve free text typed by a user or stored in a record.

        Accepts wire values, enum names and a few English aliases, with or
        without accents and in any case. Returns None when nothing matches.
        """
        key = normalize_text(text).replace(" ", "_")
        if not key:
            return None
        return _ALIASES.get(key)


# Tie-break order when several categories share the top score in a stage.
CATEGORY_PRIORITY: tuple[PaymentCategory, ...] = (
    PaymentCategory.MEAL_VOUCHER,
    PaymentCategory.FOOD_VOUCHER,
    PaymentCategory.CREDIT,
    PaymentCategory.DEBIT,
    PaymentCategory.GENERIC_VOUCHER,
)

_ALIASES: dict[str, PaymentCategory] = {}
for _category in PaymentCategory:
    _ALIASES[_category.value] = _category
    _ALIASES[_category.name.lower()] = _category
_ALIASES.update(
    {
        "credit": PaymentCategory.CREDIT,
        "debit": PaymentCategory.DEBIT,
        "food": PaymentCategory.FOOD_VOUCHER,
        "meal": PaymentCategory.MEAL_VOUCHER,
        "vale_alimentacao": PaymentCategory.FOOD_VOUCHER,
        "vale_refeicao": PaymentCategory.MEAL_VOUCHER,
        "unknown": PaymentCategory.UNKNOWN,
    }
)
