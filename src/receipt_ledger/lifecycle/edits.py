"""
Typed edit requests.

Only five attributes of a pending transaction can be edited. Unknown field
names are rejected here, at the boundary, instead of being ignored.
"""

from dataclasses import dataclass, fields
from typing import Any

from ..errors import InvalidEditValue, UnknownEditField

EDITABLE_FIELDS = ("category", "amount", "installments", "last_four_digits", "payer_label")


@dataclass(frozen=True)
class EditRequest:
    """Partial update; None means "leave unchanged"."""

    category: str | None = None
    amount: str | None = None
    installments: int | None = None
    last_four_digits: str | None = None
    payer_label: str | None = None

    def __post_init__(self) -> None:
        for name in ("category", "amount", "last_four_digits", "payer_label"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise InvalidEditValue(f"{name} must be text, got {type(value).__name__}")
        if self.installments is not None and (
            isinstance(self.installments, bool) or not isinstance(self.installments, int)
        ):
            raise InvalidEditValue(
                f"installments must be an integer, got {type(self.installments).__name__}"
            )

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "EditRequest":
        """
        Build from a plain dict.

        Raises:
            UnknownEditField: For keys outside EDITABLE_FIELDS
            InvalidEditValue: For values of the wrong type
        """
        for key in data:
            if key not in EDITABLE_FIELDS:
                raise UnknownEditField(key)
        return cls(**data)

    def changes(self) -> dict[str, Any]:
        """Fields that were provided."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {name: value for name, value in values.items() if value is not None}

    @property
    def is_empty(self) -> bool:
        return not self.changes()
