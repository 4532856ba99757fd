"""
Edit command parsing.

Grammar: ``(editar|3) <field> <value>``, e.g. "editar valor R$ 45,90" or
"3 parcelas 4". Field names are Portuguese as typed in chat; the English
EditRequest field names are accepted too.
"""

import re

from ..analysis import normalize_text
from ..errors import InvalidEditCommand, InvalidEditValue, UnknownEditField
from ..lifecycle import EDITABLE_FIELDS, EditRequest

EDIT_COMMAND = re.compile(r"^\s*(?:3|editar)\s+(\S+)\s+(.+?)\s*$", re.IGNORECASE | re.DOTALL)

FIELD_COMMANDS = {
    "tipo": "category",
    "valor": "amount",
    "parcelas": "installments",
    "final": "last_four_digits",
    "pagador": "payer_label",
}
FIELD_COMMANDS.update({name: name for name in EDITABLE_FIELDS})


def parse_edit_command(text: str) -> EditRequest:
    """
    Parse an edit command into an EditRequest.

    Raises:
        InvalidEditCommand: If the text does not follow the grammar
        UnknownEditField: If the field is not editable
        InvalidEditValue: If installments is not an integer
    """
    match = EDIT_COMMAND.match(text or "")
    if not match:
        raise InvalidEditCommand(f"Expected 'editar <campo> <valor>', got {text!r}")

    field_key = normalize_text(match.group(1)).replace(" ", "_")
    value = match.group(2).strip()

    field = FIELD_COMMANDS.get(field_key)
    if field is None:
        raise UnknownEditField(match.group(1))

    if field == "installments":
        digits = value.lower().removesuffix("x").strip()
        try:
            return EditRequest(installments=int(digits))
        except ValueError as e:
            raise InvalidEditValue(f"Installments must be a number, got {value!r}") from e

    return EditRequest(**{field: value})
