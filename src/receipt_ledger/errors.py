"""
Error taxonomy for the transaction lifecycle.

Every failure a caller can act on is a LifecycleError subclass. Handlers
catch these and turn them into user-facing replies; nothing here formats
messages for end users.
"""


class LifecycleError(Exception):
    """Base exception for store and lifecycle errors."""

    pass


class RecordNotFound(LifecycleError):
    """No pending record with the given id."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Pending transaction not found: {record_id}")


class ValidationError(LifecycleError):
    """Record cannot be confirmed as it stands."""

    def __init__(self, record_id: str, field: str, message: str):
        self.record_id = record_id
        self.field = field
        super().__init__(f"{field}: {message}")


class DuplicatePending(LifecycleError):
    """Owner already has a pending transaction."""

    def __init__(self, owner_id: str, existing):
        self.owner_id = owner_id
        self.existing = existing  # TransactionRecord
        super().__init__(
            f"Owner {owner_id} already has pending transaction {existing.id[:8]}"
        )


class PersistenceError(LifecycleError):
    """Durable snapshot could not be read or written."""

    pass


class EmptyReceiptText(LifecycleError):
    """OCR produced no usable text."""

    pass


class UnknownEditField(LifecycleError):
    """Edit named a field that is not editable."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field is not editable: {field}")


class InvalidEditValue(LifecycleError):
    """Edit value has the wrong type or the edit is empty."""

    pass


class InvalidEditCommand(LifecycleError):
    """Edit command text does not follow the expected grammar."""

    pass


class NoPendingTransaction(LifecycleError):
    """Owner has no pending transaction to act on."""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"No pending transaction for owner {owner_id}")
