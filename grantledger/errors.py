"""
Error Taxonomy for Grant Ledger

DESIGN DECISION: Every failure a caller must react to has its own type.

- ValidationError: a draft entity is missing or has an invalid required field.
  The operation is aborted and nothing was changed.
- PersistenceError: a durable write failed. The in-memory ledger has NOT been
  advanced past what is on disk. Must reach the user with the operation named.
- NotFoundError: an operation referenced an id that does not exist.
- ExternalServiceError: the language model or the platform shell failed.
  Always recoverable by falling back to manual entry.

None of these is fatal to the application.
"""

from typing import Iterable, Optional


class GrantLedgerError(Exception):
    """Base exception for all ledger errors."""
    pass


class ValidationError(GrantLedgerError):
    """A draft entity is missing or has invalid required fields."""

    def __init__(self, fields: Iterable[str], message: Optional[str] = None):
        self.fields = list(fields)
        if message is None:
            message = f"Missing or invalid required field(s): {', '.join(self.fields)}"
        super().__init__(message)


class PersistenceError(GrantLedgerError):
    """A durable write failed; the previous on-disk state is intact."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class PartialPostingError(PersistenceError):
    """
    The primary expenditure was saved but its derived entry was not.

    The caller gets the persisted primary back so it can tell the user
    exactly which half of the action succeeded.
    """

    def __init__(self, operation: str, message: str, primary):
        self.primary = primary
        super().__init__(operation, message)


class NotFoundError(GrantLedgerError):
    """An operation referenced an id absent from the ledger."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class ExternalServiceError(GrantLedgerError):
    """The language model or a platform call failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class FeatureUnavailableError(ExternalServiceError):
    """The platform layer needed for this feature is not present."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__("platform", f"{feature} is unavailable in this environment")
