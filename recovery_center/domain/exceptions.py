"""Domain-specific exceptions."""

from .constants import FIELD_INVALID_VALUE


class DomainError(Exception):
    """Base exception for domain errors."""

    pass


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    pass


class RecoveryValidationError(ValidationError):
    """Raised when a recovery request is rejected before touching the database."""

    def __init__(
        self, message: str, field: str | None = None, code: str = FIELD_INVALID_VALUE
    ):
        super().__init__(message)
        self.field = field
        self.code = code


class UnknownEntityError(DomainError):
    """Raised when an entity key is missing or not registered."""

    pass


class SchemaError(DomainError):
    """Raised when the live schema lacks a table or column recovery requires."""

    pass


class RestoreConflictError(DomainError):
    """Raised when a restore batch contains ids that cannot be restored."""

    def __init__(self, message: str, blocked_ids: list[str]):
        super().__init__(message)
        self.blocked_ids = blocked_ids


class AuthenticationError(DomainError):
    """Raised when no administrative identity accompanies the request."""

    pass
