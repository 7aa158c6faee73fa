class DomainError(Exception):
    """Base exception for attendance ledger failures."""


class ValidationError(DomainError):
    """Raised when a mark or query carries a malformed date, status or id."""


class NetworkError(DomainError):
    """Raised when the backing store cannot be reached or fails a call."""


class ConflictError(DomainError):
    """Raised when the store rejects a write the resolver expected to succeed."""


class UnknownError(DomainError):
    """Raised for failures that fit none of the other categories."""
