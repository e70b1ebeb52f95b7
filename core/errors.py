"""
Ledger Error Taxonomy

Typed errors shared by the storage layer and the ledger services.
Every error carries a message that is safe to show to an external caller
and the HTTP status the adapter layer maps it to.
"""

from typing import Dict, List, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors"""

    status_code = 500
    default_message = "An internal error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Caller-supplied data is malformed"""

    status_code = 400
    default_message = "Invalid input"

    def __init__(
        self,
        message: Optional[str] = None,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(message)
        self.field_errors = field_errors or {}


class NotFoundError(LedgerError):
    """Referenced campaign or user does not exist"""

    status_code = 404
    default_message = "Not found"


class ForbiddenError(LedgerError):
    """Ownership check failed

    Reported as 404 so that callers cannot probe for existence.
    """

    status_code = 404
    default_message = "Not found or you do not have permission to modify it"


class ConflictError(LedgerError):
    """Uniqueness conflict"""

    status_code = 409
    default_message = "Conflict"


class DuplicateSlugError(ConflictError):
    """A campaign with the requested slug already exists"""

    default_message = "A campaign with this slug already exists"

    def __init__(self, slug: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message)
        self.slug = slug


class DuplicateSignatureError(ConflictError):
    """A donation with the transaction signature already exists"""

    default_message = "This transaction has already been recorded"

    def __init__(self, transaction_signature: Optional[str] = None, message: Optional[str] = None):
        super().__init__(message)
        self.transaction_signature = transaction_signature


class StorageError(LedgerError):
    """Database failure: exhausted retries or a non-transient error

    The driver error stays on ``__cause__``; ``message`` is always generic.
    """

    status_code = 500
    default_message = "A storage error occurred"

    def __init__(self, message: Optional[str] = None, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class UniqueViolation(StorageError):
    """A unique constraint rejected the statement"""

    def __init__(self, constraint: Optional[str] = None, attempts: int = 1):
        super().__init__(attempts=attempts)
        self.constraint = constraint or ""

    def involves(self, *names: str) -> bool:
        """True when the violated constraint mentions any of ``names``"""
        return any(name in self.constraint for name in names)


class ForeignKeyViolation(StorageError):
    """A foreign key constraint rejected the statement"""

    def __init__(self, constraint: Optional[str] = None, attempts: int = 1):
        super().__init__(attempts=attempts)
        self.constraint = constraint or ""


__all__ = [
    "LedgerError",
    "ValidationError",
    "NotFoundError",
    "ForbiddenError",
    "ConflictError",
    "DuplicateSlugError",
    "DuplicateSignatureError",
    "StorageError",
    "UniqueViolation",
    "ForeignKeyViolation",
]
