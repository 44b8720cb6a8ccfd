from .booking import (
    BookingError,
    ConflictError,
    IntegrityViolation,
    NotFoundError,
    TransactionConflict,
    UnavailableError,
    ValidationError,
)

__all__ = [
    "BookingError",
    "ConflictError",
    "IntegrityViolation",
    "NotFoundError",
    "TransactionConflict",
    "UnavailableError",
    "ValidationError",
]
