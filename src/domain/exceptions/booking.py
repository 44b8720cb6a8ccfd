class BookingError(Exception):
    """Base exception for booking failures surfaced to callers."""


class ValidationError(BookingError):
    """Raised when a request is rejected before any availability computation."""


class NotFoundError(BookingError):
    """Raised for unknown location codes, trip ids or vehicle ids."""


class ConflictError(BookingError):
    """Raised when the requested change clashes with the trip's current state."""


class UnavailableError(BookingError):
    """Raised when no vehicle can ever serve the route under current schedules."""


class TransactionConflict(Exception):
    """Raised by a store when a serializable booking transaction lost a race.

    Nothing was written. Callers re-run the whole decision.
    """


class IntegrityViolation(Exception):
    """Raised by a store when a write would break a persisted constraint."""
