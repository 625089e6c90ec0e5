"""Error kinds raised by the pricing engine and the booking state machine.

Malformed input (bad date ranges, unknown pricing modes, invalid promo codes)
is reported with ``django.core.exceptions.ValidationError``.
"""


class BookingError(Exception):
    """Base class for booking domain failures."""


class NotFoundError(BookingError):
    """A referenced listing or booking does not exist."""


class BookingNotFound(NotFoundError):
    pass


class ListingNotFound(NotFoundError):
    pass


class InvalidTransition(BookingError):
    """No edge matches the current status, or its precondition failed."""


class TransitionConflict(InvalidTransition):
    """The booking changed status underneath the caller; safe to retry."""


class TransitionForbidden(BookingError):
    """The actor's role or identity is not allowed to fire the transition."""
