"""Domain exceptions shared by every layer."""


class TempoError(Exception):
    """Base class for all errors raised by the scheduling engine."""


class ValidationError(TempoError):
    """Input rejected before any mutation (quality out of range, bad weights)."""


class NotFoundError(TempoError):
    """A card, deck or pattern that the caller referenced does not exist."""


class AuthorizationError(TempoError):
    """The requesting user does not own the resource."""


class ConcurrentUpdateError(TempoError):
    """The card's scheduling state changed between read and write."""
