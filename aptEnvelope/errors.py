"""Exceptions and warnings raised by the envelope pipeline."""


class EnvelopeError(Exception):
    """Base class for failures that abort an envelope analysis run."""
    pass


class InvalidInputError(EnvelopeError, ValueError):
    """Raised for an unparsable or out-of-range selection token or option value."""
    pass


class ConfigurationTooFineError(EnvelopeError, ValueError):
    """Raised when a grid would need more cells than the allocation limit allows."""
    pass


class ConsistencyWarning(UserWarning):
    """Emitted when bookkeeping detects inconsistent data (negative residuals, duplicate positions)."""
    pass
