"""Exceptions raised by the streaming coordinator."""


class StreamingError(Exception):
    """Base exception for all coordinator errors."""
    pass


class InvalidStateError(StreamingError):
    """Raised when a command's precondition does not hold (e.g. no open connection)."""
    pass


class EnvelopeDecodeError(StreamingError, ValueError):
    """Raised when an inbound frame is not a valid envelope."""
    pass


class TransportError(StreamingError):
    """Raised when the physical connection cannot transmit."""
    pass
