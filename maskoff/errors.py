"""Exception types raised by the Mask Off engine."""


class MaskOffError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(MaskOffError):
    """Game configuration is missing, malformed or fails validation.

    Raised at load time; a round must never start with an invalid
    configuration.
    """


class RoundStateError(MaskOffError):
    """A round lifecycle operation was called in the wrong state."""
