"""Exception hierarchy for kline downloads.

Only input and precondition errors are meant to reach the caller of a
download. Transport and decode failures are captured per request by the
dispatcher and reported as failed outcomes.
"""


class KlineFetchError(RuntimeError):
    """Base class for all klinefetch errors."""


class InvalidRangeError(KlineFetchError):
    """Raised for an unparsable datetime or a range whose end precedes its start."""


class InvalidFileError(KlineFetchError):
    """Raised when an existing output file cannot be decoded by any known codec."""


class UnsupportedGranularityError(KlineFetchError):
    """Raised when an interval token is unknown or not offered by an exchange."""


class UnknownExchangeError(KlineFetchError):
    """Raised when no adapter is registered for the requested exchange."""


class RecordDecodeError(KlineFetchError):
    """Raised when a response body does not match the expected kline schema."""


class ConfigError(KlineFetchError):
    """Raised when configuration values are out of their valid range."""
