"""
Exception types raised across context-keeper.

Workers convert every one of these into a retryable job failure; the capture
entry point swallows them at the boundary.
"""


class ContextKeeperError(Exception):
    """Base class for all context-keeper errors."""


class MalformedPayloadError(ContextKeeperError):
    """A job payload does not match the shape registered for its job type."""


class ValidatorUnavailableError(ContextKeeperError):
    """The deep validator could not produce a verdict (transport or parse failure)."""


class ReasonerUnavailableError(ContextKeeperError):
    """The external reasoning model could not be reached or returned nothing usable."""


class ExtractionError(ContextKeeperError):
    """A learning extraction strategy failed without a fallback."""
