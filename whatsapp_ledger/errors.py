"""
Exceptions raised by the message pipeline.
"""


class LedgerError(Exception):
    """Base class for errors raised while processing a chat message."""

    pass


class IntentValidationError(LedgerError):
    """Raised when a classified intent is missing data it requires (e.g. an amount)."""

    pass


class UnsupportedIntentError(LedgerError):
    """Raised when no processor accepts the message."""

    pass


class InvalidPayloadError(LedgerError):
    """Raised when an inbound message lacks a field required for its type."""

    pass


class DuplicateMessageError(LedgerError):
    """Raised when another delivery of the same message id was marked first."""

    pass


class ClassificationError(LedgerError):
    """Raised by a classifier backend when it cannot produce an intent."""

    pass
