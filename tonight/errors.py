"""
Exception hierarchy for the event cache.
"""


class TonightError(Exception):
    """Base class for all event cache errors."""


class RegistryError(TonightError, ValueError):
    """Source registry is malformed. Raised at startup only."""


class SourceFetchError(TonightError):
    """A source could not produce events."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class PersistenceError(TonightError):
    """The learned-venue side-file could not be written."""


class AlertDeliveryError(TonightError):
    """An alert sink failed to deliver a notification."""
