"""
Exception types shared by the services and routes.
"""


class TransportError(Exception):
    """Network or stream failure while talking to a model backend."""


class TurnRejectedError(Exception):
    """A send was refused before any state changed."""


class TurnInFlightError(TurnRejectedError):
    """The session already has a turn in flight."""


class TurnCancelledError(Exception):
    """The in-flight turn was stopped by the user."""


class UnknownModelError(ValueError):
    """The requested model id is not in the catalog."""


class EmbeddingDimensionError(ValueError):
    """Query and stored embeddings have different lengths."""


class StorageError(Exception):
    """A read or write against a local store failed."""


class ToolExecutionError(Exception):
    """Raised by tool handlers when the tool ran but failed."""
