"""Error taxonomy shared by the store, the matching engine and the HTTP layer."""

from __future__ import annotations


class EngineError(RuntimeError):
    """Base class for every error the engine reports to its callers."""


class NotFoundError(EngineError):
    """A subject, photo, album or era set has no usable embedding data."""


class StoreUnavailableError(EngineError):
    """The embedding store could not be reached or failed mid-query."""


class InvalidInputError(EngineError, ValueError):
    """Malformed vectors, boxes, thresholds or limits."""


class OperationCancelled(EngineError):
    """Raised when a caller-supplied cancellation event is set mid-scan."""
