"""Exception taxonomy for the mirror engine.

Every error raised by the engine derives from ``MirrorError`` so callers
can catch the whole family at once.  The classes map onto recovery
policies applied by the orchestrator:

- ``ConfigurationError`` -- bad source settings or missing entry-type
  handler.  Fatal to the source (or to the single file it concerns).
- ``TransportError`` -- network/API failure or unexpected HTTP status.
  Not retried within a run.
- ``TransformError`` -- a transform function raised.  Fatal to that file.
- ``RenderError`` -- an entry-type render step raised.  Recovered.
- ``StateTrackingError`` -- watermark or commit lookup failed after a
  successful import.  Logged at low severity.
- ``CleanupError`` -- selective cleanup failed for one source.  Isolated.
- ``SyncCancelled`` -- the cancellation event was set.  Always propagates.
"""

from __future__ import annotations

import threading


class MirrorError(Exception):
    """Base class for all mirror engine errors."""


class ConfigurationError(MirrorError):
    """Invalid source configuration, URL, or missing handler."""


class TransportError(MirrorError):
    """A remote request failed.

    Attributes:
        status: HTTP status code, or ``None`` for connection-level errors.
        url: The URL that was requested, when known.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class TransformError(MirrorError):
    """A transform function failed for one file."""

    def __init__(
        self, message: str, transform_name: str, path: str
    ) -> None:
        super().__init__(message)
        self.transform_name = transform_name
        self.path = path


class RenderError(MirrorError):
    """An entry-type render step failed."""


class StateTrackingError(MirrorError):
    """Watermark bookkeeping failed after an import."""


class CleanupError(MirrorError):
    """Selective cleanup failed for a source."""


class SyncCancelled(MirrorError):
    """The run was cancelled through its cancellation event."""


def raise_if_cancelled(cancel_event: threading.Event | None) -> None:
    """Raise ``SyncCancelled`` when *cancel_event* has been set."""
    if cancel_event is not None and cancel_event.is_set():
        raise SyncCancelled("Sync cancelled")
