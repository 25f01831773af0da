"""Error taxonomy for the viewer core."""

from __future__ import annotations

from typing import Optional


class SyncError(RuntimeError):
    """A remote operation failed; carries the HTTP status when one was received."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SyncNetworkError(SyncError):
    """Transport-level failure: no response was received."""


class SyncServerError(SyncError):
    """Non-2xx response, or a 2xx response whose body could not be parsed."""


class SyncNotFoundError(SyncServerError):
    """The server no longer knows the targeted video."""


class UploadValidationError(ValueError):
    """Raised before any network call when the upload form is not submittable."""


class UploadFailedError(RuntimeError):
    """Raised when the upload request itself failed."""


class DeletionNotAllowedError(RuntimeError):
    """Raised when deleting a video that was not stored through the tracked pipeline."""


class InvalidTransitionError(RuntimeError):
    """Raised when a playback command is not valid in the current state."""


class PlaybackRejectedError(RuntimeError):
    """Raised by a playback environment that refuses to start playback."""
