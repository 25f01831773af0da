"""Client-side sync engine and device-adaptive playback for StreamFlex."""

from viewer.device import Breakpoints, DeviceClassifier, classify
from viewer.errors import (
    DeletionNotAllowedError,
    InvalidTransitionError,
    PlaybackRejectedError,
    SyncError,
    SyncNetworkError,
    SyncNotFoundError,
    SyncServerError,
    UploadFailedError,
    UploadValidationError,
)
from viewer.playback import PlaybackController, PlaybackPhase
from viewer.playback_adapter import PlaybackAdapter, aspect_ratio_for
from viewer.session import ViewerSession
from viewer.sync_client import SyncClient, api_url
from viewer.upload import SelectedFile, UploadController, UploadSession
from viewer.video_store import VideoStore

__all__ = [
    "Breakpoints",
    "DeletionNotAllowedError",
    "DeviceClassifier",
    "InvalidTransitionError",
    "PlaybackAdapter",
    "PlaybackController",
    "PlaybackPhase",
    "PlaybackRejectedError",
    "SelectedFile",
    "SyncClient",
    "SyncError",
    "SyncNetworkError",
    "SyncNotFoundError",
    "SyncServerError",
    "UploadController",
    "UploadFailedError",
    "UploadSession",
    "UploadValidationError",
    "VideoStore",
    "ViewerSession",
    "api_url",
    "aspect_ratio_for",
    "classify",
]
