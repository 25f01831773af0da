"""Upload form state, validation and transmission."""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Optional, Union

from config import max_upload_bytes, settings
from schemas import Video
from viewer.errors import SyncError, SyncNetworkError, UploadFailedError, UploadValidationError
from viewer.sync_client import FilePart, SyncClient
from viewer.video_store import VideoStore

logger = logging.getLogger(__name__)

GENERIC_UPLOAD_FAILURE = "Failed to upload video. Please try again."
NETWORK_UPLOAD_FAILURE = "Network error during upload"


@dataclass
class SelectedFile:
    """A file picked by the user; ``size`` is what the picker reports."""

    filename: str
    content: Union[bytes, BinaryIO, Path]
    content_type: str = "application/octet-stream"
    size: int = -1

    def __post_init__(self) -> None:
        if self.size < 0:
            if isinstance(self.content, bytes):
                self.size = len(self.content)
            elif isinstance(self.content, Path):
                self.size = self.content.stat().st_size
            else:
                self.size = 0

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "SelectedFile":
        path = Path(path)
        guessed = content_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(filename=path.name, content=path, content_type=guessed, size=path.stat().st_size)

    def as_part(self) -> FilePart:
        content = self.content
        if isinstance(content, Path):
            content = content.read_bytes()
        return (self.filename, content, self.content_type)


@dataclass
class UploadSession:
    title: str = ""
    description: str = ""
    uploader: str = field(default_factory=lambda: settings.DEFAULT_UPLOADER)
    video_file: Optional[SelectedFile] = None
    thumbnail_file: Optional[SelectedFile] = None
    error: Optional[str] = None
    progress: Optional[int] = None

    @property
    def is_uploading(self) -> bool:
        return self.progress is not None

    def select_video(self, selected: Optional[SelectedFile]) -> None:
        self.video_file = selected
        self.error = None

    def select_thumbnail(self, selected: Optional[SelectedFile]) -> None:
        self.thumbnail_file = selected


class UploadController:
    def __init__(self, client: SyncClient, store: VideoStore, max_bytes: Optional[int] = None) -> None:
        self._client = client
        self._store = store
        self.max_bytes = max_upload_bytes() if max_bytes is None else max_bytes

    @property
    def max_megabytes(self) -> int:
        return self.max_bytes // (1024 * 1024)

    def validate(self, session: UploadSession) -> None:
        if session.video_file is None:
            raise UploadValidationError("Please select a video file to upload.")
        if session.video_file.size > self.max_bytes:
            raise UploadValidationError(
                f"Video is too large. Maximum allowed size is {self.max_megabytes}MB."
            )
        if not session.title.strip() or not session.description.strip():
            raise UploadValidationError("Title and description are required.")

    async def submit(self, session: UploadSession) -> Video:
        session.error = None
        try:
            self.validate(session)
        except UploadValidationError as exc:
            session.error = str(exc)
            raise

        def on_progress(percent: int) -> None:
            session.progress = percent

        session.progress = 0
        try:
            created = await self._client.create_video(
                video=session.video_file.as_part(),
                thumbnail=session.thumbnail_file.as_part() if session.thumbnail_file else None,
                title=session.title,
                description=session.description,
                uploader=session.uploader or settings.DEFAULT_UPLOADER,
                on_progress=on_progress,
            )
        except SyncNetworkError as exc:
            logger.warning("Upload error: %s", exc.message)
            session.error = NETWORK_UPLOAD_FAILURE
            raise UploadFailedError(session.error) from exc
        except SyncError as exc:
            logger.warning("Upload error (status=%s): %s", exc.status_code, exc.message)
            session.error = exc.message or GENERIC_UPLOAD_FAILURE
            raise UploadFailedError(session.error) from exc
        finally:
            session.progress = None

        self._store.add(created)
        logger.info("Uploaded video %s (%s bytes)", created.id, created.size)
        return created
