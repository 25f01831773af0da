"""
In-memory video collection with optimistic mutations.

Local writes land synchronously, before the matching request is dispatched.
When a response arrives the whole local record is overwritten with the
server's copy (no field merge), so with concurrent mutations the last
response to arrive wins.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable, List, Optional, Set, Tuple

from config import settings
from schemas import DeviceClass, Video, round_half_up
from viewer.errors import DeletionNotAllowedError, SyncError
from viewer.sync_client import SyncClient

logger = logging.getLogger(__name__)

StoreListener = Callable[[Tuple[Video, ...]], None]


class VideoStore:
    """Single writer of the viewer's video list (newest first)."""

    def __init__(self, client: SyncClient, duration_threshold: Optional[int] = None) -> None:
        self._client = client
        self._videos: List[Video] = []
        self._listeners: List[StoreListener] = []
        self._pending: Set[asyncio.Task] = set()
        self.duration_threshold = (
            settings.DURATION_SYNC_THRESHOLD_SECONDS if duration_threshold is None else duration_threshold
        )

    @property
    def videos(self) -> Tuple[Video, ...]:
        return tuple(self._videos)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.videos
        for listener in list(self._listeners):
            listener(snapshot)

    def _index_of(self, video_id: str) -> Optional[int]:
        for index, video in enumerate(self._videos):
            if video.id == video_id:
                return index
        return None

    # -- plain collection operations -------------------------------------

    async def load(self) -> Tuple[Video, ...]:
        """Replace the collection with the server list; prior state survives a failure."""
        try:
            videos = await self._client.list_videos()
        except SyncError as exc:
            logger.warning("Failed to load videos: %s", exc.message)
            raise
        self._videos = list(videos)
        self._notify()
        return self.videos

    def add(self, video: Video) -> None:
        self._videos.insert(0, video)
        self._notify()

    def update(self, video: Video) -> bool:
        index = self._index_of(video.id)
        if index is None:
            return False
        self._videos[index] = video
        self._notify()
        return True

    def get_by_id(self, video_id: str) -> Optional[Video]:
        index = self._index_of(video_id)
        return None if index is None else self._videos[index]

    # -- optimistic mutations ----------------------------------------------

    def _dispatch(self, label: str, video_id: str, call: Callable[[], Awaitable[Video]]) -> asyncio.Task:
        async def reconcile() -> Optional[Video]:
            try:
                server_video = await call()
            except SyncError as exc:
                logger.warning("Failed to %s for video %s: %s", label, video_id, exc.message)
                return None
            self.update(server_video)
            return server_video

        task = asyncio.create_task(reconcile())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def increment_view(self, video_id: str, device: DeviceClass) -> asyncio.Task:
        device = DeviceClass(device)
        current = self.get_by_id(video_id)
        if current is not None:
            self.update(current.with_view(device))
        return self._dispatch("increment view", video_id, lambda: self._client.record_view(video_id, device))

    def increment_like(self, video_id: str) -> asyncio.Task:
        current = self.get_by_id(video_id)
        if current is not None:
            self.update(current.with_like())
        return self._dispatch("like video", video_id, lambda: self._client.record_like(video_id))

    def update_duration(self, video_id: str, measured_seconds: float) -> Optional[asyncio.Task]:
        """Record a playback-measured duration.

        Returns the persist task, or None when nothing is sent: invalid
        measurements, and measurements within the threshold of the stored
        value (those only refresh the local copy).
        """
        try:
            measured = float(measured_seconds)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(measured) or measured <= 0:
            return None

        rounded = round_half_up(measured)
        current = self.get_by_id(video_id)
        stored = current.duration if current is not None else 0
        if current is not None:
            self.update(current.with_duration(rounded))
        if abs(stored - rounded) < self.duration_threshold:
            return None
        return self._dispatch(
            "update duration", video_id, lambda: self._client.update_duration(video_id, rounded)
        )

    # -- user-blocking operations ------------------------------------------

    def can_delete(self, video_id: str) -> bool:
        video = self.get_by_id(video_id)
        return video is not None and video.is_tracked

    async def remove(self, video_id: str) -> None:
        if not self.can_delete(video_id):
            raise DeletionNotAllowedError(
                "Only videos uploaded through the tracked pipeline can be deleted."
            )
        try:
            await self._client.delete_video(video_id)
        except SyncError as exc:
            logger.warning("Failed to delete video %s: %s", video_id, exc.message)
            raise
        index = self._index_of(video_id)
        if index is not None:
            del self._videos[index]
            self._notify()

    async def drain(self) -> None:
        """Wait for every in-flight persist call to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
