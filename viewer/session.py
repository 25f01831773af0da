"""Explicit construction and lifecycle of the viewer services."""

from __future__ import annotations

import logging
from typing import List, Optional

from schemas import Video
from viewer.device import Breakpoints, DeviceClassifier
from viewer.errors import SyncError
from viewer.playback import PlaybackController, PlaybackEnvironment
from viewer.playback_adapter import PlaybackAdapter, StreamUrlPolicy
from viewer.sync_client import SyncClient
from viewer.upload import UploadController, UploadSession
from viewer.video_store import VideoStore

logger = logging.getLogger(__name__)


class ViewerSession:
    """
    Owns one viewer's services and hands them to consumers.

    Usage:
        async with ViewerSession(viewport_width=1280) as viewer:
            video = viewer.watch(video_id)
    """

    def __init__(
        self,
        *,
        client: Optional[SyncClient] = None,
        viewport_width: float = 1280,
        breakpoints: Optional[Breakpoints] = None,
        stream_policy: Optional[StreamUrlPolicy] = None,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        self._owns_client = client is None
        self.client = client or SyncClient.from_settings()
        self.classifier = DeviceClassifier(viewport_width, breakpoints)
        self.adapter = PlaybackAdapter(stream_policy)
        self.store = VideoStore(self.client)
        self.uploads = UploadController(self.client, self.store, max_bytes=max_upload_bytes)
        self._players: List[PlaybackController] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        if self.started:
            return
        self.started = True
        try:
            await self.store.load()
        except SyncError:
            # Keep whatever the store already holds; the user can reload.
            logger.warning("Starting with an empty video list")

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.store.drain()
        for player in self._players:
            player.close()
        self._players.clear()
        self.classifier.close()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ViewerSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def new_upload(self) -> UploadSession:
        return UploadSession()

    def open_player(self, environment: PlaybackEnvironment) -> PlaybackController:
        player = PlaybackController(
            environment,
            self.classifier,
            self.adapter,
            on_duration_known=self.store.update_duration,
        )
        self._players.append(player)
        return player

    def watch(self, video_id: str) -> Optional[Video]:
        """Look up a video for the watch page and record one view for the current device."""
        video = self.store.get_by_id(video_id)
        if video is None:
            return None
        self.store.increment_view(video_id, self.classifier.current)
        return self.store.get_by_id(video_id)
