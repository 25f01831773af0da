"""
Per-player playback state machine.

    Idle --metadata--> Active(METADATA_LOADED) --play--> Active(PLAYING) <--toggle--> Active(PAUSED)

``Idle`` carries no substates, so fullscreen or an open settings menu can
only exist once metadata has loaded. Loading a different video resets to
``Idle``, and so does a new stream URL for the current video; that switch
keeps volume, rate and fullscreen for when metadata arrives again. The environment (the actual media element) is the source of truth
for fullscreen; requests are fire-and-forget and the flag only moves on
``on_fullscreen_change``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Protocol, Tuple, Union

from schemas import DeviceClass, Video
from viewer.device import DeviceClassifier
from viewer.errors import InvalidTransitionError, PlaybackRejectedError
from viewer.playback_adapter import AspectPolicy, PlaybackAdapter

logger = logging.getLogger(__name__)

PLAYBACK_RATES: Tuple[float, ...] = (0.5, 1.0, 1.5, 2.0)

DurationCallback = Callable[[str, float], object]


class PlaybackEnvironment(Protocol):
    """What the controller needs from the media element it drives."""

    def set_source(self, url: str) -> None: ...

    async def play(self) -> None: ...  # raises PlaybackRejectedError when refused

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def set_rate(self, rate: float) -> None: ...

    def request_fullscreen(self) -> None: ...

    def exit_fullscreen(self) -> None: ...


class PlaybackPhase(str, Enum):
    METADATA_LOADED = "metadataLoaded"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class Idle:
    video_id: Optional[str] = None


@dataclass(frozen=True)
class Active:
    video_id: str
    phase: PlaybackPhase
    duration: float
    position: float = 0.0
    volume: float = 1.0
    rate: float = 1.0
    fullscreen: bool = False
    settings_open: bool = False


PlayerState = Union[Idle, Active]


def format_time(seconds: float) -> str:
    seconds = max(float(seconds or 0), 0.0)
    return f"{int(seconds // 60)}:{int(seconds % 60):02d}"


class PlaybackController:
    def __init__(
        self,
        environment: PlaybackEnvironment,
        classifier: DeviceClassifier,
        adapter: PlaybackAdapter,
        on_duration_known: Optional[DurationCallback] = None,
    ) -> None:
        self._env = environment
        self._classifier = classifier
        self._adapter = adapter
        self._on_duration_known = on_duration_known
        self._state: PlayerState = Idle()
        self._video: Optional[Video] = None
        self._source_url: Optional[str] = None
        self._carried: Optional[Active] = None
        self._unsubscribe = classifier.subscribe(self._on_device_change)

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def phase(self) -> Optional[PlaybackPhase]:
        return self._state.phase if isinstance(self._state, Active) else None

    @property
    def is_playing(self) -> bool:
        return self.phase == PlaybackPhase.PLAYING

    @property
    def device(self) -> DeviceClass:
        return self._classifier.current

    @property
    def aspect_policy(self) -> AspectPolicy:
        return self._adapter.aspect_ratio_for(self.device)

    @property
    def source_url(self) -> Optional[str]:
        return self._source_url

    @property
    def progress_percent(self) -> float:
        if not isinstance(self._state, Active) or not self._state.duration:
            return 0.0
        return self._state.position / self._state.duration * 100

    def _active(self, action: str) -> Active:
        if not isinstance(self._state, Active):
            raise InvalidTransitionError(f"Cannot {action} before metadata has loaded")
        return self._state

    def _apply_source(self) -> None:
        if self._video is None:
            return
        url = self._adapter.stream_url_for(self._video.original_url, self.device)
        if url == self._source_url:
            return
        if isinstance(self._state, Active):
            # A new source restarts at 0:00 and must report metadata again.
            self._carried = self._state
            self._state = Idle(video_id=self._state.video_id)
        self._source_url = url
        self._env.set_source(url)

    def _on_device_change(self, device: DeviceClass) -> None:
        self._apply_source()

    def load(self, video: Video) -> None:
        changed = self._video is None or self._video.id != video.id
        self._video = video
        if changed:
            self._state = Idle(video_id=video.id)
            self._source_url = None
            self._carried = None
        self._apply_source()

    async def on_metadata_loaded(self, duration: float, autoplay: bool = False) -> None:
        if not isinstance(self._state, Idle) or self._video is None:
            raise InvalidTransitionError("Metadata already loaded or no video selected")
        carried, self._carried = self._carried, None
        self._state = Active(
            video_id=self._video.id,
            phase=PlaybackPhase.METADATA_LOADED,
            duration=max(float(duration or 0), 0.0),
        )
        if carried is not None:
            self._state = replace(
                self._state, volume=carried.volume, rate=carried.rate, fullscreen=carried.fullscreen
            )
            self._env.set_volume(carried.volume)
            self._env.set_rate(carried.rate)
        if self._on_duration_known is not None:
            self._on_duration_known(self._video.id, duration)
        if autoplay:
            await self.play()

    def _settle(self, video_id: str, phase: PlaybackPhase) -> None:
        # The video may have changed while the play request was pending.
        if isinstance(self._state, Active) and self._state.video_id == video_id:
            self._state = replace(self._state, phase=phase)

    async def play(self) -> None:
        video_id = self._active("play").video_id
        try:
            await self._env.play()
        except PlaybackRejectedError as exc:
            logger.info("Play request for %s rejected by environment: %s", video_id, exc)
            self._settle(video_id, PlaybackPhase.PAUSED)
            return
        self._settle(video_id, PlaybackPhase.PLAYING)

    def pause(self) -> None:
        state = self._active("pause")
        self._env.pause()
        self._state = replace(state, phase=PlaybackPhase.PAUSED)

    async def toggle_play(self) -> None:
        if self._active("toggle playback").phase == PlaybackPhase.PLAYING:
            self.pause()
        else:
            await self.play()

    def seek(self, seconds: float) -> None:
        state = self._active("seek")
        position = min(max(float(seconds), 0.0), state.duration)
        self._env.seek(position)
        self._state = replace(state, position=position)

    def seek_percent(self, percent: float) -> None:
        state = self._active("seek")
        self.seek(float(percent) / 100 * state.duration)

    def on_time_update(self, position: float) -> None:
        if isinstance(self._state, Active):
            self._state = replace(self._state, position=max(float(position), 0.0))

    def set_volume(self, volume: float) -> None:
        state = self._active("change volume")
        volume = min(max(float(volume), 0.0), 1.0)
        self._env.set_volume(volume)
        self._state = replace(state, volume=volume)

    def toggle_settings(self) -> None:
        state = self._active("open settings")
        self._state = replace(state, settings_open=not state.settings_open)

    def select_rate(self, rate: float) -> None:
        state = self._active("change playback rate")
        if rate not in PLAYBACK_RATES:
            raise ValueError(f"Unsupported playback rate {rate}; choose one of {PLAYBACK_RATES}")
        self._env.set_rate(rate)
        self._state = replace(state, rate=float(rate), settings_open=False)

    def toggle_fullscreen(self) -> None:
        state = self._active("toggle fullscreen")
        if state.fullscreen:
            self._env.exit_fullscreen()
        else:
            self._env.request_fullscreen()

    def on_fullscreen_change(self, active: bool) -> None:
        if isinstance(self._state, Active):
            self._state = replace(self._state, fullscreen=bool(active))
        elif self._carried is not None:
            self._carried = replace(self._carried, fullscreen=bool(active))

    def close(self) -> None:
        self._unsubscribe()
