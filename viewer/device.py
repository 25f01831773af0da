"""Viewport-width based device classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from config import settings
from schemas import DeviceClass

logger = logging.getLogger(__name__)

DeviceListener = Callable[[DeviceClass], None]


@dataclass(frozen=True)
class Breakpoints:
    """Exclusive upper bounds for the mobile and tablet classes."""

    mobile: int
    tablet: int

    @classmethod
    def from_settings(cls) -> "Breakpoints":
        return cls(mobile=int(settings.MOBILE_BREAKPOINT), tablet=int(settings.TABLET_BREAKPOINT))


DEFAULT_BREAKPOINTS = Breakpoints(mobile=768, tablet=1024)


def classify(width: float, breakpoints: Optional[Breakpoints] = None) -> DeviceClass:
    bounds = breakpoints or DEFAULT_BREAKPOINTS
    if width < bounds.mobile:
        return DeviceClass.MOBILE
    if width < bounds.tablet:
        return DeviceClass.TABLET
    return DeviceClass.DESKTOP


class DeviceClassifier:
    """
    Owns the current device class for one viewer.

    Every resize is reclassified immediately; listeners only hear about
    actual class changes.
    """

    def __init__(self, initial_width: float, breakpoints: Optional[Breakpoints] = None) -> None:
        self.breakpoints = breakpoints or Breakpoints.from_settings()
        self.width = initial_width
        self._current = classify(initial_width, self.breakpoints)
        self._listeners: List[DeviceListener] = []
        self._closed = False

    @property
    def current(self) -> DeviceClass:
        return self._current

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: DeviceListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def resize(self, width: float) -> DeviceClass:
        if self._closed:
            return self._current
        self.width = width
        device = classify(width, self.breakpoints)
        if device != self._current:
            logger.debug("Device class changed %s -> %s (width=%s)", self._current.value, device.value, width)
            self._current = device
            for listener in list(self._listeners):
                listener(device)
        return device

    def close(self) -> None:
        self._listeners.clear()
        self._closed = True
