"""
Wire schemas shared by the viewer core and the reference backend.

The JSON contract is camelCase with a Mongo-style ``_id`` key; Python code
works with the snake_case attribute names.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DeviceClass(str, Enum):
    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


def round_half_up(value: float) -> int:
    """Round to the nearest int with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class DeviceCounts(WireModel):
    desktop: int = Field(0, ge=0)
    tablet: int = Field(0, ge=0)
    mobile: int = Field(0, ge=0)

    def bump(self, device: DeviceClass) -> "DeviceCounts":
        key = DeviceClass(device).value
        return self.model_copy(update={key: getattr(self, key) + 1})


class VideoAnalytics(WireModel):
    views: int = Field(0, ge=0)
    devices: DeviceCounts = Field(default_factory=DeviceCounts)
    watch_time: int = Field(0, ge=0)  # seconds


class Video(WireModel):
    """Server-authoritative video record, cached client-side."""

    id: str = Field(alias="_id")
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    original_url: str
    thumbnail_url: str
    uploaded_by: str = Field(min_length=1)
    created_at: datetime
    duration: int = Field(0, ge=0)
    size: int = Field(0, ge=0)
    likes: int = Field(0, ge=0)
    analytics: VideoAnalytics = Field(default_factory=VideoAnalytics)
    asset_id: Optional[str] = None
    thumbnail_asset_id: Optional[str] = None

    @property
    def is_tracked(self) -> bool:
        """True when the video was stored through the tracked upload pipeline."""
        return bool(self.asset_id)

    def with_view(self, device: DeviceClass) -> "Video":
        analytics = self.analytics.model_copy(
            update={
                "views": self.analytics.views + 1,
                "devices": self.analytics.devices.bump(device),
            }
        )
        return self.model_copy(update={"analytics": analytics})

    def with_like(self) -> "Video":
        return self.model_copy(update={"likes": self.likes + 1})

    def with_duration(self, seconds: int) -> "Video":
        return self.model_copy(update={"duration": max(int(seconds), 0)})


class ViewRequest(BaseModel):
    device: str


class DurationRequest(BaseModel):
    duration: Optional[float] = None


class MessageResponse(BaseModel):
    message: str
