"""Video model for uploaded videos and their view analytics."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, Text
import uuid

from config import settings
from database import Base
from schemas import DeviceClass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Video(Base):
    """Uploaded video plus denormalized view/device counters."""

    __tablename__ = "videos"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    original_url = Column(String, nullable=False)
    thumbnail_url = Column(String, nullable=False)
    uploaded_by = Column(String, nullable=False, default=lambda: settings.DEFAULT_UPLOADER)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    duration = Column(Integer, nullable=False, default=0)  # seconds
    size = Column(Integer, nullable=False, default=0)  # bytes
    likes = Column(Integer, nullable=False, default=0)

    views = Column(Integer, nullable=False, default=0)
    desktop_views = Column(Integer, nullable=False, default=0)
    tablet_views = Column(Integer, nullable=False, default=0)
    mobile_views = Column(Integer, nullable=False, default=0)
    watch_time = Column(Integer, nullable=False, default=0)  # seconds

    # Storage-provider handles; only tracked uploads can be deleted.
    asset_id = Column(String, nullable=True)
    thumbnail_asset_id = Column(String, nullable=True)

    def record_view(self, device: DeviceClass) -> None:
        column = f"{DeviceClass(device).value}_views"
        self.views = int(self.views or 0) + 1
        setattr(self, column, int(getattr(self, column) or 0) + 1)
