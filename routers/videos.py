"""
Video router: listing, upload, view/like/duration counters and deletion.
"""

import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import get_db
from models.video import Video
from schemas import (
    DeviceClass,
    DeviceCounts,
    DurationRequest,
    Video as VideoPayload,
    VideoAnalytics,
    ViewRequest,
    round_half_up,
)
from services.storage import AssetStorage, AssetStorageError, get_asset_storage

router = APIRouter()
logger = logging.getLogger(__name__)

VIDEO_FOLDER = "streamflex/videos"
THUMBNAIL_FOLDER = "streamflex/thumbnails"
UPLOAD_CHUNK_BYTES = 1024 * 1024


def serialize_video(video: Video) -> dict:
    payload = VideoPayload(
        id=video.id,
        title=video.title,
        description=video.description,
        original_url=video.original_url,
        thumbnail_url=video.thumbnail_url,
        uploaded_by=video.uploaded_by,
        created_at=video.created_at,
        duration=int(video.duration or 0),
        size=int(video.size or 0),
        likes=int(video.likes or 0),
        analytics=VideoAnalytics(
            views=int(video.views or 0),
            devices=DeviceCounts(
                desktop=int(video.desktop_views or 0),
                tablet=int(video.tablet_views or 0),
                mobile=int(video.mobile_views or 0),
            ),
            watch_time=int(video.watch_time or 0),
        ),
        asset_id=video.asset_id,
        thumbnail_asset_id=video.thumbnail_asset_id,
    )
    return payload.to_wire()


async def _get_video_or_404(db: AsyncSession, video_id: str) -> Video:
    result = await db.execute(select(Video).where(Video.id == video_id))
    video = result.scalar_one_or_none()
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


async def _read_upload(file: UploadFile) -> bytes:
    chunks: List[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > settings.MAX_SERVER_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="Uploaded file is too large")
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/videos")
async def list_videos(db: AsyncSession = Depends(get_db)):
    """All videos, newest first."""
    result = await db.execute(select(Video).order_by(Video.created_at.desc()))
    return [serialize_video(video) for video in result.scalars().all()]


@router.post("/videos", status_code=201)
async def create_video(
    video: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    title: str = Form(""),
    description: str = Form(""),
    uploader: str = Form(""),
    db: AsyncSession = Depends(get_db),
    storage: AssetStorage = Depends(get_asset_storage),
):
    """Store the uploaded video (and optional thumbnail) and create its record."""
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="Video file is required")
    if not title.strip() or not description.strip():
        raise HTTPException(status_code=400, detail="Title and description are required")

    video_bytes = await _read_upload(video)
    try:
        stored_video = await storage.store(
            video_bytes,
            filename=video.filename,
            folder=VIDEO_FOLDER,
            content_type=video.content_type,
        )
        thumbnail_asset_id = None
        if thumbnail is not None and thumbnail.filename:
            thumbnail_bytes = await _read_upload(thumbnail)
            stored_thumb = await storage.store(
                thumbnail_bytes,
                filename=thumbnail.filename,
                folder=THUMBNAIL_FOLDER,
                content_type=thumbnail.content_type,
            )
            thumbnail_url = stored_thumb.locator
            thumbnail_asset_id = stored_thumb.asset_id
        else:
            thumbnail_url = storage.thumbnail_locator_for(stored_video)
    except AssetStorageError as exc:
        logger.exception("Upload failed: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to upload video") from exc

    record = Video(
        title=title.strip(),
        description=description.strip(),
        original_url=stored_video.locator,
        thumbnail_url=thumbnail_url,
        uploaded_by=uploader.strip() or settings.DEFAULT_UPLOADER,
        size=stored_video.size,
        asset_id=stored_video.asset_id,
        thumbnail_asset_id=thumbnail_asset_id,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    logger.info("Created video %s (%s bytes)", record.id, record.size)
    return serialize_video(record)


@router.post("/videos/{video_id}/view")
async def record_view(video_id: str, request: ViewRequest, db: AsyncSession = Depends(get_db)):
    """Increment the view counter and the matching device bucket."""
    try:
        device = DeviceClass(request.device)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid device type")

    video = await _get_video_or_404(db, video_id)
    video.record_view(device)
    await db.commit()
    await db.refresh(video)
    return serialize_video(video)


@router.post("/videos/{video_id}/duration")
async def update_duration(video_id: str, request: DurationRequest, db: AsyncSession = Depends(get_db)):
    """Store a playback-measured duration, rounded to whole seconds."""
    duration = request.duration
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise HTTPException(status_code=400, detail="Invalid duration value")

    video = await _get_video_or_404(db, video_id)
    video.duration = round_half_up(duration)
    await db.commit()
    await db.refresh(video)
    return serialize_video(video)


@router.post("/videos/{video_id}/like")
async def record_like(video_id: str, db: AsyncSession = Depends(get_db)):
    video = await _get_video_or_404(db, video_id)
    video.likes = int(video.likes or 0) + 1
    await db.commit()
    await db.refresh(video)
    return serialize_video(video)


@router.delete("/videos/{video_id}", status_code=204)
async def delete_video(
    video_id: str,
    db: AsyncSession = Depends(get_db),
    storage: AssetStorage = Depends(get_asset_storage),
):
    """Delete a tracked video and, best-effort, its stored assets."""
    video = await _get_video_or_404(db, video_id)
    if not video.asset_id:
        raise HTTPException(status_code=400, detail="Video has no tracked asset and cannot be deleted")

    for asset_id in (video.asset_id, video.thumbnail_asset_id):
        if not asset_id:
            continue
        try:
            await storage.delete(asset_id)
        except AssetStorageError as exc:
            logger.warning("Could not delete stored asset %s: %s", asset_id, exc)

    await db.delete(video)
    await db.commit()
    return Response(status_code=204)
