"""
Typed HTTP contract for the video API.

No retry or backoff: every call either returns parsed records or raises a
``SyncError`` subclass.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, BinaryIO, Callable, Dict, List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from config import settings
from schemas import DeviceClass, Video, round_half_up
from viewer.errors import SyncError, SyncNetworkError, SyncNotFoundError, SyncServerError

logger = logging.getLogger(__name__)

FilePart = Tuple[str, Union[bytes, BinaryIO], str]
ProgressCallback = Callable[[int], None]

LOCAL_HOST_MARKERS = ("localhost", "127.0.0.1")


def should_use_relative(api_base: Optional[str]) -> bool:
    base = (api_base or "").strip()
    return not base or any(marker in base for marker in LOCAL_HOST_MARKERS)


def api_url(path: str, api_base: Optional[str] = None) -> str:
    """Resolve an API path against the configured base.

    Local/dev topologies talk to the same origin with relative paths;
    production addresses the API host absolutely.
    """
    if not path.startswith("/"):
        path = "/" + path
    base = settings.API_BASE_URL if api_base is None else api_base
    if should_use_relative(base):
        return path
    return f"{base.strip().rstrip('/')}{path}"


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if isinstance(payload, dict):
        for key in ("message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


def _upload_percent(sent: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(round_half_up(sent / total * 100), 100))


class SyncClient:
    """Client for the remote video store."""

    def __init__(self, http: httpx.AsyncClient, api_base: Optional[str] = None) -> None:
        self._http = http
        self.api_base = settings.API_BASE_URL if api_base is None else api_base

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "SyncClient":
        api_base = settings.API_BASE_URL
        origin = settings.APP_ORIGIN if should_use_relative(api_base) else ""
        http = httpx.AsyncClient(base_url=origin, transport=transport, timeout=None)
        return cls(http, api_base=api_base)

    async def aclose(self) -> None:
        await self._http.aclose()

    def url(self, path: str) -> str:
        return api_url(path, self.api_base)

    async def _send(self, request: httpx.Request, failure_message: str) -> httpx.Response:
        try:
            response = await self._http.send(request)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed without a response: %s", request.method, request.url, exc)
            raise SyncNetworkError(f"Network error: {exc}") from exc

        if response.status_code == 404:
            raise SyncNotFoundError(_error_message(response, "Video not found"), status_code=404)
        if not response.is_success:
            raise SyncServerError(
                _error_message(response, failure_message),
                status_code=response.status_code,
            )
        return response

    async def _request(self, method: str, path: str, failure_message: str, **kwargs: Any) -> httpx.Response:
        request = self._http.build_request(method, self.url(path), **kwargs)
        return await self._send(request, failure_message)

    @staticmethod
    def _parse_video(response: httpx.Response) -> Video:
        try:
            return Video.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise SyncServerError("Invalid server response", status_code=response.status_code) from exc

    @staticmethod
    def _parse_videos(response: httpx.Response) -> List[Video]:
        try:
            payload = response.json()
            if not isinstance(payload, list):
                raise ValueError("expected a JSON array")
            return [Video.model_validate(item) for item in payload]
        except (ValueError, ValidationError) as exc:
            raise SyncServerError("Invalid server response", status_code=response.status_code) from exc

    async def list_videos(self) -> List[Video]:
        response = await self._request("GET", "/api/videos", "Failed to fetch videos")
        return self._parse_videos(response)

    async def create_video(
        self,
        *,
        video: FilePart,
        title: str,
        description: str,
        uploader: str,
        thumbnail: Optional[FilePart] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Video:
        files: Dict[str, FilePart] = {"video": video}
        if thumbnail is not None:
            files["thumbnail"] = thumbnail
        data = {"title": title, "description": description, "uploader": uploader}

        # Encode once to learn the multipart headers and total size, then
        # stream the same body while counting bytes handed to the transport.
        encoded = self._http.build_request("POST", self.url("/api/videos"), data=data, files=files)
        total = int(encoded.headers.get("Content-Length") or 0)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in encoded.stream:
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(_upload_percent(sent, total))
                yield chunk

        headers = {"Content-Type": encoded.headers["Content-Type"]}
        if total:
            headers["Content-Length"] = str(total)
        request = self._http.build_request("POST", self.url("/api/videos"), content=body(), headers=headers)
        response = await self._send(request, "Upload failed")
        return self._parse_video(response)

    async def record_view(self, video_id: str, device: DeviceClass) -> Video:
        response = await self._request(
            "POST",
            f"/api/videos/{video_id}/view",
            "Failed to increment view",
            json={"device": DeviceClass(device).value},
        )
        return self._parse_video(response)

    async def update_duration(self, video_id: str, duration: int) -> Video:
        response = await self._request(
            "POST",
            f"/api/videos/{video_id}/duration",
            "Failed to update duration",
            json={"duration": duration},
        )
        return self._parse_video(response)

    async def record_like(self, video_id: str) -> Video:
        response = await self._request("POST", f"/api/videos/{video_id}/like", "Failed to like video")
        return self._parse_video(response)

    async def delete_video(self, video_id: str) -> None:
        await self._request("DELETE", f"/api/videos/{video_id}", "Failed to delete video")


__all__ = [
    "FilePart",
    "ProgressCallback",
    "SyncClient",
    "SyncError",
    "api_url",
    "should_use_relative",
]
