"""Asset storage providers: accept bytes + metadata, return a durable locator."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from config import settings, validate_storage_settings
from services.storage.types import AssetStorageError, StoredAsset

logger = logging.getLogger(__name__)


def _safe_filename(name: str) -> str:
    base = os.path.basename(name or "upload.bin")
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_", "."} else "_" for ch in base)
    return cleaned or "upload.bin"


class AssetStorage(ABC):
    name: str

    @abstractmethod
    async def store(
        self,
        data: bytes,
        *,
        filename: str,
        folder: str,
        content_type: Optional[str] = None,
    ) -> StoredAsset:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, asset_id: str) -> None:
        raise NotImplementedError

    def thumbnail_locator_for(self, video: StoredAsset) -> str:
        """Locator of the provider-generated first-frame thumbnail."""
        return f"{video.locator}/thumbnail.jpg"


class LocalAssetStorage(AssetStorage):
    """Writes assets under a directory served at ``public_base_url``."""

    name = "local"

    def __init__(self, root: str, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def thumbnail_locator_for(self, video: StoredAsset) -> str:
        # No frame extraction on local disk; an empty URL means no thumbnail.
        return ""

    def path_for(self, asset_id: str) -> Path:
        path = (self.root / asset_id).resolve()
        if self.root.resolve() not in path.parents:
            raise AssetStorageError(f"Asset id escapes storage root: {asset_id}")
        return path

    async def store(
        self,
        data: bytes,
        *,
        filename: str,
        folder: str,
        content_type: Optional[str] = None,
    ) -> StoredAsset:
        asset_id = f"{folder.strip('/')}/{uuid.uuid4().hex}_{_safe_filename(filename)}"
        destination = self.path_for(asset_id)

        def _write() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise AssetStorageError(f"Could not store {filename}: {exc}") from exc
        return StoredAsset(asset_id=asset_id, locator=f"{self.public_base_url}/{asset_id}", size=len(data))

    async def delete(self, asset_id: str) -> None:
        path = self.path_for(asset_id)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise AssetStorageError(f"Could not delete {asset_id}: {exc}") from exc


class MemoryAssetStorage(AssetStorage):
    """Keeps assets in process memory; for tests and throwaway dev servers."""

    name = "memory"

    def __init__(self, public_base_url: str = "memory://assets") -> None:
        self.public_base_url = public_base_url.rstrip("/")
        self.assets: Dict[str, Tuple[bytes, Optional[str]]] = {}

    async def store(
        self,
        data: bytes,
        *,
        filename: str,
        folder: str,
        content_type: Optional[str] = None,
    ) -> StoredAsset:
        asset_id = f"{folder.strip('/')}/{uuid.uuid4().hex}_{_safe_filename(filename)}"
        self.assets[asset_id] = (bytes(data), content_type)
        return StoredAsset(asset_id=asset_id, locator=f"{self.public_base_url}/{asset_id}", size=len(data))

    async def delete(self, asset_id: str) -> None:
        if self.assets.pop(asset_id, None) is None:
            raise AssetStorageError(f"Unknown asset {asset_id}")


def build_asset_storage(backend: Optional[str] = None) -> AssetStorage:
    if backend is None:
        validate_storage_settings()
    name = (backend or settings.ASSET_STORAGE_BACKEND).strip().lower()
    if name == "memory":
        return MemoryAssetStorage()
    if name == "local":
        return LocalAssetStorage(settings.ASSET_STORAGE_DIR, settings.ASSET_PUBLIC_BASE_URL)
    raise ValueError(f"Unsupported asset storage backend: {name!r}")


@lru_cache(maxsize=1)
def get_asset_storage() -> AssetStorage:
    """FastAPI dependency returning the process-wide configured provider."""
    storage = build_asset_storage()
    logger.info("Using %s asset storage", storage.name)
    return storage
