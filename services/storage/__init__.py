"""Public asset storage utilities."""

from services.storage.providers import (
    AssetStorage,
    LocalAssetStorage,
    MemoryAssetStorage,
    build_asset_storage,
    get_asset_storage,
)
from services.storage.types import AssetStorageError, StoredAsset

__all__ = [
    "AssetStorage",
    "AssetStorageError",
    "LocalAssetStorage",
    "MemoryAssetStorage",
    "StoredAsset",
    "build_asset_storage",
    "get_asset_storage",
]
