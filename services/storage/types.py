"""Asset storage contracts."""

from __future__ import annotations

from dataclasses import dataclass


class AssetStorageError(RuntimeError):
    """Raised when a storage provider cannot store or delete an asset."""


@dataclass(frozen=True)
class StoredAsset:
    asset_id: str  # provider handle, needed for deletion
    locator: str  # durable URL served to viewers
    size: int
