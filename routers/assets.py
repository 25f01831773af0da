"""
Serves files written by the local asset storage backend.
"""

import mimetypes

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from services.storage import AssetStorage, AssetStorageError, LocalAssetStorage, get_asset_storage

router = APIRouter()


@router.get("/assets/{asset_id:path}")
async def get_asset(asset_id: str, storage: AssetStorage = Depends(get_asset_storage)):
    if not isinstance(storage, LocalAssetStorage):
        raise HTTPException(status_code=404, detail="Asset not found")
    try:
        path = storage.path_for(asset_id)
    except AssetStorageError:
        raise HTTPException(status_code=404, detail="Asset not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Asset not found")
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type)
