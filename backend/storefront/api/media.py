"""
Media API Endpoints
Image and video uploads to Supabase storage for the page builder
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from storefront.core.auth import TokenUser, get_current_tenant_user, require_staff
from storefront.core.errors import AppError
from storefront.services.media_service import get_media_service

router = APIRouter()


@router.post("/upload", status_code=201)
async def upload_media(file: UploadFile = File(...), user: TokenUser = Depends(require_staff)):
    """
    Upload an image or video (10 MB max by default)

    Returns the stored asset including its public URL.
    """
    try:
        content = await file.read()
        asset = get_media_service().upload(user.tenant_id, file.filename or "upload", file.content_type, content)
        return {"status": "success", "data": asset.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error uploading media: {str(e)}")


@router.get("/")
async def get_media(
    kind: Optional[str] = Query(None, pattern="^(image|video)$", description="image or video"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        assets = get_media_service().list_assets(user.tenant_id, kind=kind, limit=limit, offset=offset)
        return {
            "status": "success",
            "limit": limit,
            "offset": offset,
            "count": len(assets),
            "data": [a.model_dump(mode="json") for a in assets]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching media: {str(e)}")


@router.delete("/{asset_id}")
async def delete_media(asset_id: str, user: TokenUser = Depends(require_staff)):
    try:
        get_media_service().delete_asset(user.tenant_id, asset_id)
        return {"status": "success", "message": f"Media asset {asset_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting media: {str(e)}")
