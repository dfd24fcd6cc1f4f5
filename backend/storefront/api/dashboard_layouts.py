"""
Dashboard Layouts API Endpoints
Per-user widget layouts for the merchant dashboard
"""
from fastapi import APIRouter, Depends, HTTPException

from storefront.core.auth import TokenUser, get_current_tenant_user
from storefront.core.errors import AppError
from storefront.domain.dashboard import (
    DashboardLayoutCreate,
    DashboardLayoutUpdate,
    DuplicateLayoutRequest,
    LayoutPreferences,
)
from storefront.repositories.dashboard_layout_repository import DashboardLayoutRepository

router = APIRouter()


def _load_own_layout(repo: DashboardLayoutRepository, user: TokenUser, layout_id: str):
    layout = repo.get_by_id(user.tenant_id, layout_id)
    # layouts of other users of the store are not visible
    if not layout or layout.user_id != user.id:
        raise HTTPException(status_code=404, detail=f"Layout {layout_id} not found")
    return layout


@router.get("/")
async def get_layouts(user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DashboardLayoutRepository()
        layouts = repo.get_by_user(user.tenant_id, user.id)
        return {
            "status": "success",
            "count": len(layouts),
            "data": [layout.model_dump(mode="json") for layout in layouts]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching layouts: {str(e)}")


@router.get("/default")
async def get_default_layout(user: TokenUser = Depends(get_current_tenant_user)):
    """
    The user's default layout

    Falls back to the most recently updated layout; data is null when the
    user has none yet.
    """
    try:
        repo = DashboardLayoutRepository()
        layout = repo.get_default_for_user(user.tenant_id, user.id)
        return {"status": "success", "data": layout.model_dump(mode="json") if layout else None}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching default layout: {str(e)}")


@router.put("/preferences")
async def save_layout_preferences(data: LayoutPreferences, user: TokenUser = Depends(get_current_tenant_user)):
    """Save the widget arrangement into the default layout, creating it when missing"""
    try:
        repo = DashboardLayoutRepository()
        layout = repo.save_layout_preferences(user.tenant_id, user.id, data)
        return {"status": "success", "data": layout.model_dump(mode="json")}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving layout preferences: {str(e)}")


@router.get("/{layout_id}")
async def get_layout(layout_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DashboardLayoutRepository()
        layout = _load_own_layout(repo, user, layout_id)
        return {"status": "success", "data": layout.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching layout: {str(e)}")


@router.post("/", status_code=201)
async def create_layout(data: DashboardLayoutCreate, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DashboardLayoutRepository()
        layout = repo.create(user.tenant_id, user.id, data)
        return {"status": "success", "data": layout.model_dump(mode="json")}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating layout: {str(e)}")


@router.put("/{layout_id}")
async def update_layout(
    layout_id: str,
    data: DashboardLayoutUpdate,
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        repo = DashboardLayoutRepository()
        layout = repo.update(user.tenant_id, user.id, layout_id, data)
        if not layout:
            raise HTTPException(status_code=404, detail=f"Layout {layout_id} not found")

        return {"status": "success", "data": layout.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating layout: {str(e)}")


@router.delete("/{layout_id}")
async def delete_layout(layout_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DashboardLayoutRepository()
        if not repo.delete(user.tenant_id, user.id, layout_id):
            raise HTTPException(status_code=404, detail=f"Layout {layout_id} not found")

        return {"status": "success", "message": f"Layout {layout_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting layout: {str(e)}")


@router.post("/{layout_id}/default")
async def set_default_layout(layout_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DashboardLayoutRepository()
        if not repo.set_default(user.tenant_id, user.id, layout_id):
            raise HTTPException(status_code=404, detail=f"Layout {layout_id} not found")

        return {"status": "success", "message": "Default layout updated"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error setting default layout: {str(e)}")


@router.post("/{layout_id}/duplicate", status_code=201)
async def duplicate_layout(
    layout_id: str,
    data: DuplicateLayoutRequest,
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        repo = DashboardLayoutRepository()
        layout = repo.duplicate(user.tenant_id, user.id, layout_id, data.new_name)
        if not layout:
            raise HTTPException(status_code=404, detail=f"Layout {layout_id} not found")

        return {"status": "success", "data": layout.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error duplicating layout: {str(e)}")
