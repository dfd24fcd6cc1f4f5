"""
Pages API Endpoints
Page builder: pages, block registry, versions, theme and block templates
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from storefront.core.auth import TokenUser, get_current_tenant_user, require_staff
from storefront.core.config import settings
from storefront.core.errors import AppError
from storefront.domain.page import BlockTemplateCreate, PageCreate, PageStatus, PageUpdate, ThemeUpdate
from storefront.repositories.tenant_repository import TenantRepository
from storefront.services.block_registry import create_block, get_blocks_by_category
from storefront.services.page_renderer import PageRenderer, load_render_context
from storefront.services.page_service import get_page_service

router = APIRouter()


class NewBlockRequest(BaseModel):
    type: str
    variant: Optional[str] = None


# ========================================
# Block registry
# ========================================

@router.get("/blocks/registry")
async def get_block_registry(user: TokenUser = Depends(get_current_tenant_user)):
    """Block definitions grouped by category, for the editor's block picker"""
    grouped = get_blocks_by_category()
    return {
        "status": "success",
        "data": {
            category: [definition.model_dump() for definition in definitions]
            for category, definitions in grouped.items()
        }
    }


@router.post("/blocks/new")
async def new_block(data: NewBlockRequest, user: TokenUser = Depends(get_current_tenant_user)):
    """A fresh block of the given type populated with its defaults"""
    block = create_block(data.type, variant=data.variant)
    return {"status": "success", "data": block.model_dump(mode="json")}


# ========================================
# Theme
# ========================================

@router.get("/theme")
async def get_theme(user: TokenUser = Depends(get_current_tenant_user)):
    try:
        theme = get_page_service().get_theme(user.tenant_id)
        return {"status": "success", "data": theme.model_dump(mode="json")}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching theme: {str(e)}")


@router.put("/theme")
async def update_theme(data: ThemeUpdate, user: TokenUser = Depends(require_staff)):
    """Colors, typography and layout are merged key by key into the stored theme"""
    try:
        theme = get_page_service().update_theme(user.tenant_id, data)
        return {"status": "success", "data": theme.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating theme: {str(e)}")


# ========================================
# Block templates
# ========================================

@router.get("/templates")
async def get_templates(
    block_type: Optional[str] = Query(None, description="Filter by block type"),
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        templates = get_page_service().list_templates(user.tenant_id, block_type)
        return {
            "status": "success",
            "count": len(templates),
            "data": [t.model_dump(mode="json") for t in templates]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching templates: {str(e)}")


@router.post("/templates", status_code=201)
async def save_template(data: BlockTemplateCreate, user: TokenUser = Depends(require_staff)):
    try:
        template = get_page_service().save_template(user.tenant_id, data)
        return {"status": "success", "data": template.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error saving template: {str(e)}")


@router.delete("/templates/{template_id}")
async def delete_template(template_id: str, user: TokenUser = Depends(require_staff)):
    try:
        get_page_service().delete_template(user.tenant_id, template_id)
        return {"status": "success", "message": f"Template {template_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting template: {str(e)}")


# ========================================
# Pages
# ========================================

@router.get("/")
async def get_pages(
    status: Optional[PageStatus] = Query(None, description="Filter by status"),
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        pages = get_page_service().list_pages(user.tenant_id, status=status)
        return {
            "status": "success",
            "count": len(pages),
            "data": [page.model_dump(mode="json") for page in pages]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching pages: {str(e)}")


@router.post("/", status_code=201)
async def create_page(data: PageCreate, user: TokenUser = Depends(require_staff)):
    """
    Create a draft page

    Home pages start with a hero and a featured products block.
    """
    try:
        page = get_page_service().create_page(user.tenant_id, data)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating page: {str(e)}")


@router.get("/{page_id}")
async def get_page(page_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        page = get_page_service().get_page(user.tenant_id, page_id)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching page: {str(e)}")


@router.put("/{page_id}")
async def update_page(page_id: str, data: PageUpdate, user: TokenUser = Depends(require_staff)):
    """Save the editor state; a change to the blocks snapshots the previous blocks as a version"""
    try:
        page = get_page_service().update_page(user.tenant_id, page_id, data, user_id=user.id)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating page: {str(e)}")


@router.post("/{page_id}/publish")
async def publish_page(page_id: str, user: TokenUser = Depends(require_staff)):
    try:
        page = get_page_service().publish_page(user.tenant_id, page_id, user_id=user.id)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error publishing page: {str(e)}")


@router.post("/{page_id}/duplicate", status_code=201)
async def duplicate_page(page_id: str, user: TokenUser = Depends(require_staff)):
    try:
        page = get_page_service().duplicate_page(user.tenant_id, page_id)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error duplicating page: {str(e)}")


@router.delete("/{page_id}")
async def delete_page(page_id: str, user: TokenUser = Depends(require_staff)):
    try:
        get_page_service().delete_page(user.tenant_id, page_id)
        return {"status": "success", "message": f"Page {page_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting page: {str(e)}")


@router.get("/{page_id}/preview")
async def preview_page(page_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    """Render the page as the storefront would, regardless of its status"""
    try:
        page = get_page_service().get_page(user.tenant_id, page_id)
        tenant = TenantRepository().find_by_id(user.tenant_id)
        currency = tenant.currency if tenant else settings.DEFAULT_CURRENCY

        context = load_render_context(user.tenant_id, page.blocks, currency=currency)
        blocks = PageRenderer(context).render(page.blocks)
        return {"status": "success", "data": {"page": page.model_dump(mode="json"), "blocks": blocks}}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error rendering page: {str(e)}")


# ========================================
# Versions
# ========================================

@router.get("/{page_id}/versions")
async def get_page_versions(page_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        versions = get_page_service().list_versions(user.tenant_id, page_id)
        return {
            "status": "success",
            "count": len(versions),
            "data": [v.model_dump(mode="json") for v in versions]
        }

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching page versions: {str(e)}")


@router.post("/{page_id}/versions/{version_number}/restore")
async def restore_page_version(page_id: str, version_number: int, user: TokenUser = Depends(require_staff)):
    try:
        page = get_page_service().restore_version(user.tenant_id, page_id, version_number, user_id=user.id)
        return {"status": "success", "data": page.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error restoring page version: {str(e)}")
