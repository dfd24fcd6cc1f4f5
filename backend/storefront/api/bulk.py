"""
Bulk Actions API Endpoints
Delete, status change, archive and export over a selection of records,
plus product category, price and stock changes and customer tags
"""
from fastapi import APIRouter, Depends, HTTPException, Path
from fastapi.responses import Response

from storefront.core.auth import TokenUser, require_admin, require_staff
from storefront.core.errors import AppError
from storefront.domain.bulk import (
    BulkCategoryRequest,
    BulkEntityType,
    BulkExportRequest,
    BulkIdsRequest,
    BulkPriceRequest,
    BulkStatusRequest,
    BulkStockRequest,
    BulkTagRequest,
)
from storefront.services.bulk_actions import get_bulk_action_service

router = APIRouter()


@router.post("/{entity_type}/delete")
async def bulk_delete(
    data: BulkIdsRequest,
    entity_type: BulkEntityType = Path(..., description="products, orders or customers"),
    user: TokenUser = Depends(require_admin)
):
    """
    Delete every selected record

    Each id is processed on its own; failures are reported per item and
    do not stop the rest of the batch.
    """
    try:
        result = get_bulk_action_service().bulk_delete(user.tenant_id, entity_type, data.ids, user_id=user.id)
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting {entity_type}: {str(e)}")


@router.post("/{entity_type}/status")
async def bulk_update_status(
    data: BulkStatusRequest,
    entity_type: BulkEntityType = Path(..., description="products or orders"),
    user: TokenUser = Depends(require_staff)
):
    try:
        result = get_bulk_action_service().bulk_update_status(
            user.tenant_id, entity_type, data.ids, data.status, user_id=user.id
        )
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating {entity_type}: {str(e)}")


@router.post("/{entity_type}/archive")
async def bulk_archive(
    data: BulkIdsRequest,
    entity_type: BulkEntityType = Path(..., description="products or orders"),
    user: TokenUser = Depends(require_staff)
):
    try:
        result = get_bulk_action_service().bulk_archive(user.tenant_id, entity_type, data.ids, user_id=user.id)
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error archiving {entity_type}: {str(e)}")


@router.post("/products/category")
async def bulk_assign_category(data: BulkCategoryRequest, user: TokenUser = Depends(require_staff)):
    try:
        result = get_bulk_action_service().bulk_assign_category(
            user.tenant_id, data.ids, data.category_id, user_id=user.id
        )
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error assigning category: {str(e)}")


@router.post("/products/price")
async def bulk_update_price(data: BulkPriceRequest, user: TokenUser = Depends(require_staff)):
    """
    Change prices of the selected products

    type is one of set, increase, decrease, percentage_increase or
    percentage_decrease; prices never go below zero.
    """
    try:
        result = get_bulk_action_service().bulk_update_price(
            user.tenant_id, data.ids, data.type, data.value, user_id=user.id
        )
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating prices: {str(e)}")


@router.post("/products/stock")
async def bulk_update_stock(data: BulkStockRequest, user: TokenUser = Depends(require_staff)):
    try:
        result = get_bulk_action_service().bulk_update_stock(user.tenant_id, data.updates, user_id=user.id)
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating stock: {str(e)}")


@router.post("/customers/tags")
async def bulk_add_tag(data: BulkTagRequest, user: TokenUser = Depends(require_staff)):
    try:
        result = get_bulk_action_service().bulk_add_tag(user.tenant_id, data.ids, data.tag, user_id=user.id)
        return {"status": "success", "data": result.model_dump()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error tagging customers: {str(e)}")


@router.post("/{entity_type}/export")
async def bulk_export(
    data: BulkExportRequest,
    entity_type: BulkEntityType = Path(..., description="products, orders or customers"),
    user: TokenUser = Depends(require_staff)
):
    """Download the selected records as json, csv or xlsx"""
    try:
        content, filename, media_type = get_bulk_action_service().bulk_export(
            user.tenant_id, entity_type, data.ids, data.format, user_id=user.id
        )
        return Response(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error exporting {entity_type}: {str(e)}")
