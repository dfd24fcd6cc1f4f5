"""
Products API Endpoints
Handles the merchant's product catalog and product variants
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from storefront.core.auth import TokenUser, get_current_tenant_user, require_admin, require_staff
from storefront.core.errors import AppError
from storefront.domain.product import (
    OptionGroup,
    ProductCreate,
    ProductStatus,
    ProductUpdate,
    ProductVariantCreate,
    ProductVariantUpdate,
    StockAdjustment,
    generate_variants,
)
from storefront.repositories.product_repository import ProductRepository
from storefront.services.audit_logger import get_audit_logger

router = APIRouter()


# Request models
class ProductStatusUpdate(BaseModel):
    status: ProductStatus


class GenerateVariantsRequest(BaseModel):
    option_groups: List[OptionGroup] = Field(..., min_length=1)
    replace: bool = False


@router.get("/")
async def get_products(
    status: Optional[ProductStatus] = Query(None, description="Filter by status (draft, active, archived)"),
    category_id: Optional[str] = Query(None, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search by name or SKU"),
    stock_level: Optional[str] = Query(None, pattern="^(low|out|in)$", description="Filter by stock level"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_tenant_user)
):
    """
    Get all products of the current store with optional filters
    """
    try:
        repo = ProductRepository()

        products, total = repo.find_all(
            user.tenant_id,
            status=status,
            category_id=category_id,
            search=search,
            stock_level=stock_level,
            limit=limit,
            offset=offset
        )

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(products),
            "data": [product.to_dict() for product in products]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching products: {str(e)}")


@router.get("/stats")
async def get_product_stats(user: TokenUser = Depends(get_current_tenant_user)):
    """
    Get product statistics

    Returns:
    - Total products
    - Products per status
    - Low stock and out of stock counts
    """
    try:
        repo = ProductRepository()
        return {"status": "success", "data": repo.get_stats(user.tenant_id)}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching product stats: {str(e)}")


@router.get("/{product_id}")
async def get_product(product_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    """Get a product with its variants"""
    try:
        repo = ProductRepository()
        product = repo.find_by_id(user.tenant_id, product_id)

        if not product:
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        data = product.to_dict()
        data["variants"] = [v.model_dump(mode="json") for v in repo.find_variants(user.tenant_id, product_id)]
        return {"status": "success", "data": data}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching product: {str(e)}")


@router.post("/", status_code=201)
async def create_product(data: ProductCreate, user: TokenUser = Depends(require_staff)):
    try:
        repo = ProductRepository()
        product = repo.create(user.tenant_id, data)

        get_audit_logger().log_create(
            user.tenant_id, "product", product.id, new_values=product.to_dict(), user_id=user.id
        )
        return {"status": "success", "data": product.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating product: {str(e)}")


@router.put("/{product_id}")
async def update_product(product_id: str, data: ProductUpdate, user: TokenUser = Depends(require_staff)):
    try:
        repo = ProductRepository()
        existing = repo.find_by_id(user.tenant_id, product_id)
        if not existing:
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        product = repo.update(user.tenant_id, product_id, data)

        get_audit_logger().log_update(
            user.tenant_id, "product", product_id,
            old_values=existing.to_dict(),
            new_values=data.model_dump(mode="json", exclude_unset=True),
            user_id=user.id
        )
        return {"status": "success", "data": product.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating product: {str(e)}")


@router.patch("/{product_id}/status")
async def update_product_status(
    product_id: str,
    data: ProductStatusUpdate,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = ProductRepository()
        if not repo.update_status(user.tenant_id, product_id, data.status):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        get_audit_logger().log_update(
            user.tenant_id, "product", product_id, new_values={"status": data.status}, user_id=user.id
        )
        return {"status": "success", "message": f"Product status updated to {data.status}"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating product status: {str(e)}")


@router.delete("/{product_id}")
async def delete_product(product_id: str, user: TokenUser = Depends(require_admin)):
    try:
        repo = ProductRepository()
        existing = repo.find_by_id(user.tenant_id, product_id)
        if not existing or not repo.delete(user.tenant_id, product_id):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        get_audit_logger().log_delete(
            user.tenant_id, "product", product_id, old_values=existing.to_dict(), user_id=user.id
        )
        return {"status": "success", "message": f"Product {product_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting product: {str(e)}")


# ========================================
# Variants
# ========================================

@router.get("/{product_id}/variants")
async def get_product_variants(product_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = ProductRepository()
        variants = repo.find_variants(user.tenant_id, product_id)
        return {
            "status": "success",
            "count": len(variants),
            "data": [v.model_dump(mode="json") for v in variants]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching variants: {str(e)}")


@router.post("/{product_id}/variants", status_code=201)
async def create_product_variant(
    product_id: str,
    data: ProductVariantCreate,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = ProductRepository()
        if not repo.find_by_id(user.tenant_id, product_id):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        variant = repo.create_variant(user.tenant_id, product_id, data)
        return {"status": "success", "data": variant.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating variant: {str(e)}")


@router.post("/{product_id}/variants/generate", status_code=201)
async def generate_product_variants(
    product_id: str,
    data: GenerateVariantsRequest,
    user: TokenUser = Depends(require_staff)
):
    """
    Create one variant per combination of option values

    With replace=true the existing variants are deleted first.
    """
    try:
        repo = ProductRepository()
        if not repo.find_by_id(user.tenant_id, product_id):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")

        if data.replace:
            for existing in repo.find_variants(user.tenant_id, product_id):
                repo.delete_variant(user.tenant_id, product_id, existing.id)

        variants = repo.create_variants(user.tenant_id, product_id, generate_variants(data.option_groups))
        return {
            "status": "success",
            "count": len(variants),
            "data": [v.model_dump(mode="json") for v in variants]
        }

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error generating variants: {str(e)}")


@router.put("/{product_id}/variants/{variant_id}")
async def update_product_variant(
    product_id: str,
    variant_id: str,
    data: ProductVariantUpdate,
    user: TokenUser = Depends(require_staff)
):
    try:
        variant = ProductRepository().update_variant(user.tenant_id, product_id, variant_id, data)
        if not variant:
            raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")

        return {"status": "success", "data": variant.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating variant: {str(e)}")


@router.patch("/{product_id}/variants/{variant_id}/stock")
async def update_variant_stock(
    product_id: str,
    variant_id: str,
    data: StockAdjustment,
    user: TokenUser = Depends(require_staff)
):
    """Set, add to or subtract from a variant's stock (never below zero)"""
    try:
        repo = ProductRepository()
        existing = repo.find_variant(user.tenant_id, variant_id)
        if not existing or existing.product_id != product_id:
            raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")

        variant = repo.adjust_variant_stock(user.tenant_id, variant_id, data.quantity, data.action)
        if not variant:
            raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")

        get_audit_logger().log_update(
            user.tenant_id, "product_variant", variant_id,
            old_values={"quantity": existing.quantity},
            new_values={"quantity": variant.quantity},
            user_id=user.id,
        )
        return {"status": "success", "data": variant.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating stock: {str(e)}")


@router.delete("/{product_id}/variants/{variant_id}")
async def delete_product_variant(product_id: str, variant_id: str, user: TokenUser = Depends(require_staff)):
    try:
        repo = ProductRepository()
        if not repo.delete_variant(user.tenant_id, product_id, variant_id):
            raise HTTPException(status_code=404, detail=f"Variant {variant_id} not found")

        return {"status": "success", "message": f"Variant {variant_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting variant: {str(e)}")
