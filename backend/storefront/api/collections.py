"""
Collections API Endpoints
Curated product groups and their ordered membership
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from storefront.core.auth import TokenUser, get_current_tenant_user, require_staff
from storefront.core.errors import AppError
from storefront.domain.collection import CollectionCreate, CollectionUpdate
from storefront.repositories.collection_repository import CollectionRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.audit_logger import get_audit_logger

router = APIRouter()


# Request models
class CollectionProductAdd(BaseModel):
    product_id: str
    position: Optional[int] = Field(None, ge=0)


class CollectionReorder(BaseModel):
    product_ids: List[str]


@router.get("/")
async def get_collections(
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    search: Optional[str] = Query(None, description="Search in name or description"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        repo = CollectionRepository()
        collections, total = repo.find_all(
            user.tenant_id, is_active=is_active, search=search, limit=limit, offset=offset
        )

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(collections),
            "data": [c.model_dump(mode="json") for c in collections]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching collections: {str(e)}")


@router.get("/stats")
async def get_collection_stats(user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = CollectionRepository()
        return {"status": "success", "data": repo.get_stats(user.tenant_id).model_dump()}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching collection stats: {str(e)}")


@router.get("/search")
async def search_collections(
    q: str = Query(..., min_length=1, description="Search text"),
    limit: int = Query(20, ge=1, le=100),
    user: TokenUser = Depends(get_current_tenant_user)
):
    """Lightweight search used by pickers in the page editor"""
    try:
        repo = CollectionRepository()
        collections = repo.search(user.tenant_id, q, limit=limit)
        return {
            "status": "success",
            "count": len(collections),
            "data": [c.model_dump(mode="json") for c in collections]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error searching collections: {str(e)}")


@router.get("/{collection_id}")
async def get_collection(collection_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = CollectionRepository()
        collection = repo.find_by_id(user.tenant_id, collection_id)
        if not collection:
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        return {"status": "success", "data": collection.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching collection: {str(e)}")


@router.post("/", status_code=201)
async def create_collection(data: CollectionCreate, user: TokenUser = Depends(require_staff)):
    """
    Create a collection

    The slug defaults to the slugified name; a slug already used by
    another collection of the store is rejected with 409.
    """
    try:
        repo = CollectionRepository()
        collection = repo.create(user.tenant_id, data)

        get_audit_logger().log_create(
            user.tenant_id, "collection", collection.id,
            new_values=collection.model_dump(mode="json"), user_id=user.id
        )
        return {"status": "success", "data": collection.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating collection: {str(e)}")


@router.put("/{collection_id}")
async def update_collection(
    collection_id: str,
    data: CollectionUpdate,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = CollectionRepository()
        collection = repo.update(user.tenant_id, collection_id, data)
        if not collection:
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        get_audit_logger().log_update(
            user.tenant_id, "collection", collection_id,
            new_values=data.model_dump(mode="json", exclude_unset=True), user_id=user.id
        )
        return {"status": "success", "data": collection.model_dump(mode="json")}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating collection: {str(e)}")


@router.delete("/{collection_id}")
async def delete_collection(collection_id: str, user: TokenUser = Depends(require_staff)):
    try:
        repo = CollectionRepository()
        if not repo.delete(user.tenant_id, collection_id):
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        get_audit_logger().log_delete(user.tenant_id, "collection", collection_id, user_id=user.id)
        return {"status": "success", "message": f"Collection {collection_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting collection: {str(e)}")


# ========================================
# Membership
# ========================================

@router.get("/{collection_id}/products")
async def get_collection_products(collection_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = CollectionRepository()
        if not repo.find_by_id(user.tenant_id, collection_id):
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        products = repo.get_products(user.tenant_id, collection_id)
        return {"status": "success", "count": len(products), "data": products}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching collection products: {str(e)}")


@router.post("/{collection_id}/products")
async def add_collection_product(
    collection_id: str,
    data: CollectionProductAdd,
    user: TokenUser = Depends(require_staff)
):
    try:
        if not ProductRepository().find_by_id(user.tenant_id, data.product_id):
            raise HTTPException(status_code=404, detail=f"Product {data.product_id} not found")

        repo = CollectionRepository()
        if not repo.add_product(user.tenant_id, collection_id, data.product_id, data.position):
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        return {"status": "success", "message": "Product added to collection"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding product to collection: {str(e)}")


@router.delete("/{collection_id}/products/{product_id}")
async def remove_collection_product(
    collection_id: str,
    product_id: str,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = CollectionRepository()
        if not repo.remove_product(user.tenant_id, collection_id, product_id):
            raise HTTPException(status_code=404, detail="Product is not in this collection")

        return {"status": "success", "message": "Product removed from collection"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error removing product from collection: {str(e)}")


@router.put("/{collection_id}/products/reorder")
async def reorder_collection_products(
    collection_id: str,
    data: CollectionReorder,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = CollectionRepository()
        if not repo.reorder_products(user.tenant_id, collection_id, data.product_ids):
            raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")

        return {"status": "success", "message": "Collection products reordered"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error reordering collection products: {str(e)}")
