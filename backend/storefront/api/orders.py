"""
Orders API Endpoints
Order listing, status workflow, notes and fulfillment for the dashboard
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field

from storefront.core.auth import TokenUser, get_current_tenant_user, require_admin, require_staff
from storefront.core.errors import AppError
from storefront.domain.order import (
    FulfillmentStatusUpdate,
    OrderNote,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatus,
)
from storefront.repositories.order_repository import OrderRepository
from storefront.services.audit_logger import get_audit_logger

router = APIRouter()


class OrderUpdate(BaseModel):
    customer_email: Optional[EmailStr] = None
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_note: Optional[str] = None
    shipping_address: Optional[Dict[str, Any]] = None
    shipping_total: Optional[Decimal] = Field(None, ge=0)
    tax_total: Optional[Decimal] = Field(None, ge=0)


@router.get("/")
async def get_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    search: Optional[str] = Query(None, description="Search order number, customer name or email"),
    from_date: Optional[date] = Query(None, description="Created on or after (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Created on or before (YYYY-MM-DD)"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_tenant_user)
):
    try:
        repo = OrderRepository()
        orders, total = repo.find_all(
            user.tenant_id,
            status=status,
            payment_status=payment_status,
            search=search,
            from_date=from_date,
            to_date=to_date,
            limit=limit,
            offset=offset
        )

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(orders),
            "data": [order.to_dict() for order in orders]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching orders: {str(e)}")


@router.get("/stats")
async def get_order_stats(user: TokenUser = Depends(get_current_tenant_user)):
    """
    Order statistics

    Returns:
    - Count per status
    - Revenue of paid orders
    - Today's orders and revenue
    """
    try:
        repo = OrderRepository()
        return {"status": "success", "data": repo.get_stats(user.tenant_id).model_dump(mode="json")}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching order stats: {str(e)}")


@router.get("/{order_id}")
async def get_order(order_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = OrderRepository()
        order = repo.find_by_id(user.tenant_id, order_id)
        if not order:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        return {"status": "success", "data": order.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching order: {str(e)}")


@router.get("/{order_id}/timeline")
async def get_order_timeline(order_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    """Status history and order events, newest first"""
    try:
        repo = OrderRepository()
        if not repo.find_by_id(user.tenant_id, order_id):
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        return {"status": "success", "data": repo.find_timeline(user.tenant_id, order_id)}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching order timeline: {str(e)}")


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    user: TokenUser = Depends(require_staff)
):
    """
    Move an order through the status workflow

    Transitions the workflow does not allow are rejected with
    INVALID_STATUS_TRANSITION (400).
    """
    try:
        repo = OrderRepository()
        order = repo.update_status(user.tenant_id, order_id, data.status, note=data.note, changed_by=user.id)

        get_audit_logger().log(
            user.tenant_id, "status_change", "order", order_id,
            new_values={"status": data.status, "note": data.note}, user_id=user.id
        )
        return {"status": "success", "data": order.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating order status: {str(e)}")


@router.post("/{order_id}/notes", status_code=201)
async def add_order_note(order_id: str, data: OrderNote, user: TokenUser = Depends(require_staff)):
    try:
        repo = OrderRepository()
        if not repo.add_note(user.tenant_id, order_id, data.note, created_by=user.id):
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        return {"status": "success", "message": "Note added"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding order note: {str(e)}")


@router.patch("/{order_id}/fulfillment")
async def update_order_fulfillment(
    order_id: str,
    data: FulfillmentStatusUpdate,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = OrderRepository()
        order = repo.update(user.tenant_id, order_id, {"fulfillment_status": data.fulfillment_status})
        if not order:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        return {"status": "success", "data": order.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating fulfillment: {str(e)}")


@router.put("/{order_id}")
async def update_order(order_id: str, data: OrderUpdate, user: TokenUser = Depends(require_staff)):
    """Update customer and shipping details of an order"""
    try:
        updates = data.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")

        repo = OrderRepository()
        order = repo.update(user.tenant_id, order_id, updates)
        if not order:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        get_audit_logger().log_update(
            user.tenant_id, "order", order_id,
            new_values=data.model_dump(mode="json", exclude_unset=True), user_id=user.id
        )
        return {"status": "success", "data": order.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating order: {str(e)}")


@router.delete("/{order_id}")
async def delete_order(order_id: str, user: TokenUser = Depends(require_admin)):
    try:
        repo = OrderRepository()
        if not repo.delete(user.tenant_id, order_id):
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")

        get_audit_logger().log_delete(user.tenant_id, "order", order_id, user_id=user.id)
        return {"status": "success", "message": f"Order {order_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting order: {str(e)}")
