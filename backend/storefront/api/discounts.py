"""
Discounts API Endpoints
Vouchers (code based) and sales (automatic) plus voucher code management
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from storefront.core.auth import TokenUser, get_current_tenant_user, require_staff
from storefront.core.errors import AppError, ValidationError
from storefront.domain.discount import Discount, DiscountInput, DiscountKind, VoucherCodesRequest
from storefront.repositories.discount_repository import DiscountRepository
from storefront.services.audit_logger import get_audit_logger
from storefront.services.discount_service import (
    format_discount_value,
    get_discount_status,
    validate_sale_form,
    validate_voucher_form,
)
from storefront.services.voucher_codes import generate_multiple_voucher_codes, get_voucher_code_status

router = APIRouter()


class DiscountActiveUpdate(BaseModel):
    is_active: bool


def _discount_to_dict(discount: Discount) -> dict:
    data = discount.model_dump(mode="json")
    data["status"] = get_discount_status(discount)
    data["display_value"] = format_discount_value(discount.type, discount.value)
    return data


def _validate_form(kind: str, data: DiscountInput):
    error = validate_sale_form(data) if kind == "sale" else validate_voucher_form(data)
    if error:
        raise ValidationError(error)


@router.get("/")
async def get_discounts(
    kind: Optional[DiscountKind] = Query(None, description="sale or voucher"),
    search: Optional[str] = Query(None, description="Search by name"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: TokenUser = Depends(get_current_tenant_user)
):
    """
    Get discounts with their computed status (active, inactive, expired, scheduled)
    """
    try:
        repo = DiscountRepository()
        discounts, total = repo.find_all(user.tenant_id, kind=kind, search=search, limit=limit, offset=offset)

        return {
            "status": "success",
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(discounts),
            "data": [_discount_to_dict(d) for d in discounts]
        }

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching discounts: {str(e)}")


@router.get("/{discount_id}")
async def get_discount(discount_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DiscountRepository()
        discount = repo.find_by_id(user.tenant_id, discount_id)
        if not discount:
            raise HTTPException(status_code=404, detail=f"Discount {discount_id} not found")

        return {"status": "success", "data": _discount_to_dict(discount)}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching discount: {str(e)}")


async def _create(kind: str, data: DiscountInput, user: TokenUser) -> dict:
    try:
        _validate_form(kind, data)

        repo = DiscountRepository()
        discount = repo.create(user.tenant_id, kind, data)

        get_audit_logger().log_create(
            user.tenant_id, kind, discount.id, new_values=discount.model_dump(mode="json"), user_id=user.id
        )
        return {"status": "success", "data": _discount_to_dict(discount)}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating {kind}: {str(e)}")


@router.post("/vouchers", status_code=201)
async def create_voucher(data: DiscountInput, user: TokenUser = Depends(require_staff)):
    return await _create("voucher", data, user)


@router.post("/sales", status_code=201)
async def create_sale(data: DiscountInput, user: TokenUser = Depends(require_staff)):
    return await _create("sale", data, user)


@router.put("/{discount_id}")
async def update_discount(discount_id: str, data: DiscountInput, user: TokenUser = Depends(require_staff)):
    try:
        repo = DiscountRepository()
        existing = repo.find_by_id(user.tenant_id, discount_id)
        if not existing:
            raise HTTPException(status_code=404, detail=f"Discount {discount_id} not found")

        _validate_form(existing.kind, data)
        discount = repo.update(user.tenant_id, discount_id, data)

        get_audit_logger().log_update(
            user.tenant_id, existing.kind, discount_id,
            old_values=existing.model_dump(mode="json"),
            new_values=data.model_dump(mode="json"),
            user_id=user.id
        )
        return {"status": "success", "data": _discount_to_dict(discount)}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating discount: {str(e)}")


@router.patch("/{discount_id}/active")
async def set_discount_active(
    discount_id: str,
    data: DiscountActiveUpdate,
    user: TokenUser = Depends(require_staff)
):
    try:
        repo = DiscountRepository()
        if not repo.set_active(user.tenant_id, discount_id, data.is_active):
            raise HTTPException(status_code=404, detail=f"Discount {discount_id} not found")

        state = "activated" if data.is_active else "deactivated"
        return {"status": "success", "message": f"Discount {state}"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating discount: {str(e)}")


@router.delete("/{discount_id}")
async def delete_discount(discount_id: str, user: TokenUser = Depends(require_staff)):
    try:
        repo = DiscountRepository()
        if not repo.delete(user.tenant_id, discount_id):
            raise HTTPException(status_code=404, detail=f"Discount {discount_id} not found")

        get_audit_logger().log_delete(user.tenant_id, "discount", discount_id, user_id=user.id)
        return {"status": "success", "message": f"Discount {discount_id} deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting discount: {str(e)}")


# ========================================
# Voucher codes
# ========================================

@router.get("/{discount_id}/codes")
async def get_voucher_codes(discount_id: str, user: TokenUser = Depends(get_current_tenant_user)):
    try:
        repo = DiscountRepository()
        codes = repo.find_codes(user.tenant_id, discount_id)

        data = []
        for code in codes:
            item = code.model_dump(mode="json")
            item["status"] = get_voucher_code_status(code)
            data.append(item)

        return {"status": "success", "count": len(data), "data": data}

    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching voucher codes: {str(e)}")


@router.post("/{discount_id}/codes", status_code=201)
async def add_voucher_codes(
    discount_id: str,
    data: VoucherCodesRequest,
    user: TokenUser = Depends(require_staff)
):
    """
    Add voucher codes

    `codes` are stored as manually created; `quantity` generates random
    codes (optionally prefixed) that do not collide with existing ones.
    """
    try:
        if not data.codes and data.quantity == 0:
            raise ValidationError("Provide codes or a quantity to generate")

        repo = DiscountRepository()
        discount = repo.find_by_id(user.tenant_id, discount_id)
        if not discount or discount.kind != "voucher":
            raise HTTPException(status_code=404, detail=f"Voucher {discount_id} not found")

        created = []
        if data.codes:
            created += repo.add_codes(
                user.tenant_id, discount_id, data.codes,
                is_manually_created=True, usage_limit=data.usage_limit
            )

        if data.quantity:
            existing = repo.find_existing_codes(user.tenant_id)
            generated = generate_multiple_voucher_codes(data.quantity, data.prefix, existing)
            created += repo.add_codes(
                user.tenant_id, discount_id, generated,
                is_manually_created=False, usage_limit=data.usage_limit
            )

        return {
            "status": "success",
            "count": len(created),
            "data": [code.model_dump(mode="json") for code in created]
        }

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding voucher codes: {str(e)}")


@router.delete("/{discount_id}/codes/{code_id}")
async def delete_voucher_code(discount_id: str, code_id: str, user: TokenUser = Depends(require_staff)):
    try:
        repo = DiscountRepository()
        if not repo.delete_code(user.tenant_id, code_id):
            raise HTTPException(status_code=404, detail=f"Voucher code {code_id} not found")

        return {"status": "success", "message": "Voucher code deleted"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error deleting voucher code: {str(e)}")
