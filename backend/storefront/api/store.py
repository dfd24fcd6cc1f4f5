"""
Storefront API Endpoints
Public, per-store routes: cart, checkout, published pages and forms

The store is addressed by its slug; no authentication is required.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from storefront.api.deps import get_store_tenant
from storefront.core.errors import AppError, ValidationError
from storefront.core.rate_limit import rate_limit
from storefront.domain.cart import CartCreate, CartItemCreate, CartItemQuantity, CartUpdate, CheckoutRequest
from storefront.domain.customer import ContactMessageCreate, NewsletterSubscribe
from storefront.domain.tenant import Tenant
from storefront.repositories.customer_repository import CustomerRepository
from storefront.services.cart_service import get_cart_service
from storefront.services.checkout_service import get_checkout_service
from storefront.services.page_renderer import PageRenderer, load_render_context
from storefront.services.page_service import get_page_service

logger = logging.getLogger(__name__)

router = APIRouter()

CART_COOKIE = "cart_id"
CART_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


class VoucherApply(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    customer_id: Optional[str] = None


# ========================================
# Cart
# ========================================

@router.post("/cart", status_code=201)
async def create_cart(
    response: Response,
    data: Optional[CartCreate] = None,
    tenant: Tenant = Depends(get_store_tenant)
):
    """Create an empty cart and remember it in a cookie"""
    try:
        cart = get_cart_service().create_cart(tenant, data or CartCreate())
        response.set_cookie(CART_COOKIE, cart.id, max_age=CART_COOKIE_MAX_AGE, httponly=True, samesite="lax")
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error creating cart: {str(e)}")


@router.get("/cart/{cart_id}")
async def get_cart(cart_id: str, tenant: Tenant = Depends(get_store_tenant)):
    try:
        cart = get_cart_service().get_cart(tenant.id, cart_id)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching cart: {str(e)}")


@router.patch("/cart/{cart_id}")
async def update_cart(cart_id: str, data: CartUpdate, tenant: Tenant = Depends(get_store_tenant)):
    """Customer and shipping details entered before checkout"""
    try:
        cart = get_cart_service().update_details(tenant.id, cart_id, data)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating cart: {str(e)}")


@router.post("/cart/{cart_id}/items")
async def add_cart_item(cart_id: str, data: CartItemCreate, tenant: Tenant = Depends(get_store_tenant)):
    """
    Add a product (or one of its variants) at its current price

    Adding a product already in the cart increases its quantity.
    """
    try:
        cart = get_cart_service().add_item(tenant.id, cart_id, data)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error adding item to cart: {str(e)}")


@router.patch("/cart/{cart_id}/items/{item_id}")
async def update_cart_item(
    cart_id: str,
    item_id: str,
    data: CartItemQuantity,
    tenant: Tenant = Depends(get_store_tenant)
):
    """Set a line's quantity; 0 removes the line"""
    try:
        cart = get_cart_service().update_item_quantity(tenant.id, cart_id, item_id, data.quantity)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error updating cart item: {str(e)}")


@router.delete("/cart/{cart_id}/items/{item_id}")
async def remove_cart_item(cart_id: str, item_id: str, tenant: Tenant = Depends(get_store_tenant)):
    try:
        cart = get_cart_service().remove_item(tenant.id, cart_id, item_id)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error removing cart item: {str(e)}")


@router.delete("/cart/{cart_id}/items")
async def clear_cart(cart_id: str, tenant: Tenant = Depends(get_store_tenant)):
    try:
        cart = get_cart_service().clear(tenant.id, cart_id)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error clearing cart: {str(e)}")


@router.post("/cart/{cart_id}/voucher")
async def apply_cart_voucher(cart_id: str, data: VoucherApply, tenant: Tenant = Depends(get_store_tenant)):
    try:
        cart = get_cart_service().apply_voucher(tenant.id, cart_id, data.code, customer_id=data.customer_id)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error applying voucher: {str(e)}")


@router.delete("/cart/{cart_id}/voucher")
async def remove_cart_voucher(cart_id: str, tenant: Tenant = Depends(get_store_tenant)):
    try:
        cart = get_cart_service().remove_voucher(tenant.id, cart_id)
        return {"status": "success", "data": cart.to_dict()}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error removing voucher: {str(e)}")


# ========================================
# Checkout
# ========================================

@router.post("/checkout", dependencies=[Depends(rate_limit("checkout"))])
async def checkout(
    data: CheckoutRequest,
    tenant: Tenant = Depends(get_store_tenant),
    cart_cookie: Optional[str] = Cookie(None, alias=CART_COOKIE)
):
    """
    Start payment for a cart

    The cart comes from the request body or, failing that, the cart
    cookie. Returns the PaymentIntent client secret for the payment form.
    """
    try:
        cart_id = data.cart_id or cart_cookie
        if not cart_id:
            raise ValidationError("No cart to check out", code="CART_NOT_FOUND")

        result = await get_checkout_service().start_checkout(tenant, cart_id, data)
        return {"status": "success", "data": result}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        logger.error(f"Checkout failed for store {tenant.slug}: {e}")
        raise HTTPException(status_code=500, detail=f"Error starting checkout: {str(e)}")


# ========================================
# Pages
# ========================================

@router.get("/pages/{page_slug}")
async def get_store_page(page_slug: str, tenant: Tenant = Depends(get_store_tenant)):
    """A published page with its blocks resolved; 'home' serves the homepage"""
    try:
        page = get_page_service().get_published_page(tenant.id, page_slug)
        context = load_render_context(tenant.id, page.blocks, currency=tenant.currency)
        blocks = PageRenderer(context).render(page.blocks)

        return {"status": "success", "data": {"page": page.model_dump(mode="json"), "blocks": blocks}}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error loading page: {str(e)}")


# ========================================
# Forms
# ========================================

@router.post("/newsletter", dependencies=[Depends(rate_limit("newsletter"))])
async def subscribe_newsletter(data: NewsletterSubscribe, tenant: Tenant = Depends(get_store_tenant)):
    try:
        CustomerRepository().subscribe_newsletter(tenant.id, data.email)
        return {"status": "success", "message": "Subscribed to newsletter"}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error subscribing to newsletter: {str(e)}")


@router.post("/contact", status_code=201, dependencies=[Depends(rate_limit("contact"))])
async def submit_contact(data: ContactMessageCreate, tenant: Tenant = Depends(get_store_tenant)):
    try:
        message = CustomerRepository().create_contact_message(tenant.id, data)
        return {"status": "success", "message": "Message received", "data": message}

    except (AppError, HTTPException):
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error sending message: {str(e)}")
