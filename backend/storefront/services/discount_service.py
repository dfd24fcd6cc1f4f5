"""
Discount Service
Validation and calculation rules for sales (automatic product discounts)
and vouchers (code-based order discounts)

Purpose:
- Validate a discount against a cart (dates, limits, minimums)
- Compute the discount amount for a set of cart lines
- Resolve the best active sale per product
- Record usage once an order is paid

The pure functions take `now` explicitly so they can be tested without
freezing the clock.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from storefront.domain.common import to_money
from storefront.domain.discount import (
    ApplyDiscountResult, Discount, DiscountInput, DiscountLineItem, SaleMatch,
)
from storefront.repositories.discount_repository import DiscountRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# STATUS / VALIDATION
# ============================================================================

def get_discount_status(discount: Discount, now: Optional[datetime] = None) -> str:
    """inactive, expired, scheduled or active (checked in that order)"""
    now = now or _utcnow()
    if not discount.is_active:
        return "inactive"
    if discount.ends_at and discount.ends_at < now:
        return "expired"
    if discount.starts_at and discount.starts_at > now:
        return "scheduled"
    return "active"


def validate_discount(
    discount: Discount,
    subtotal: Decimal,
    total_quantity: int,
    now: Optional[datetime] = None,
    customer_id: Optional[str] = None
) -> Tuple[bool, Optional[str]]:
    """
    Check whether a discount can be used for a cart

    Returns:
        (valid, error message)
    """
    now = now or _utcnow()

    if not discount.is_active:
        return False, "This discount is no longer active"
    if discount.starts_at and discount.starts_at > now:
        return False, "This discount is not yet active"
    if discount.ends_at and discount.ends_at < now:
        return False, "This discount has expired"
    if discount.usage_limit and discount.used_count >= discount.usage_limit:
        return False, "This discount has reached its usage limit"
    if discount.min_order_amount and subtotal < discount.min_order_amount:
        return False, f"Minimum order amount of ${to_money(discount.min_order_amount)} required"
    if discount.min_checkout_items_quantity and total_quantity < discount.min_checkout_items_quantity:
        return False, f"Minimum {discount.min_checkout_items_quantity} items required"
    if discount.only_for_staff and not customer_id:
        return False, "This discount is only for staff members"

    return True, None


def _is_eligible(discount: Discount, item: DiscountLineItem) -> bool:
    return (
        item.product_id in discount.applicable_product_ids
        or any(cid in discount.applicable_category_ids for cid in item.category_ids)
        or any(cid in discount.applicable_collection_ids for cid in item.collection_ids)
    )


def _apply_type(discount_type: str, value: Decimal, base: Decimal) -> Decimal:
    if discount_type == "percentage":
        return to_money(base * value / Decimal("100"))
    return to_money(min(value, base))


def calculate_discount_amount(
    discount: Discount,
    items: List[DiscountLineItem],
    subtotal: Optional[Decimal] = None
) -> Decimal:
    """
    Discount amount for the given cart lines

    Free shipping discounts return 0: shipping is handled separately.
    Product-scoped discounts only count eligible lines, and with
    apply_once_per_order only the cheapest eligible line.
    """
    if discount.type == "free_shipping":
        return Decimal("0.00")

    value = Decimal(discount.value)

    if discount.scope == "entire_order":
        if subtotal is None:
            subtotal = sum((item.price * item.quantity for item in items), Decimal("0"))
        return _apply_type(discount.type, value, to_money(subtotal))

    eligible = [item for item in items if _is_eligible(discount, item)]
    if not eligible:
        return Decimal("0.00")

    if discount.apply_once_per_order:
        eligible = [min(eligible, key=lambda item: item.price)]

    eligible_subtotal = sum((item.price * item.quantity for item in eligible), Decimal("0"))
    return _apply_type(discount.type, value, to_money(eligible_subtotal))


def calculate_sale_price(price: Decimal, discount_type: str, value: Decimal) -> Decimal:
    """Price after a sale; unknown types leave the price unchanged"""
    price = Decimal(price)
    value = Decimal(value)
    if discount_type == "percentage":
        return to_money(price * (Decimal("1") - value / Decimal("100")))
    if discount_type == "fixed":
        return to_money(max(Decimal("0"), price - value))
    return to_money(price)


def match_sales(
    sales: Iterable[Discount],
    product_ids: List[str],
    category_ids: Optional[List[str]] = None,
    collection_ids: Optional[List[str]] = None,
    now: Optional[datetime] = None
) -> Dict[str, SaleMatch]:
    """
    Best sale per product among sales currently in their date window

    A sale applies to a product when it lists the product id, or when any of
    the given category/collection ids is listed. Highest value wins.
    """
    now = now or _utcnow()
    category_ids = category_ids or []
    collection_ids = collection_ids or []
    best: Dict[str, SaleMatch] = {}

    for sale in sales:
        if not sale.is_active:
            continue
        if sale.starts_at and sale.starts_at > now:
            continue
        if sale.ends_at and sale.ends_at < now:
            continue

        group_match = (
            any(cid in sale.applicable_category_ids for cid in category_ids)
            or any(cid in sale.applicable_collection_ids for cid in collection_ids)
        )

        for product_id in product_ids:
            if product_id not in sale.applicable_product_ids and not group_match:
                continue
            current = best.get(product_id)
            if current is None or Decimal(sale.value) > current.value:
                best[product_id] = SaleMatch(sale_id=sale.id, type=sale.type, value=Decimal(sale.value))

    return best


# ============================================================================
# FORM VALIDATION
# ============================================================================

def _validate_common(data: DiscountInput) -> Optional[str]:
    if data.usage_limit is not None and data.usage_limit <= 0:
        return "Usage limit must be greater than 0"
    if data.min_order_amount is not None and data.min_order_amount < 0:
        return "Minimum order amount must be 0 or greater"
    if data.starts_at and data.ends_at and data.starts_at >= data.ends_at:
        return "End date must be after start date"
    return None


def validate_voucher_form(data: DiscountInput) -> Optional[str]:
    """First validation error for a voucher payload, or None"""
    if not data.name.strip():
        return "Voucher name is required"

    if data.type != "free_shipping":
        if data.value <= 0:
            return "Discount value must be greater than 0"
        if data.type == "percentage" and data.value > 100:
            return "Percentage cannot exceed 100%"

    return _validate_common(data)


def validate_sale_form(data: DiscountInput) -> Optional[str]:
    """First validation error for a sale payload, or None"""
    if not data.name.strip():
        return "Sale name is required"
    if data.value <= 0:
        return "Discount value must be greater than 0"
    if data.type == "percentage" and data.value > 100:
        return "Percentage cannot exceed 100%"

    return _validate_common(data)


def format_discount_value(discount_type: str, value: Decimal) -> str:
    if discount_type == "percentage":
        return f"{Decimal(value).normalize():f}%"
    if discount_type == "fixed":
        return f"${to_money(value)}"
    if discount_type == "free_shipping":
        return "Free shipping"
    return str(value)


# ============================================================================
# DATABASE-BACKED OPERATIONS
# ============================================================================

class DiscountService:
    """Voucher redemption, sale lookup and usage recording for a tenant"""

    def __init__(self, repository: Optional[DiscountRepository] = None):
        self.repository = repository or DiscountRepository()

    def apply_voucher_code(
        self,
        tenant_id: str,
        code: str,
        items: List[DiscountLineItem],
        customer_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ApplyDiscountResult:
        """
        Validate a voucher code against cart lines and compute its amount

        Never raises for business failures: the reason is in `error`.
        """
        now = now or _utcnow()
        subtotal = to_money(sum((item.price * item.quantity for item in items), Decimal("0")))
        total_quantity = sum(item.quantity for item in items)

        voucher = self.repository.find_code(tenant_id, code.strip())
        if not voucher:
            return ApplyDiscountResult(valid=False, error="Invalid voucher code")

        if voucher.status != "active":
            return ApplyDiscountResult(valid=False, error="This voucher code is no longer valid")

        discount = self.repository.find_by_id(tenant_id, voucher.discount_id)
        if not discount:
            return ApplyDiscountResult(valid=False, error="Discount not found")

        valid, error = validate_discount(discount, subtotal, total_quantity, now, customer_id)
        if not valid:
            return ApplyDiscountResult(valid=False, error=error)

        if voucher.usage_limit and voucher.used_count >= voucher.usage_limit:
            return ApplyDiscountResult(valid=False, error="This code has reached its usage limit")

        if customer_id and discount.apply_once_per_customer:
            if self.repository.count_customer_usage(tenant_id, discount.id, customer_id) > 0:
                return ApplyDiscountResult(valid=False, error="You have already used this discount")

        return ApplyDiscountResult(
            valid=True,
            discount_amount=calculate_discount_amount(discount, items, subtotal),
            discount_id=discount.id,
            voucher_code_id=voucher.id,
            discount_type=discount.type,
            discount_value=discount.value,
        )

    def get_applicable_sales(
        self,
        tenant_id: str,
        product_ids: List[str],
        category_ids: Optional[List[str]] = None,
        collection_ids: Optional[List[str]] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, SaleMatch]:
        """Best active sale per product id; lookup failures yield no sales"""
        try:
            sales = self.repository.find_active_sales(tenant_id)
        except Exception as e:
            logger.error(f"Failed to load sales for tenant {tenant_id}: {e}")
            return {}

        return match_sales(sales, product_ids, category_ids, collection_ids, now)

    def record_discount_usage(
        self,
        tenant_id: str,
        discount_id: str,
        order_id: Optional[str],
        discount_amount: Decimal,
        voucher_code_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None
    ) -> bool:
        """Record a redemption; failures are logged and reported as False"""
        try:
            self.repository.record_usage(
                tenant_id, discount_id, order_id, to_money(discount_amount),
                voucher_code_id=voucher_code_id,
                customer_id=customer_id,
                customer_email=customer_email,
            )
            return True
        except Exception as e:
            logger.error(f"Failed to record discount usage for {discount_id}: {e}")
            return False


# Singleton instance for use across the application
_discount_service: Optional[DiscountService] = None


def get_discount_service() -> DiscountService:
    """Get or create the DiscountService singleton"""
    global _discount_service
    if _discount_service is None:
        _discount_service = DiscountService()
    return _discount_service
