"""
Cart Service
Storefront cart operations. Every mutation ends with recalculate() so the
stored totals always satisfy

    subtotal = sum(unit_price * quantity)
    total    = subtotal - discount_total + shipping_total + tax_total
"""
import logging
from typing import List, Optional

from storefront.core.config import settings
from storefront.core.errors import NotFoundError, ValidationError
from storefront.domain.cart import (
    Cart, CartCreate, CartItem, CartItemCreate, CartUpdate, calculate_totals,
)
from storefront.domain.discount import DiscountLineItem
from storefront.domain.product import Product
from storefront.domain.tenant import Tenant
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.services.discount_service import (
    DiscountService, calculate_sale_price, get_discount_service,
)

logger = logging.getLogger(__name__)


def to_discount_items(items: List[CartItem]) -> List[DiscountLineItem]:
    return [
        DiscountLineItem(
            product_id=item.product_id,
            variant_id=item.variant_id,
            price=item.unit_price,
            quantity=item.quantity,
            category_ids=item.category_ids,
            collection_ids=item.collection_ids,
        )
        for item in items
    ]


class CartService:
    """Cart operations for one storefront request"""

    def __init__(
        self,
        carts: Optional[CartRepository] = None,
        products: Optional[ProductRepository] = None,
        discounts: Optional[DiscountService] = None,
    ):
        self.carts = carts or CartRepository()
        self.products = products or ProductRepository()
        self.discounts = discounts or get_discount_service()

    def get_cart(self, tenant_id: str, cart_id: str, active_only: bool = True) -> Cart:
        if active_only:
            cart = self.carts.find_active_by_id(tenant_id, cart_id)
        else:
            cart = self.carts.find_by_id(tenant_id, cart_id)

        if not cart:
            raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
        return cart

    def create_cart(self, tenant: Tenant, data: CartCreate) -> Cart:
        return self.carts.create(tenant.id, data, default_currency=tenant.currency or settings.DEFAULT_CURRENCY)

    def add_item(self, tenant_id: str, cart_id: str, data: CartItemCreate) -> Cart:
        """
        Add a product (or variant) to the cart at its current price

        An active sale lowers the unit price; the regular price is then kept
        as compare_at_price.
        """
        cart = self.get_cart(tenant_id, cart_id)

        product = self.products.find_by_id(tenant_id, data.product_id)
        if not product or product.status != "active":
            raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")

        unit_price = product.price
        available = product.quantity
        sku = product.sku
        name = product.name

        if data.variant_id:
            variant = self.products.find_variant(tenant_id, data.variant_id)
            if not variant or variant.product_id != product.id:
                raise NotFoundError("Variant not found", code="VARIANT_NOT_FOUND")
            if variant.price is not None:
                unit_price = variant.price
            available = variant.quantity
            sku = variant.sku or sku
            name = f"{product.name} - {variant.title}"

        # The new quantity merges into an existing line for the same product/variant
        in_cart = sum(
            item.quantity for item in cart.items
            if item.product_id == product.id and item.variant_id == data.variant_id
        )
        self._check_stock(product, available, in_cart + data.quantity)

        compare_at_price = product.compare_at_price
        sales = self.discounts.get_applicable_sales(
            tenant_id,
            [product.id],
            [product.category_id] if product.category_id else [],
            product.collection_ids,
        )
        sale = sales.get(product.id)
        if sale:
            sale_price = calculate_sale_price(unit_price, sale.type, sale.value)
            if sale_price < unit_price:
                compare_at_price = unit_price
                unit_price = sale_price

        self.carts.add_item(tenant_id, cart_id, {
            'product_id': product.id,
            'variant_id': data.variant_id,
            'product_name': name,
            'product_sku': sku,
            'product_image': product.primary_image,
            'unit_price': unit_price,
            'compare_at_price': compare_at_price,
            'quantity': data.quantity,
        })

        return self.recalculate(tenant_id, cart_id)

    @staticmethod
    def _check_stock(product: Product, available: int, requested: int):
        if product.track_quantity and available < requested:
            raise ValidationError(
                f"Only {max(available, 0)} units of {product.name} available",
                code="INSUFFICIENT_STOCK",
            )

    def update_item_quantity(self, tenant_id: str, cart_id: str, item_id: str, quantity: int) -> Cart:
        """Set a line's quantity; zero or less removes the line"""
        cart = self.get_cart(tenant_id, cart_id)

        item = next((i for i in cart.items if i.id == item_id), None)
        if item and quantity > 0:
            product = self.products.find_by_id(tenant_id, item.product_id)
            if product:
                available = product.quantity
                if item.variant_id:
                    variant = self.products.find_variant(tenant_id, item.variant_id)
                    available = variant.quantity if variant else 0
                self._check_stock(product, available, quantity)

        if not self.carts.update_item_quantity(tenant_id, cart_id, item_id, quantity):
            raise NotFoundError("Cart item not found", code="CART_ITEM_NOT_FOUND")
        return self.recalculate(tenant_id, cart_id)

    def remove_item(self, tenant_id: str, cart_id: str, item_id: str) -> Cart:
        self.get_cart(tenant_id, cart_id)
        if not self.carts.remove_item(tenant_id, cart_id, item_id):
            raise NotFoundError("Cart item not found", code="CART_ITEM_NOT_FOUND")
        return self.recalculate(tenant_id, cart_id)

    def clear(self, tenant_id: str, cart_id: str) -> Cart:
        self.get_cart(tenant_id, cart_id)
        self.carts.clear(tenant_id, cart_id)
        self.carts.set_discount(tenant_id, cart_id, None, None, None)
        return self.recalculate(tenant_id, cart_id)

    def update_details(self, tenant_id: str, cart_id: str, data: CartUpdate) -> Cart:
        self.get_cart(tenant_id, cart_id)
        cart = self.carts.update(tenant_id, cart_id, data)
        if not cart:
            raise NotFoundError("Cart not found", code="CART_NOT_FOUND")
        return cart

    def recalculate(self, tenant_id: str, cart_id: str) -> Cart:
        """
        Recompute and store the cart totals

        An attached voucher is re-validated against the current lines; if it
        no longer applies it is detached.
        """
        cart = self.get_cart(tenant_id, cart_id, active_only=False)
        discount_total = 0

        if cart.voucher_code:
            result = self.discounts.apply_voucher_code(
                tenant_id, cart.voucher_code, to_discount_items(cart.items), cart.customer_id
            )
            if result.valid:
                discount_total = result.discount_amount
            else:
                logger.info(f"Dropping voucher {cart.voucher_code} from cart {cart_id}: {result.error}")
                self.carts.set_discount(tenant_id, cart_id, None, None, None)
                cart.discount_id = cart.voucher_code_id = cart.voucher_code = None

        totals = calculate_totals(
            cart.items,
            discount_total=discount_total,
            shipping_total=cart.shipping_total,
            tax_total=cart.tax_total,
        )
        self.carts.save_totals(tenant_id, cart_id, totals)

        return cart.model_copy(update=totals.model_dump())

    def apply_voucher(self, tenant_id: str, cart_id: str, code: str, customer_id: Optional[str] = None) -> Cart:
        """
        Attach a voucher code to the cart

        Raises:
            ValidationError: INVALID_VOUCHER with the reason as message
        """
        cart = self.get_cart(tenant_id, cart_id)
        if cart.is_empty:
            raise ValidationError("Cart is empty", code="CART_EMPTY")

        result = self.discounts.apply_voucher_code(
            tenant_id, code, to_discount_items(cart.items), customer_id or cart.customer_id
        )
        if not result.valid:
            raise ValidationError(result.error or "Invalid voucher code", code="INVALID_VOUCHER")

        self.carts.set_discount(tenant_id, cart_id, result.discount_id, result.voucher_code_id, code.strip().upper())
        return self.recalculate(tenant_id, cart_id)

    def remove_voucher(self, tenant_id: str, cart_id: str) -> Cart:
        self.get_cart(tenant_id, cart_id)
        self.carts.set_discount(tenant_id, cart_id, None, None, None)
        return self.recalculate(tenant_id, cart_id)


_cart_service: Optional[CartService] = None


def get_cart_service() -> CartService:
    global _cart_service
    if _cart_service is None:
        _cart_service = CartService()
    return _cart_service
