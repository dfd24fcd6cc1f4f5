"""
Checkout Service
Turns an active cart into a pending order and a Stripe PaymentIntent, and
applies the outcome reported by Stripe webhooks

Checkout flow:
1. Tenant must be able to accept payments (Stripe Connect onboarding done)
2. Cart must be active and non-empty
3. Totals are recomputed server side; client totals are never trusted
4. Customer/shipping info from the request is merged onto the cart
5. A pending order with its items is created
6. A PaymentIntent is created; on failure the pending order is removed
7. The intent id is stored on the order and the checkout audit logged
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from storefront.connectors.stripe_connector import StripeConnector
from storefront.core.errors import NotFoundError, PaymentError, ValidationError
from storefront.domain.cart import Cart, CartUpdate, CheckoutRequest
from storefront.domain.common import to_minor_units, to_money
from storefront.domain.order import OrderCreate, OrderItem, generate_order_number
from storefront.domain.tenant import Tenant
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.services.audit_logger import AuditLogger, get_audit_logger
from storefront.services.cart_service import CartService
from storefront.services.discount_service import DiscountService, get_discount_service

logger = logging.getLogger(__name__)

CUSTOMER_FIELDS = (
    'email', 'customer_name', 'customer_phone', 'shipping_address', 'shipping_city',
    'shipping_area', 'shipping_postal_code', 'shipping_country',
)


class CheckoutService:

    def __init__(
        self,
        carts: Optional[CartRepository] = None,
        orders: Optional[OrderRepository] = None,
        cart_service: Optional[CartService] = None,
        discounts: Optional[DiscountService] = None,
        audit: Optional[AuditLogger] = None,
        stripe: Optional[StripeConnector] = None,
    ):
        self.carts = carts or CartRepository()
        self.orders = orders or OrderRepository()
        self.discounts = discounts or get_discount_service()
        self.cart_service = cart_service or CartService(carts=self.carts, discounts=self.discounts)
        self.audit = audit or get_audit_logger()
        self._stripe = stripe

    @property
    def stripe(self) -> StripeConnector:
        # Built lazily: webhook handling never needs the secret key
        if self._stripe is None:
            self._stripe = StripeConnector()
        return self._stripe

    def _merge_customer_info(self, tenant_id: str, cart: Cart, request: CheckoutRequest) -> Cart:
        if not (request.email or request.customer_name or request.shipping_address):
            return cart

        merged = {
            field: getattr(request, field) or getattr(cart, field)
            for field in CUSTOMER_FIELDS
        }
        updated = self.carts.update(
            tenant_id, cart.id, CartUpdate(**{k: v for k, v in merged.items() if v is not None})
        )
        return updated or cart

    @staticmethod
    def _shipping_address(cart: Cart) -> Optional[Dict[str, Any]]:
        if not cart.shipping_address:
            return None
        return {
            'address': cart.shipping_address,
            'city': cart.shipping_city,
            'area': cart.shipping_area,
            'postal_code': cart.shipping_postal_code,
            'country': cart.shipping_country,
        }

    async def start_checkout(self, tenant: Tenant, cart_id: str, request: CheckoutRequest) -> Dict[str, Any]:
        """
        Create the pending order and PaymentIntent for a cart

        Returns:
            {client_secret, order_id, order_number, amount, currency}
        """
        if not tenant.stripe_account_id:
            raise ValidationError(
                "This store has not configured payment processing", code="STRIPE_NOT_CONFIGURED"
            )
        if not tenant.stripe_onboarding_complete:
            raise ValidationError("Store payment setup is incomplete", code="STRIPE_NOT_CONFIGURED")

        cart = self.carts.find_active_by_id(tenant.id, cart_id)
        if not cart:
            raise NotFoundError("Cart not found or expired", code="CART_NOT_FOUND")
        if cart.is_empty:
            raise ValidationError("Cart is empty", code="CART_EMPTY")

        cart = self.cart_service.recalculate(tenant.id, cart_id)
        if cart.total <= 0:
            raise ValidationError(
                "Invalid cart total",
                details={"total": ["Cart total must be greater than zero"]},
            )

        cart = self._merge_customer_info(tenant.id, cart, request)
        currency = tenant.currency or cart.currency

        order_number = generate_order_number()
        order = self.orders.create(tenant.id, OrderCreate(
            order_number=order_number,
            customer_id=cart.customer_id,
            status="pending",
            payment_status="pending",
            subtotal=cart.subtotal,
            discount_total=cart.discount_total,
            shipping_total=cart.shipping_total,
            tax_total=cart.tax_total,
            total=cart.total,
            currency=currency,
            items_count=cart.item_count,
            shipping_address=self._shipping_address(cart),
            customer_email=cart.email,
            customer_name=cart.customer_name,
            discount_id=cart.discount_id,
            voucher_code_id=cart.voucher_code_id,
            discount_code=cart.voucher_code,
            cart_id=cart.id,
        ))

        try:
            self.orders.add_items(tenant.id, order.id, [
                OrderItem(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    product_name=item.product_name,
                    product_sku=item.product_sku,
                    product_image=item.product_image,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.line_total,
                )
                for item in cart.items
            ])

            try:
                intent = await self.stripe.create_payment_intent(
                    amount=to_minor_units(cart.total),
                    currency=currency,
                    destination=tenant.stripe_account_id,
                    metadata={
                        'tenant_id': tenant.id,
                        'cart_id': cart.id,
                        'order_id': order.id,
                    },
                    receipt_email=cart.email,
                    idempotency_key=f"checkout-{order.id}",
                )
            except Exception as e:
                logger.error(f"Stripe PaymentIntent creation failed for order {order_number}: {e}")
                raise PaymentError("Payment processing failed. Please try again.")

            self.orders.set_payment_intent(tenant.id, order.id, intent['id'])

        except Exception as e:
            # No pending order may outlive a failed checkout
            logger.error(f"Checkout failed for order {order_number}, removing pending order: {e}")
            self.orders.delete(tenant.id, order.id)
            raise

        logger.info(
            f"PaymentIntent {intent['id']} created for order {order_number} "
            f"({cart.total} {currency})"
        )

        self.audit.log_checkout(tenant.id, order.id, {
            'action': 'checkout.start',
            'cart_id': cart.id,
            'order_number': order_number,
            'total': str(cart.total),
        })

        return {
            'client_secret': intent.get('client_secret'),
            'order_id': order.id,
            'order_number': order_number,
            'amount': str(to_money(cart.total)),
            'currency': currency,
        }

    def handle_webhook_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a verified Stripe event

        Unknown event types and intents without a matching order are
        acknowledged and ignored so Stripe stops retrying them.
        """
        event_type = event.get('type')
        intent = (event.get('data') or {}).get('object') or {}
        intent_id = intent.get('id')
        metadata = intent.get('metadata') or {}

        if event_type not in ('payment_intent.succeeded', 'payment_intent.payment_failed'):
            return {'handled': False, 'reason': f"Ignored event type {event_type}"}

        order = self.orders.find_by_payment_intent(intent_id, metadata.get('tenant_id'))
        if not order:
            logger.warning(f"No order for PaymentIntent {intent_id} ({event_type})")
            return {'handled': False, 'reason': "Order not found"}

        if event_type == 'payment_intent.payment_failed':
            self.orders.update_payment_status(order.tenant_id, order.id, "failed")
            logger.info(f"Payment failed for order {order.order_number}")
            return {'handled': True, 'order_id': order.id, 'payment_status': "failed"}

        if order.is_paid:
            return {'handled': True, 'order_id': order.id, 'payment_status': "paid", 'duplicate': True}

        self.orders.update_payment_status(order.tenant_id, order.id, "paid", intent_id)
        if order.status == "pending":
            self.orders.update_status(
                order.tenant_id, order.id, "confirmed", note="Payment received", changed_by="stripe"
            )

        cart_id = order.cart_id or metadata.get('cart_id')
        if cart_id:
            self.carts.mark_completed(order.tenant_id, cart_id)

        if order.discount_id:
            self.discounts.record_discount_usage(
                order.tenant_id,
                order.discount_id,
                order.id,
                order.discount_total or Decimal("0"),
                voucher_code_id=order.voucher_code_id,
                customer_id=order.customer_id,
                customer_email=order.customer_email,
            )

        logger.info(f"Payment succeeded for order {order.order_number}")
        return {'handled': True, 'order_id': order.id, 'payment_status': "paid"}


_checkout_service: Optional[CheckoutService] = None


def get_checkout_service() -> CheckoutService:
    global _checkout_service
    if _checkout_service is None:
        _checkout_service = CheckoutService()
    return _checkout_service
