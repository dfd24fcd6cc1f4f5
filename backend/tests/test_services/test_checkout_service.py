"""
Unit tests for checkout, Stripe webhook handling and webhook signatures
"""
import asyncio
import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront.connectors.stripe_connector import (
    WebhookSignatureError,
    sign_webhook_payload,
    verify_webhook_signature,
)
from storefront.core.errors import NotFoundError, PaymentError, ValidationError
from storefront.domain.cart import Cart, CartItem, CheckoutRequest
from storefront.domain.order import Order
from storefront.services.checkout_service import CheckoutService

SECRET = "whsec_test"


def _cart(**overrides):
    values = {
        'id': 'cart-1',
        'tenant_id': 't',
        'email': 'buyer@example.com',
        'items': [CartItem(id='i1', product_id='p1', product_name='Mug', unit_price=Decimal('12.50'), quantity=2)],
        'subtotal': Decimal('25.00'),
        'total': Decimal('25.00'),
    }
    values.update(overrides)
    return Cart(**values)


@pytest.fixture
def deps():
    mocks = {
        'carts': MagicMock(),
        'orders': MagicMock(),
        'cart_service': MagicMock(),
        'discounts': MagicMock(),
        'audit': MagicMock(),
        'stripe': MagicMock(),
    }
    mocks['stripe'].create_payment_intent = AsyncMock(return_value={'id': 'pi_1', 'client_secret': 'pi_1_secret'})
    mocks['orders'].create.return_value = Order(id='order-1', tenant_id='t', order_number='ORD-X-AAAA')
    return mocks


@pytest.fixture
def service(deps):
    return CheckoutService(**deps)


class TestStartCheckout:

    def test_creates_order_and_intent(self, service, deps, tenant):
        # Arrange
        deps['carts'].find_active_by_id.return_value = _cart()
        deps['cart_service'].recalculate.return_value = _cart()

        # Act
        result = asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        # Assert
        assert result['client_secret'] == 'pi_1_secret'
        assert result['order_id'] == 'order-1'
        assert result['amount'] == '25.00'
        assert result['currency'] == 'USD'

        kwargs = deps['stripe'].create_payment_intent.call_args.kwargs
        assert kwargs['amount'] == 2500
        assert kwargs['destination'] == 'acct_123'
        assert kwargs['metadata']['order_id'] == 'order-1'

        order_data = deps['orders'].create.call_args[0][1]
        assert order_data.status == 'pending'
        assert order_data.items_count == 2
        deps['orders'].add_items.assert_called_once()
        deps['orders'].set_payment_intent.assert_called_once_with(tenant.id, 'order-1', 'pi_1')
        deps['audit'].log_checkout.assert_called_once()

    def test_requires_connected_account(self, service, tenant):
        tenant = tenant.model_copy(update={'stripe_onboarding_complete': False})

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        assert exc_info.value.code == 'STRIPE_NOT_CONFIGURED'

    def test_missing_cart(self, service, deps, tenant):
        deps['carts'].find_active_by_id.return_value = None

        with pytest.raises(NotFoundError):
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

    def test_empty_cart(self, service, deps, tenant):
        deps['carts'].find_active_by_id.return_value = _cart(items=[])

        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        assert exc_info.value.code == 'CART_EMPTY'

    def test_customer_info_is_merged_onto_cart(self, service, deps, tenant):
        deps['carts'].find_active_by_id.return_value = _cart()
        deps['cart_service'].recalculate.return_value = _cart()
        deps['carts'].update.return_value = _cart(customer_name='Ada', shipping_address='1 Main Street')

        asyncio.run(service.start_checkout(
            tenant, 'cart-1', CheckoutRequest(customer_name='Ada', shipping_address='1 Main Street')
        ))

        update = deps['carts'].update.call_args[0][2]
        assert update.customer_name == 'Ada'
        assert update.email == 'buyer@example.com'
        order_data = deps['orders'].create.call_args[0][1]
        assert order_data.shipping_address['address'] == '1 Main Street'

    def test_stripe_failure_removes_pending_order(self, service, deps, tenant):
        deps['carts'].find_active_by_id.return_value = _cart()
        deps['cart_service'].recalculate.return_value = _cart()
        deps['stripe'].create_payment_intent.side_effect = Exception("card_declined")

        with pytest.raises(PaymentError):
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        deps['orders'].delete.assert_called_once_with(tenant.id, 'order-1')
        deps['orders'].set_payment_intent.assert_not_called()

    def test_failed_order_items_remove_pending_order(self, service, deps, tenant):
        # Arrange
        deps['carts'].find_active_by_id.return_value = _cart()
        deps['cart_service'].recalculate.return_value = _cart()
        deps['orders'].add_items.side_effect = RuntimeError("db down")

        # Act / Assert
        with pytest.raises(RuntimeError):
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        deps['orders'].delete.assert_called_once_with(tenant.id, 'order-1')
        deps['stripe'].create_payment_intent.assert_not_called()

    def test_failed_intent_save_removes_pending_order(self, service, deps, tenant):
        deps['carts'].find_active_by_id.return_value = _cart()
        deps['cart_service'].recalculate.return_value = _cart()
        deps['orders'].set_payment_intent.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            asyncio.run(service.start_checkout(tenant, 'cart-1', CheckoutRequest()))

        deps['orders'].delete.assert_called_once_with(tenant.id, 'order-1')
        deps['audit'].log_checkout.assert_not_called()


def _event(event_type, intent_id='pi_1'):
    return {
        'type': event_type,
        'data': {'object': {'id': intent_id, 'metadata': {'tenant_id': 't', 'cart_id': 'cart-1'}}},
    }


class TestWebhookEvents:

    def test_payment_succeeded(self, service, deps):
        deps['orders'].find_by_payment_intent.return_value = Order(
            id='order-1', tenant_id='t', order_number='ORD-1',
            discount_id='disc-1', discount_total=Decimal('5.00'),
        )

        result = service.handle_webhook_event(_event('payment_intent.succeeded'))

        assert result == {'handled': True, 'order_id': 'order-1', 'payment_status': 'paid'}
        deps['orders'].update_payment_status.assert_called_once_with('t', 'order-1', 'paid', 'pi_1')
        assert deps['orders'].update_status.call_args[0][2] == 'confirmed'
        deps['carts'].mark_completed.assert_called_once_with('t', 'cart-1')
        deps['discounts'].record_discount_usage.assert_called_once()

    def test_duplicate_delivery_is_acknowledged(self, service, deps):
        deps['orders'].find_by_payment_intent.return_value = Order(
            id='order-1', tenant_id='t', order_number='ORD-1', payment_status='paid'
        )

        result = service.handle_webhook_event(_event('payment_intent.succeeded'))

        assert result['duplicate'] is True
        deps['orders'].update_payment_status.assert_not_called()

    def test_payment_failed(self, service, deps):
        deps['orders'].find_by_payment_intent.return_value = Order(id='order-1', tenant_id='t', order_number='ORD-1')

        result = service.handle_webhook_event(_event('payment_intent.payment_failed'))

        assert result['payment_status'] == 'failed'
        deps['orders'].update_payment_status.assert_called_once_with('t', 'order-1', 'failed')
        deps['carts'].mark_completed.assert_not_called()

    def test_other_events_are_ignored(self, service, deps):
        result = service.handle_webhook_event(_event('charge.refunded'))

        assert result['handled'] is False
        deps['orders'].find_by_payment_intent.assert_not_called()

    def test_unknown_intent(self, service, deps):
        deps['orders'].find_by_payment_intent.return_value = None

        result = service.handle_webhook_event(_event('payment_intent.succeeded', 'pi_unknown'))

        assert result == {'handled': False, 'reason': 'Order not found'}


class TestWebhookSignature:

    def test_valid_signature(self):
        payload = json.dumps(_event('payment_intent.succeeded')).encode()
        header = sign_webhook_payload(payload, SECRET, timestamp=1700000000)

        event = verify_webhook_signature(payload, header, SECRET, now=1700000010)

        assert event['type'] == 'payment_intent.succeeded'

    def test_tampered_payload(self):
        header = sign_webhook_payload(b'{"type": "a"}', SECRET, timestamp=1700000000)

        with pytest.raises(WebhookSignatureError, match="Signature mismatch"):
            verify_webhook_signature(b'{"type": "b"}', header, SECRET, now=1700000000)

    def test_stale_timestamp(self):
        header = sign_webhook_payload(b'{}', SECRET, timestamp=1700000000)

        with pytest.raises(WebhookSignatureError, match="tolerance"):
            verify_webhook_signature(b'{}', header, SECRET, now=1700000000 + 301)

    @pytest.mark.parametrize("header", [None, "", "v1=abc", "t=1700000000"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(WebhookSignatureError):
            verify_webhook_signature(b'{}', header, SECRET, now=1700000000)
