"""
Unit tests for CartService

Cart, product and discount collaborators are MagicMocks; the tests check
the totals written back and the lines handed to the repository.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront.core.errors import NotFoundError, ValidationError
from storefront.domain.cart import Cart, CartItem, CartItemCreate
from storefront.domain.discount import ApplyDiscountResult, SaleMatch
from storefront.domain.product import Product, ProductVariant
from storefront.services.cart_service import CartService


def _item(item_id='i1', product_id='p1', price='10.00', quantity=2, variant_id=None):
    return CartItem(
        id=item_id, product_id=product_id, variant_id=variant_id, product_name='Mug',
        unit_price=Decimal(price), quantity=quantity,
    )


def _cart(**overrides):
    values = {'id': 'cart-1', 'tenant_id': 't', 'items': [_item()]}
    values.update(overrides)
    return Cart(**values)


def _product(**overrides):
    values = {
        'id': 'p1', 'tenant_id': 't', 'name': 'Mug', 'slug': 'mug', 'sku': 'MUG-1',
        'price': Decimal('10.00'), 'quantity': 5, 'status': 'active', 'images': ['https://cdn.test/mug.jpg'],
    }
    values.update(overrides)
    return Product(**values)


@pytest.fixture
def carts():
    repository = MagicMock()
    repository.find_active_by_id.return_value = _cart()
    repository.find_by_id.return_value = _cart()
    return repository


@pytest.fixture
def products():
    repository = MagicMock()
    repository.find_by_id.return_value = _product()
    return repository


@pytest.fixture
def discounts():
    service = MagicMock()
    service.get_applicable_sales.return_value = {}
    return service


@pytest.fixture
def service(carts, products, discounts):
    return CartService(carts=carts, products=products, discounts=discounts)


class TestRecalculate:

    def test_persists_totals(self, service, carts):
        # Arrange
        carts.find_by_id.return_value = _cart(
            items=[_item(price='10.00', quantity=2), _item('i2', 'p2', price='2.50', quantity=3)],
            shipping_total=Decimal('4.00'),
            tax_total=Decimal('1.25'),
        )

        # Act
        cart = service.recalculate('t', 'cart-1')

        # Assert
        totals = carts.save_totals.call_args[0][2]
        assert totals.subtotal == Decimal('27.50')
        assert totals.total == Decimal('32.75')
        assert cart.total == Decimal('32.75')

    def test_valid_voucher_discount_is_capped_at_subtotal(self, service, carts, discounts):
        carts.find_by_id.return_value = _cart(voucher_code='BIG', discount_id='d1')
        discounts.apply_voucher_code.return_value = ApplyDiscountResult(
            valid=True, discount_amount=Decimal('50.00'), discount_id='d1'
        )

        cart = service.recalculate('t', 'cart-1')

        assert cart.discount_total == Decimal('20.00')
        assert cart.total == Decimal('0.00')
        carts.set_discount.assert_not_called()

    def test_voucher_that_no_longer_applies_is_dropped(self, service, carts, discounts):
        # Arrange
        carts.find_by_id.return_value = _cart(voucher_code='SPRING', discount_id='d1', voucher_code_id='vc1')
        discounts.apply_voucher_code.return_value = ApplyDiscountResult(
            valid=False, error="This voucher code is no longer valid"
        )

        # Act
        cart = service.recalculate('t', 'cart-1')

        # Assert
        carts.set_discount.assert_called_once_with('t', 'cart-1', None, None, None)
        assert cart.voucher_code is None
        assert cart.discount_id is None
        assert cart.discount_total == Decimal('0.00')
        assert cart.total == Decimal('20.00')

    def test_missing_cart(self, service, carts):
        carts.find_by_id.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            service.recalculate('t', 'gone')

        assert exc_info.value.code == 'CART_NOT_FOUND'


class TestAddItem:

    def test_adds_line_at_current_price(self, service, carts):
        carts.find_active_by_id.return_value = _cart(items=[])

        service.add_item('t', 'cart-1', CartItemCreate(product_id='p1', quantity=2))

        line = carts.add_item.call_args[0][2]
        assert line['unit_price'] == Decimal('10.00')
        assert line['quantity'] == 2
        assert line['product_sku'] == 'MUG-1'
        assert line['product_image'] == 'https://cdn.test/mug.jpg'
        carts.save_totals.assert_called_once()

    def test_sale_lowers_unit_price(self, service, carts, discounts):
        # Arrange
        carts.find_active_by_id.return_value = _cart(items=[])
        discounts.get_applicable_sales.return_value = {
            'p1': SaleMatch(sale_id='sale-1', type='percentage', value=Decimal('20')),
        }

        # Act
        service.add_item('t', 'cart-1', CartItemCreate(product_id='p1'))

        # Assert
        line = carts.add_item.call_args[0][2]
        assert line['unit_price'] == Decimal('8.00')
        assert line['compare_at_price'] == Decimal('10.00')

    def test_variant_price_and_title(self, service, carts, products):
        carts.find_active_by_id.return_value = _cart(items=[])
        products.find_variant.return_value = ProductVariant(
            id='v1', product_id='p1', title='Large', price=Decimal('12.00'), quantity=3
        )

        service.add_item('t', 'cart-1', CartItemCreate(product_id='p1', variant_id='v1'))

        line = carts.add_item.call_args[0][2]
        assert line['unit_price'] == Decimal('12.00')
        assert line['product_name'] == 'Mug - Large'

    def test_variant_of_another_product(self, service, carts, products):
        carts.find_active_by_id.return_value = _cart(items=[])
        products.find_variant.return_value = ProductVariant(id='v9', product_id='p9', title='Other')

        with pytest.raises(NotFoundError) as exc_info:
            service.add_item('t', 'cart-1', CartItemCreate(product_id='p1', variant_id='v9'))

        assert exc_info.value.code == 'VARIANT_NOT_FOUND'
        carts.add_item.assert_not_called()

    def test_draft_product_cannot_be_added(self, service, products):
        products.find_by_id.return_value = _product(status='draft')

        with pytest.raises(NotFoundError) as exc_info:
            service.add_item('t', 'cart-1', CartItemCreate(product_id='p1'))

        assert exc_info.value.code == 'PRODUCT_NOT_FOUND'

    def test_stock_check_counts_quantity_already_in_cart(self, service, carts):
        # Arrange: 3 already in the cart, 5 on hand
        carts.find_active_by_id.return_value = _cart(items=[_item(quantity=3)])

        # Act / Assert
        with pytest.raises(ValidationError) as exc_info:
            service.add_item('t', 'cart-1', CartItemCreate(product_id='p1', quantity=3))

        assert exc_info.value.code == 'INSUFFICIENT_STOCK'
        carts.add_item.assert_not_called()

    def test_untracked_stock_is_not_checked(self, service, carts, products):
        carts.find_active_by_id.return_value = _cart(items=[])
        products.find_by_id.return_value = _product(quantity=0, track_quantity=False)

        service.add_item('t', 'cart-1', CartItemCreate(product_id='p1', quantity=10))

        carts.add_item.assert_called_once()


class TestUpdateItems:

    def test_quantity_above_stock_is_rejected(self, service, carts):
        with pytest.raises(ValidationError) as exc_info:
            service.update_item_quantity('t', 'cart-1', 'i1', 6)

        assert exc_info.value.code == 'INSUFFICIENT_STOCK'
        carts.update_item_quantity.assert_not_called()

    def test_quantity_zero_skips_stock_check(self, service, carts, products):
        carts.update_item_quantity.return_value = True

        service.update_item_quantity('t', 'cart-1', 'i1', 0)

        products.find_by_id.assert_not_called()
        carts.update_item_quantity.assert_called_once_with('t', 'cart-1', 'i1', 0)

    def test_unknown_item(self, service, carts):
        carts.update_item_quantity.return_value = False

        with pytest.raises(NotFoundError) as exc_info:
            service.update_item_quantity('t', 'cart-1', 'missing', 1)

        assert exc_info.value.code == 'CART_ITEM_NOT_FOUND'

    def test_clear_detaches_discount(self, service, carts):
        service.clear('t', 'cart-1')

        carts.clear.assert_called_once_with('t', 'cart-1')
        carts.set_discount.assert_called_once_with('t', 'cart-1', None, None, None)


class TestVouchers:

    def test_apply_voucher_stores_discount(self, service, carts, discounts):
        # Arrange
        discounts.apply_voucher_code.return_value = ApplyDiscountResult(
            valid=True, discount_amount=Decimal('5.00'), discount_id='d1', voucher_code_id='vc1'
        )
        carts.find_by_id.return_value = _cart(voucher_code='SAVE5', discount_id='d1', voucher_code_id='vc1')

        # Act
        cart = service.apply_voucher('t', 'cart-1', ' save5 ')

        # Assert
        carts.set_discount.assert_called_once_with('t', 'cart-1', 'd1', 'vc1', 'SAVE5')
        assert cart.discount_total == Decimal('5.00')
        assert cart.total == Decimal('15.00')

    def test_invalid_voucher(self, service, carts, discounts):
        discounts.apply_voucher_code.return_value = ApplyDiscountResult(valid=False, error="Invalid voucher code")

        with pytest.raises(ValidationError) as exc_info:
            service.apply_voucher('t', 'cart-1', 'NOPE')

        assert exc_info.value.code == 'INVALID_VOUCHER'
        assert exc_info.value.message == "Invalid voucher code"
        carts.set_discount.assert_not_called()

    def test_voucher_on_empty_cart(self, service, carts):
        carts.find_active_by_id.return_value = _cart(items=[])

        with pytest.raises(ValidationError) as exc_info:
            service.apply_voucher('t', 'cart-1', 'SAVE5')

        assert exc_info.value.code == 'CART_EMPTY'

    def test_remove_voucher(self, service, carts):
        cart = service.remove_voucher('t', 'cart-1')

        carts.set_discount.assert_called_once_with('t', 'cart-1', None, None, None)
        assert cart.total == Decimal('20.00')
