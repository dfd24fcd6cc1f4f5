"""
Unit tests for discount rules, voucher redemption and voucher code generation
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront.domain.discount import Discount, DiscountInput, DiscountLineItem, VoucherCode
from storefront.services.discount_service import (
    DiscountService,
    calculate_discount_amount,
    calculate_sale_price,
    format_discount_value,
    get_discount_status,
    match_sales,
    validate_discount,
    validate_sale_form,
    validate_voucher_form,
)
from storefront.services.voucher_codes import (
    can_delete_voucher_code,
    generate_multiple_voucher_codes,
    generate_voucher_code,
    get_voucher_code_status,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _discount(**overrides):
    values = {
        'id': 'disc-1',
        'tenant_id': 't',
        'name': '10% off',
        'type': 'percentage',
        'value': Decimal('10'),
    }
    values.update(overrides)
    return Discount(**values)


def _line(product_id, price, quantity=1, **kwargs):
    return DiscountLineItem(product_id=product_id, price=Decimal(price), quantity=quantity, **kwargs)


class TestDiscountStatus:

    def test_status_order(self):
        assert get_discount_status(_discount(is_active=False, ends_at=NOW - timedelta(days=1)), NOW) == "inactive"
        assert get_discount_status(_discount(ends_at=NOW - timedelta(days=1)), NOW) == "expired"
        assert get_discount_status(_discount(starts_at=NOW + timedelta(days=1)), NOW) == "scheduled"
        assert get_discount_status(_discount(), NOW) == "active"

    def test_validate_discount_checks_minimums(self):
        discount = _discount(min_order_amount=Decimal('50'), min_checkout_items_quantity=2)

        valid, error = validate_discount(discount, Decimal('40'), 3, NOW)
        assert not valid
        assert error == "Minimum order amount of $50.00 required"

        valid, error = validate_discount(discount, Decimal('60'), 1, NOW)
        assert not valid
        assert error == "Minimum 2 items required"

        assert validate_discount(discount, Decimal('60'), 2, NOW) == (True, None)

    def test_validate_discount_usage_limit(self):
        valid, error = validate_discount(_discount(usage_limit=5, used_count=5), Decimal('10'), 1, NOW)

        assert not valid
        assert "usage limit" in error


class TestDiscountAmounts:

    def test_entire_order_percentage(self):
        amount = calculate_discount_amount(_discount(), [_line('a', '30.00', 2), _line('b', '15.00')])

        assert amount == Decimal('7.50')

    def test_fixed_amount_capped_at_subtotal(self):
        amount = calculate_discount_amount(_discount(type='fixed', value=Decimal('100')), [_line('a', '20.00')])

        assert amount == Decimal('20.00')

    def test_free_shipping_is_zero(self):
        amount = calculate_discount_amount(_discount(type='free_shipping'), [_line('a', '20.00')])

        assert amount == Decimal('0.00')

    def test_specific_products_only_count_eligible_lines(self):
        discount = _discount(scope='specific_products', applicable_product_ids=['a'])

        amount = calculate_discount_amount(discount, [_line('a', '50.00'), _line('b', '100.00')])

        assert amount == Decimal('5.00')

    def test_eligibility_through_collection(self):
        discount = _discount(scope='specific_products', applicable_collection_ids=['summer'])
        items = [_line('a', '40.00', collection_ids=['summer']), _line('b', '60.00')]

        assert calculate_discount_amount(discount, items) == Decimal('4.00')

    def test_apply_once_per_order_uses_cheapest_line(self):
        discount = _discount(
            scope='specific_products', applicable_product_ids=['a', 'b'], apply_once_per_order=True
        )

        amount = calculate_discount_amount(discount, [_line('a', '80.00'), _line('b', '20.00')])

        assert amount == Decimal('2.00')

    def test_sale_price(self):
        assert calculate_sale_price(Decimal('80'), 'percentage', Decimal('25')) == Decimal('60.00')
        assert calculate_sale_price(Decimal('10'), 'fixed', Decimal('15')) == Decimal('0.00')
        assert calculate_sale_price(Decimal('10'), 'free_shipping', Decimal('5')) == Decimal('10.00')


class TestMatchSales:

    def test_highest_value_sale_wins(self):
        sales = [
            _discount(id='small', kind='sale', value=Decimal('10'), applicable_product_ids=['p1']),
            _discount(id='big', kind='sale', value=Decimal('30'), applicable_product_ids=['p1']),
        ]

        matches = match_sales(sales, ['p1', 'p2'], now=NOW)

        assert matches['p1'].sale_id == 'big'
        assert 'p2' not in matches

    def test_sales_outside_window_are_skipped(self):
        sales = [
            _discount(id='later', kind='sale', starts_at=NOW + timedelta(hours=1), applicable_product_ids=['p1']),
            _discount(id='off', kind='sale', is_active=False, applicable_product_ids=['p1']),
        ]

        assert match_sales(sales, ['p1'], now=NOW) == {}

    def test_category_match_applies_to_all_products(self):
        sales = [_discount(id='cat', kind='sale', applicable_category_ids=['shoes'])]

        matches = match_sales(sales, ['p1', 'p2'], category_ids=['shoes'], now=NOW)

        assert set(matches) == {'p1', 'p2'}


class TestForms:

    def test_voucher_form_errors(self):
        assert validate_voucher_form(DiscountInput(name="")) == "Voucher name is required"
        assert validate_voucher_form(DiscountInput(name="V", value=Decimal('0'))) == \
            "Discount value must be greater than 0"
        assert validate_voucher_form(DiscountInput(name="V", value=Decimal('120'))) == \
            "Percentage cannot exceed 100%"

    def test_free_shipping_voucher_needs_no_value(self):
        assert validate_voucher_form(DiscountInput(name="Ship", type="free_shipping")) is None

    def test_sale_form_date_order(self):
        data = DiscountInput(
            name="Sale", value=Decimal('10'),
            starts_at=NOW, ends_at=NOW - timedelta(days=1)
        )

        assert validate_sale_form(data) == "End date must be after start date"

    def test_format_discount_value(self):
        assert format_discount_value('percentage', Decimal('15.00')) == "15%"
        assert format_discount_value('fixed', Decimal('5')) == "$5.00"
        assert format_discount_value('free_shipping', Decimal('0')) == "Free shipping"


class TestApplyVoucherCode:

    def _service(self, code=None, discount=None, usage_count=0):
        repo = MagicMock()
        repo.find_code.return_value = code
        repo.find_by_id.return_value = discount
        repo.count_customer_usage.return_value = usage_count
        return DiscountService(repository=repo), repo

    def test_unknown_code(self):
        service, _ = self._service()

        result = service.apply_voucher_code('t', 'NOPE', [_line('a', '10.00')], now=NOW)

        assert result.valid is False
        assert result.error == "Invalid voucher code"

    def test_valid_code_returns_amount(self):
        code = VoucherCode(id='code-1', tenant_id='t', discount_id='disc-1', code='SAVE10')
        service, repo = self._service(code=code, discount=_discount())

        result = service.apply_voucher_code('t', ' SAVE10 ', [_line('a', '25.00', 2)], now=NOW)

        # Code is trimmed before lookup
        repo.find_code.assert_called_once_with('t', 'SAVE10')
        assert result.valid is True
        assert result.discount_amount == Decimal('5.00')
        assert result.voucher_code_id == 'code-1'

    def test_exhausted_code(self):
        code = VoucherCode(id='c', tenant_id='t', discount_id='disc-1', code='X', usage_limit=1, used_count=1)
        service, _ = self._service(code=code, discount=_discount())

        result = service.apply_voucher_code('t', 'X', [_line('a', '25.00')], now=NOW)

        assert result.valid is False
        assert result.error == "This code has reached its usage limit"

    def test_once_per_customer(self):
        code = VoucherCode(id='c', tenant_id='t', discount_id='disc-1', code='X')
        service, _ = self._service(code=code, discount=_discount(apply_once_per_customer=True), usage_count=1)

        result = service.apply_voucher_code('t', 'X', [_line('a', '25.00')], customer_id='cust-1', now=NOW)

        assert result.valid is False
        assert result.error == "You have already used this discount"

    def test_sales_lookup_failure_yields_no_sales(self):
        service, repo = self._service()
        repo.find_active_sales.side_effect = Exception("db down")

        assert service.get_applicable_sales('t', ['p1']) == {}

    def test_record_usage_failure_returns_false(self):
        service, repo = self._service()
        repo.record_usage.side_effect = Exception("db down")

        assert service.record_discount_usage('t', 'disc-1', 'order-1', Decimal('5')) is False


class TestVoucherCodes:

    def test_code_shape(self):
        assert len(generate_voucher_code()) == 8
        assert generate_voucher_code(" summer ").startswith("SUMMER-")

    def test_multiple_codes_are_unique_and_new(self):
        existing = {"TAKEN-AAAAAAAA"}

        codes = generate_multiple_voucher_codes(50, prefix="taken", existing=existing)

        assert len(codes) == 50
        assert len(set(codes)) == 50
        assert not set(codes) & existing

    @pytest.mark.parametrize("used_count,usage_limit,expected", [
        (0, None, "active"),
        (2, 2, "used"),
        (1, 2, "active"),
    ])
    def test_code_status(self, used_count, usage_limit, expected):
        code = VoucherCode(id='c', tenant_id='t', discount_id='d', code='X',
                           used_count=used_count, usage_limit=usage_limit)

        assert get_voucher_code_status(code) == expected

    def test_only_unused_codes_can_be_deleted(self):
        code = VoucherCode(id='c', tenant_id='t', discount_id='d', code='X', used_count=1)

        assert can_delete_voucher_code(code) is False
