"""
Unit tests for BulkActionService

Repositories and the audit logger are MagicMocks.
"""
import io
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from openpyxl import load_workbook

from storefront.core.errors import ValidationError
from storefront.domain.product import Product, ProductVariant, VariantStockUpdate
from storefront.services.bulk_actions import BulkActionService, to_csv


@pytest.fixture
def repos():
    return {
        'products': MagicMock(),
        'orders': MagicMock(),
        'customers': MagicMock(),
        'audit': MagicMock(),
    }


@pytest.fixture
def service(repos):
    return BulkActionService(**repos)


def _product(product_id, name="Mug, large"):
    return Product(
        id=product_id, tenant_id='t', name=name, slug=product_id, sku=None,
        price=Decimal('12.50'), quantity=4, status='active',
        created_at=datetime(2025, 5, 1, tzinfo=timezone.utc),
    )


class TestBulkDelete:

    def test_all_succeed(self, service, repos):
        repos['products'].delete.return_value = True

        result = service.bulk_delete('t', 'products', ['p1', 'p2'], user_id='u1')

        assert result.success is True
        assert result.success_count == 2
        assert result.message == "Successfully deleted 2 products"
        assert repos['audit'].log_delete.call_count == 2

    def test_partial_failure_keeps_going(self, service, repos):
        repos['orders'].delete.side_effect = [True, False, Exception("connection reset")]

        result = service.bulk_delete('t', 'orders', ['o1', 'o2', 'o3'])

        assert result.success is False
        assert result.success_count == 1
        assert result.failed_count == 2
        assert result.message == "Deleted 1 of 3 orders"
        assert [e.item_id for e in result.errors] == ['o2', 'o3']
        assert result.errors[0].message == "Order not found"
        assert result.errors[1].message == "connection reset"
        assert result.errors[0].code == "DELETE_FAILED"

    def test_unknown_entity_type(self, service):
        with pytest.raises(ValidationError):
            service.bulk_delete('t', 'widgets', ['x'])


class TestBulkStatus:

    def test_products_status(self, service, repos):
        repos['products'].update_status.return_value = True

        result = service.bulk_update_status('t', 'products', ['p1'], 'draft')

        assert result.message == "Successfully updated 1 products to draft"
        repos['products'].update_status.assert_called_once_with('t', 'p1', 'draft')

    def test_invalid_product_status_fails_per_item(self, service, repos):
        result = service.bulk_update_status('t', 'products', ['p1', 'p2'], 'shipped')

        assert result.failed_count == 2
        repos['products'].update_status.assert_not_called()

    def test_orders_go_through_status_machine(self, service, repos):
        repos['orders'].update_status.side_effect = [None, ValidationError("Cannot transition from delivered to shipped")]

        result = service.bulk_update_status('t', 'orders', ['o1', 'o2'], 'shipped', user_id='u1')

        assert result.success_count == 1
        assert result.errors[0].message == "Cannot transition from delivered to shipped"
        assert repos['orders'].update_status.call_args_list[0].kwargs['changed_by'] == 'u1'

    def test_customers_do_not_support_status(self, service, repos):
        result = service.bulk_update_status('t', 'customers', ['c1'], 'active')

        assert result.failed_count == 1
        assert result.errors[0].code == "UPDATE_FAILED"

    def test_archive_is_status_archived(self, service, repos):
        repos['products'].update_status.return_value = True

        service.bulk_archive('t', 'products', ['p1'])

        repos['products'].update_status.assert_called_once_with('t', 'p1', 'archived')


class TestBulkProductUpdates:

    def test_assign_category(self, service, repos):
        repos['products'].update.return_value = _product('p1')

        result = service.bulk_assign_category('t', ['p1', 'p2'], 'cat-1', user_id='u1')

        assert result.message == "Successfully assigned 2 products to category"
        update = repos['products'].update.call_args_list[0][0][2]
        assert update.category_id == 'cat-1'
        assert update.model_dump(exclude_unset=True) == {'category_id': 'cat-1'}

    def test_assign_category_missing_product(self, service, repos):
        repos['products'].update.side_effect = [_product('p1'), None]

        result = service.bulk_assign_category('t', ['p1', 'gone'], None)

        assert result.success_count == 1
        assert result.errors[0].item_id == 'gone'
        assert result.errors[0].message == "Product not found"

    def test_percentage_price_increase(self, service, repos):
        # Arrange
        repos['products'].find_by_id.return_value = _product('p1')

        # Act
        result = service.bulk_update_price('t', ['p1'], 'percentage_increase', Decimal('10'), user_id='u1')

        # Assert
        assert result.message == "Successfully repriced 1 products"
        update = repos['products'].update.call_args[0][2]
        assert update.price == Decimal('13.75')
        audit_kwargs = repos['audit'].log_update.call_args.kwargs
        assert audit_kwargs['old_values'] == {'price': '12.50'}
        assert audit_kwargs['new_values'] == {'price': '13.75'}

    def test_price_decrease_stops_at_zero(self, service, repos):
        repos['products'].find_by_id.return_value = _product('p1')

        service.bulk_update_price('t', ['p1'], 'decrease', Decimal('20'))

        assert repos['products'].update.call_args[0][2].price == Decimal('0.00')

    def test_price_of_missing_product_fails_per_item(self, service, repos):
        repos['products'].find_by_id.side_effect = [None, _product('p2')]

        result = service.bulk_update_price('t', ['gone', 'p2'], 'set', Decimal('9.99'))

        assert result.message == "Repriced 1 of 2 products"
        assert result.errors[0].item_id == 'gone'
        repos['products'].update.assert_called_once()

    def test_stock_errors_are_keyed_by_variant(self, service, repos):
        # Arrange
        repos['products'].adjust_variant_stock.side_effect = [
            ProductVariant(id='v1', product_id='p1', title='Large', quantity=7),
            None,
        ]
        updates = [
            VariantStockUpdate(variant_id='v1', quantity=3, action='add'),
            VariantStockUpdate(variant_id='v9', quantity=1, action='subtract'),
        ]

        # Act
        result = service.bulk_update_stock('t', updates)

        # Assert
        assert result.message == "Restocked 1 of 2 variants"
        assert result.errors[0].item_id == 'v9'
        assert result.errors[0].message == "Variant not found"
        repos['products'].adjust_variant_stock.assert_any_call('t', 'v1', 3, 'add')


class TestBulkCustomerTags:

    def test_add_tag(self, service, repos):
        repos['customers'].add_tag.return_value = True

        result = service.bulk_add_tag('t', ['c1', 'c2'], '  vip ')

        assert result.message == 'Successfully tagged 2 customers with "vip"'
        repos['customers'].add_tag.assert_any_call('t', 'c1', 'vip')

    def test_blank_tag(self, service, repos):
        with pytest.raises(ValidationError):
            service.bulk_add_tag('t', ['c1'], '   ')

        repos['customers'].add_tag.assert_not_called()


class TestBulkExport:

    def test_csv_export(self, service, repos):
        repos['products'].find_by_ids.return_value = [_product('p1')]

        content, filename, mime = service.bulk_export('t', 'products', ['p1'], 'csv', today=date(2025, 6, 1))

        lines = content.decode('utf-8').split('\n')
        assert filename == "products-export-2025-06-01.csv"
        assert mime == "text/csv"
        assert lines[0] == "id,name,sku,price,quantity,status,created_at,updated_at"
        assert lines[1].startswith('p1,"Mug, large",,12.50,4,active,2025-05-01')
        repos['audit'].log.assert_called_once()

    def test_json_export(self, service, repos):
        repos['products'].find_by_ids.return_value = [_product('p1'), _product('p2', 'Plate')]

        content, filename, _ = service.bulk_export('t', 'products', ['p1', 'p2'], 'json', today=date(2025, 6, 1))

        rows = json.loads(content)
        assert [r['name'] for r in rows] == ["Mug, large", "Plate"]
        assert filename.endswith(".json")

    def test_xlsx_export(self, service, repos):
        repos['products'].find_by_ids.return_value = [_product('p1')]

        content, _, mime = service.bulk_export('t', 'products', ['p1'], 'xlsx')

        sheet = load_workbook(io.BytesIO(content)).active
        assert sheet.title == "Products"
        assert sheet.cell(row=1, column=2).value == "name"
        assert sheet.cell(row=2, column=2).value == "Mug, large"
        assert mime.endswith("spreadsheetml.sheet")

    def test_nothing_to_export(self, service, repos):
        repos['customers'].find_by_ids.return_value = []

        with pytest.raises(ValidationError) as exc_info:
            service.bulk_export('t', 'customers', ['c1'])

        assert exc_info.value.code == "NOTHING_TO_EXPORT"

    def test_unsupported_format(self, service):
        with pytest.raises(ValidationError):
            service.bulk_export('t', 'products', ['p1'], 'pdf')


def test_to_csv_quotes_special_fields():
    rows = [{'a': 'plain', 'b': 'say "hi"', 'c': None}]

    assert to_csv(rows) == 'a,b,c\nplain,"say ""hi""",'
    assert to_csv([]) == ""
