"""
Unit tests for CartRepository

Database connections are mocked; the tests check the SQL flow for cart lines.
"""
from decimal import Decimal
from unittest.mock import MagicMock, patch

from storefront.domain.cart import CartTotals
from storefront.repositories.cart_repository import CartRepository


def _mock_connection(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


def _line(**overrides):
    item = {
        'product_id': 'p1', 'variant_id': None, 'product_name': 'Mug', 'product_sku': 'MUG-1',
        'product_image': None, 'unit_price': Decimal('10.00'), 'compare_at_price': None, 'quantity': 2,
    }
    item.update(overrides)
    return item


class TestCartRepository:

    @patch('storefront.repositories.cart_repository.get_db_connection_dict')
    def test_add_item_merges_same_product_and_variant(self, mock_get_conn):
        """Test an existing line gets the quantities summed"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{'id': 'cart-1'}, {'id': 'item-1', 'quantity': 3}, {'id': 'item-1'}]

        # Act
        item_id = CartRepository().add_item('t', 'cart-1', _line(variant_id='v1', quantity=2))

        # Assert
        assert item_id == 'item-1'
        lookup_sql, lookup_params = mock_cursor.execute.call_args_list[1][0]
        assert "variant_id = %s" in lookup_sql
        assert lookup_params == ('cart-1', 'p1', 'v1')
        update_sql, update_params = mock_cursor.execute.call_args_list[2][0]
        assert "UPDATE cart_items" in update_sql
        assert update_params == (5, 'item-1')
        mock_conn.commit.assert_called_once()

    @patch('storefront.repositories.cart_repository.get_db_connection_dict')
    def test_add_item_inserts_new_line(self, mock_get_conn):
        """Test a product without a variant matches only variant-less lines"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{'id': 'cart-1'}, None, {'id': 'item-2'}]

        # Act
        item_id = CartRepository().add_item('t', 'cart-1', _line())

        # Assert
        assert item_id == 'item-2'
        assert "variant_id IS NULL" in mock_cursor.execute.call_args_list[1][0][0]
        insert_sql, insert_params = mock_cursor.execute.call_args_list[2][0]
        assert "INSERT INTO cart_items" in insert_sql
        assert insert_params[0] == 'cart-1'
        assert insert_params[-1] == 2

    @patch('storefront.repositories.cart_repository.get_db_connection_dict')
    def test_add_item_to_foreign_cart(self, mock_get_conn):
        """Test a cart of another tenant is never written"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        # Act / Assert
        assert CartRepository().add_item('t', 'cart-x', _line()) is None
        assert mock_cursor.execute.call_count == 1
        mock_conn.commit.assert_not_called()
        mock_conn.close.assert_called_once()

    @patch('storefront.repositories.cart_repository.get_db_connection_dict')
    def test_zero_quantity_removes_line(self, mock_get_conn):
        """Test update_item_quantity with quantity <= 0 deletes the line"""
        # Arrange
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {'id': 'item-1'}

        # Act
        removed = CartRepository().update_item_quantity('t', 'cart-1', 'item-1', 0)

        # Assert
        assert removed is True
        sql, params = mock_cursor.execute.call_args[0]
        assert "DELETE FROM cart_items" in sql
        assert params == ('t', 'cart-1', 'item-1')

    @patch('storefront.repositories.cart_repository.get_db_connection_dict')
    def test_save_totals(self, mock_get_conn):
        """Test the totals are written in column order"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        totals = CartTotals(
            subtotal=Decimal('20.00'), discount_total=Decimal('5.00'), shipping_total=Decimal('4.00'),
            tax_total=Decimal('0.00'), total=Decimal('19.00'),
        )

        # Act
        CartRepository().save_totals('t', 'cart-1', totals)

        # Assert
        params = mock_cursor.execute.call_args[0][1]
        assert params == (
            Decimal('20.00'), Decimal('5.00'), Decimal('4.00'), Decimal('0.00'), Decimal('19.00'), 't', 'cart-1',
        )
        mock_conn.commit.assert_called_once()
