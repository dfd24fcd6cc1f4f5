"""
Unit tests for ProductRepository

These tests validate repository logic without requiring a database connection.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from psycopg2.extras import Json

from storefront.domain.product import (
    Product,
    ProductCreate,
    ProductUpdate,
    ProductVariantCreate,
    ProductVariantUpdate,
)
from storefront.repositories.product_repository import ProductRepository


def _mock_connection(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestProductRepository:
    """Test ProductRepository methods"""

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_find_by_id_returns_product(self, mock_get_conn, tenant_id, product_row):
        """Test find_by_id maps the row to a Product"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = dict(product_row, collection_ids=['col-1'])

        # Act
        product = ProductRepository().find_by_id(tenant_id, 'prod-1')

        # Assert
        assert isinstance(product, Product)
        assert product.slug == 'cold-brew-kit'
        assert product.price == Decimal('49.90')
        assert product.collection_ids == ['col-1']
        assert mock_cursor.execute.call_args[0][1] == (tenant_id, 'prod-1')
        mock_cursor.close.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_find_by_id_returns_none_when_not_found(self, mock_get_conn, tenant_id):
        """Test find_by_id returns None when product doesn't exist"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        # Act
        product = ProductRepository().find_by_id(tenant_id, 'missing')

        # Assert
        assert product is None
        mock_conn.close.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_find_all_with_filters(self, mock_get_conn, tenant_id, product_row):
        """Test find_all builds filters and returns (products, total)"""
        # Arrange
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {'total': 1}
        mock_cursor.fetchall.return_value = [product_row]

        # Act
        products, total = ProductRepository().find_all(
            tenant_id, status='active', search='brew', stock_level='low', limit=10, offset=20
        )

        # Assert
        assert total == 1
        assert len(products) == 1
        count_sql, count_params = mock_cursor.execute.call_args_list[0][0]
        assert "p.status = %s" in count_sql
        assert "ILIKE" in count_sql
        assert "p.quantity <= p.low_stock_threshold" in count_sql
        assert count_params == [tenant_id, 'active', '%brew%', '%brew%']
        assert mock_cursor.execute.call_args_list[1][0][1][-2:] == [10, 20]

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_find_by_ids_empty_skips_query(self, mock_get_conn, tenant_id):
        """Test find_by_ids with no ids never opens a connection"""
        assert ProductRepository().find_by_ids(tenant_id, []) == []
        mock_get_conn.assert_not_called()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_create_dedupes_slug(self, mock_get_conn, tenant_id, product_row):
        """Test create derives a unique slug from the name"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [{'slug': 'cold-brew-kit'}]
        mock_cursor.fetchone.side_effect = [{'id': 'prod-2'}, dict(product_row, id='prod-2', slug='cold-brew-kit-1')]

        # Act
        product = ProductRepository().create(tenant_id, ProductCreate(name='Cold Brew Kit', price=Decimal('49.90')))

        # Assert
        insert_sql, insert_params = mock_cursor.execute.call_args_list[1][0]
        assert "INSERT INTO products" in insert_sql
        assert insert_params[0] == tenant_id
        assert 'cold-brew-kit-1' in insert_params
        assert any(isinstance(p, Json) for p in insert_params)
        assert product.id == 'prod-2'
        mock_conn.commit.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_create_rolls_back_on_error(self, mock_get_conn, tenant_id):
        """Test create rolls back and re-raises database errors"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = []
        mock_cursor.fetchone.side_effect = Exception("duplicate key value")

        # Act / Assert
        with pytest.raises(Exception, match="duplicate key"):
            ProductRepository().create(tenant_id, ProductCreate(name='Mug'))

        mock_conn.rollback.assert_called_once()
        mock_conn.close.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_update_only_writes_set_fields(self, mock_get_conn, tenant_id, product_row):
        """Test update sets only the fields that were provided"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.side_effect = [{'id': 'prod-1'}, dict(product_row, quantity=3)]

        # Act
        product = ProductRepository().update(tenant_id, 'prod-1', ProductUpdate(quantity=3))

        # Assert
        update_sql, params = mock_cursor.execute.call_args_list[0][0]
        assert "quantity = %s" in update_sql
        assert "price = %s" not in update_sql
        assert params == [3, tenant_id, 'prod-1']
        assert product.quantity == 3

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_update_missing_product_returns_none(self, mock_get_conn, tenant_id):
        """Test update returns None and rolls back when nothing matched"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        # Act
        result = ProductRepository().update(tenant_id, 'missing', ProductUpdate(name='X'))

        # Assert
        assert result is None
        mock_conn.rollback.assert_called_once()
        mock_conn.commit.assert_not_called()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_delete(self, mock_get_conn, tenant_id):
        """Test delete reports whether a row was removed"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        # Act / Assert
        assert ProductRepository().delete(tenant_id, 'missing') is False
        mock_conn.commit.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_get_stats(self, mock_get_conn, tenant_id):
        """Test get_stats converts counts to ints"""
        # Arrange
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'total': 10, 'active': 6, 'draft': 3, 'archived': 1, 'low_stock': 2, 'out_of_stock': None,
        }

        # Act
        stats = ProductRepository().get_stats(tenant_id)

        # Assert
        assert stats['active'] == 6
        assert stats['out_of_stock'] == 0

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_create_variants_appends_positions(self, mock_get_conn, tenant_id):
        """Test new variants are positioned after existing ones"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        created_at = datetime(2025, 5, 1, tzinfo=timezone.utc)
        mock_cursor.fetchone.side_effect = [
            {'max_position': 1},
            {'id': 'v3', 'product_id': 'prod-1', 'title': 'L', 'sku': None, 'price': None,
             'quantity': 0, 'options': {'Size': 'L'}, 'position': 2, 'created_at': created_at},
        ]

        # Act
        variants = ProductRepository().create_variants(
            tenant_id, 'prod-1', [ProductVariantCreate(title='L', options={'Size': 'L'})]
        )

        # Assert
        assert variants[0].position == 2
        assert mock_cursor.execute.call_args_list[1][0][1][-1] == 2
        mock_conn.commit.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_update_variant_wraps_options(self, mock_get_conn, tenant_id):
        """Test only the set fields are written and options go in as JSONB"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'id': 'v1', 'product_id': 'prod-1', 'title': 'Large', 'sku': 'KIT-L', 'price': Decimal('54.00'),
            'quantity': 4, 'options': {'Size': 'L'}, 'position': 0,
        }

        # Act
        variant = ProductRepository().update_variant(
            tenant_id, 'prod-1', 'v1', ProductVariantUpdate(price=Decimal('54.00'), options={'Size': 'L'})
        )

        # Assert
        sql, params = mock_cursor.execute.call_args[0]
        assert "price = %s" in sql
        assert "title = %s" not in sql
        assert isinstance(params[1], Json)
        assert params[2:] == [tenant_id, 'prod-1', 'v1']
        assert variant.price == Decimal('54.00')
        mock_conn.commit.assert_called_once()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_update_variant_of_other_product_returns_none(self, mock_get_conn, tenant_id):
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = None

        assert ProductRepository().update_variant(tenant_id, 'prod-2', 'v1', ProductVariantUpdate(title='X')) is None
        mock_conn.rollback.assert_called_once()
        mock_conn.commit.assert_not_called()

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_subtract_stock_never_goes_negative(self, mock_get_conn, tenant_id):
        """Test subtract clamps at zero inside the UPDATE"""
        # Arrange
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'id': 'v1', 'product_id': 'prod-1', 'title': 'Large', 'quantity': 0, 'options': {}, 'position': 0,
        }

        # Act
        variant = ProductRepository().adjust_variant_stock(tenant_id, 'v1', 10, 'subtract')

        # Assert
        sql, params = mock_cursor.execute.call_args[0]
        assert "GREATEST(0, quantity - %s)" in sql
        assert params == (10, tenant_id, 'v1')
        assert variant.quantity == 0

    @patch('storefront.repositories.product_repository.get_db_connection_dict')
    def test_adjust_stock_rejects_unknown_action(self, mock_get_conn, tenant_id):
        with pytest.raises(ValueError):
            ProductRepository().adjust_variant_stock(tenant_id, 'v1', 1, 'multiply')

        mock_get_conn.assert_not_called()
