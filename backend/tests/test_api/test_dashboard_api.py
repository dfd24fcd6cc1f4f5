"""
API tests for the merchant dashboard routes

Repositories and services are patched where the routers import them.
"""
from decimal import Decimal
from unittest.mock import patch

from fastapi.testclient import TestClient

from storefront.core.auth import TokenUser, get_current_tenant_user
from storefront.core.errors import NotFoundError
from storefront.domain.bulk import BulkActionResult
from storefront.domain.product import Product, ProductVariant
from storefront.main import app


def _product(**overrides):
    values = {'id': 'prod-1', 'tenant_id': 't', 'name': 'Mug', 'slug': 'mug', 'price': Decimal('12.50')}
    values.update(overrides)
    return Product(**values)


def test_health_reports_degraded_without_database(client):
    with patch('storefront.main.get_db_connection_with_retry', side_effect=Exception("no db")):
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["database"]["error"] == "no db"


@patch('storefront.api.products.ProductRepository')
def test_list_products(mock_repo_cls, client, tenant_id):
    # Arrange
    mock_repo = mock_repo_cls.return_value
    mock_repo.find_all.return_value = ([_product()], 1)

    # Act
    response = client.get("/api/v1/products/?status=active&limit=10")

    # Assert
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["data"][0]["price"] == "12.50"
    assert mock_repo.find_all.call_args[0][0] == tenant_id
    assert mock_repo.find_all.call_args.kwargs["status"] == "active"


@patch('storefront.api.products.ProductRepository')
def test_get_missing_product_is_404(mock_repo_cls, client):
    mock_repo_cls.return_value.find_by_id.return_value = None

    response = client.get("/api/v1/products/nope")

    assert response.status_code == 404


@patch('storefront.api.products.get_audit_logger')
@patch('storefront.api.products.ProductRepository')
def test_create_product_is_audited(mock_repo_cls, mock_audit, client):
    mock_repo_cls.return_value.create.return_value = _product()

    response = client.post("/api/v1/products/", json={"name": "Mug", "price": "12.50"})

    assert response.status_code == 201
    assert response.json()["data"]["slug"] == "mug"
    mock_audit.return_value.log_create.assert_called_once()


def test_create_product_validates_body(client):
    response = client.post("/api/v1/products/", json={"name": "", "price": "-1"})

    assert response.status_code == 422


@patch('storefront.api.products.ProductRepository')
def test_staff_cannot_delete_products(mock_repo_cls, client):
    staff = TokenUser(id="u2", email="staff@example.com", tenant_id="t", role="staff")
    app.dependency_overrides[get_current_tenant_user] = lambda: staff

    response = client.delete("/api/v1/products/prod-1")

    assert response.status_code == 403
    mock_repo_cls.return_value.delete.assert_not_called()


@patch('storefront.api.products.get_audit_logger')
@patch('storefront.api.products.ProductRepository')
def test_generate_variants(mock_repo_cls, mock_audit, client):
    mock_repo = mock_repo_cls.return_value
    mock_repo.find_by_id.return_value = _product()
    mock_repo.create_variants.side_effect = lambda tenant_id, product_id, variants: [
        ProductVariant(id=f"v{i}", product_id=product_id, title=v.title) for i, v in enumerate(variants)
    ]

    response = client.post("/api/v1/products/prod-1/variants/generate", json={
        "option_groups": [{"name": "Size", "values": ["S", "M"]}, {"name": "Color", "values": ["Red"]}],
    })

    assert response.status_code == 201
    titles = [v.title for v in mock_repo.create_variants.call_args[0][2]]
    assert titles == ["S / Red", "M / Red"]
    assert response.json()["count"] == 2


@patch('storefront.api.pages.get_page_service')
def test_page_errors_use_error_envelope(mock_service, client):
    mock_service.return_value.get_page.side_effect = NotFoundError("Page p not found", code="PAGE_NOT_FOUND")

    response = client.get("/api/v1/pages/p")

    assert response.status_code == 404
    assert response.json() == {
        "status": "error",
        "error": {"code": "PAGE_NOT_FOUND", "message": "Page p not found"},
    }


def test_block_registry_lists_categories(client):
    response = client.get("/api/v1/pages/blocks/registry")

    assert response.status_code == 200
    assert "commerce" in response.json()["data"]


@patch('storefront.api.bulk.get_bulk_action_service')
def test_bulk_delete(mock_service, client, tenant_id):
    mock_service.return_value.bulk_delete.return_value = BulkActionResult(
        success=True, success_count=2, failed_count=0, total_count=2, message="Successfully deleted 2 products"
    )

    response = client.post("/api/v1/bulk/products/delete", json={"ids": ["p1", "p2"]})

    assert response.status_code == 200
    assert response.json()["data"]["success_count"] == 2
    assert mock_service.return_value.bulk_delete.call_args[0][:3] == (tenant_id, "products", ["p1", "p2"])


@patch('storefront.api.bulk.get_bulk_action_service')
def test_bulk_export_is_a_download(mock_service, client):
    mock_service.return_value.bulk_export.return_value = (
        b"id,name\np1,Mug", "products-export-2025-06-01.csv", "text/csv"
    )

    response = client.post("/api/v1/bulk/products/export", json={"ids": ["p1"], "format": "csv"})

    assert response.status_code == 200
    assert response.content == b"id,name\np1,Mug"
    assert 'filename="products-export-2025-06-01.csv"' in response.headers["content-disposition"]


@patch('storefront.api.bulk.get_bulk_action_service')
def test_bulk_price_change(mock_service, client, tenant_id):
    mock_service.return_value.bulk_update_price.return_value = BulkActionResult(
        success=True, success_count=1, failed_count=0, total_count=1, message="Successfully repriced 1 products"
    )

    response = client.post("/api/v1/bulk/products/price", json={
        "ids": ["p1"], "type": "percentage_decrease", "value": "15",
    })

    assert response.status_code == 200
    args = mock_service.return_value.bulk_update_price.call_args[0]
    assert args == (tenant_id, ["p1"], "percentage_decrease", Decimal("15"))


def test_bulk_price_change_rejects_unknown_type(client):
    response = client.post("/api/v1/bulk/products/price", json={"ids": ["p1"], "type": "double", "value": "2"})

    assert response.status_code == 422


@patch('storefront.api.products.get_audit_logger')
@patch('storefront.api.products.ProductRepository')
def test_variant_stock_adjustment(mock_repo_cls, mock_audit, client, tenant_id):
    # Arrange
    mock_repo = mock_repo_cls.return_value
    mock_repo.find_variant.return_value = ProductVariant(id='v1', product_id='prod-1', title='L', quantity=2)
    mock_repo.adjust_variant_stock.return_value = ProductVariant(id='v1', product_id='prod-1', title='L', quantity=7)

    # Act
    response = client.patch("/api/v1/products/prod-1/variants/v1/stock", json={"quantity": 5, "action": "add"})

    # Assert
    assert response.status_code == 200
    assert response.json()["data"]["quantity"] == 7
    mock_repo.adjust_variant_stock.assert_called_once_with(tenant_id, 'v1', 5, 'add')
    audit_kwargs = mock_audit.return_value.log_update.call_args.kwargs
    assert audit_kwargs['old_values'] == {'quantity': 2}


@patch('storefront.api.products.ProductRepository')
def test_variant_stock_of_other_product_is_404(mock_repo_cls, client):
    mock_repo = mock_repo_cls.return_value
    mock_repo.find_variant.return_value = ProductVariant(id='v1', product_id='prod-9', title='L')

    response = client.patch("/api/v1/products/prod-1/variants/v1/stock", json={"quantity": 1})

    assert response.status_code == 404
    mock_repo.adjust_variant_stock.assert_not_called()


def test_requests_without_token_are_rejected():
    app.dependency_overrides.clear()

    with TestClient(app) as anonymous:
        response = anonymous.get("/api/v1/orders/")

    assert response.status_code in (401, 403)
