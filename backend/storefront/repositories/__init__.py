"""
Repository Layer - Data Access

Raw SQL over psycopg2 returning domain models. Every query is scoped by
tenant_id; callers never see rows from another store.
"""
from storefront.repositories.tenant_repository import TenantRepository
from storefront.repositories.product_repository import ProductRepository
from storefront.repositories.category_repository import CategoryRepository
from storefront.repositories.collection_repository import CollectionRepository
from storefront.repositories.cart_repository import CartRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.discount_repository import DiscountRepository
from storefront.repositories.dashboard_layout_repository import DashboardLayoutRepository
from storefront.repositories.page_repository import PageRepository
from storefront.repositories.customer_repository import CustomerRepository
from storefront.repositories.media_repository import MediaRepository

__all__ = [
    'TenantRepository',
    'ProductRepository',
    'CategoryRepository',
    'CollectionRepository',
    'CartRepository',
    'OrderRepository',
    'DiscountRepository',
    'DashboardLayoutRepository',
    'PageRepository',
    'CustomerRepository',
    'MediaRepository',
]
