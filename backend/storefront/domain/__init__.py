"""
Domain Layer - Business Entities

Pydantic models for the storefront's business entities, plus the pure
business rules that belong with them (cart totals, order status machine,
variant generation, slugs).
"""
from storefront.domain.tenant import Tenant
from storefront.domain.product import Product, ProductVariant, generate_variants
from storefront.domain.collection import Collection
from storefront.domain.cart import Cart, CartItem, calculate_totals
from storefront.domain.order import Order, OrderItem, can_transition, generate_order_number
from storefront.domain.discount import Discount, VoucherCode, ApplyDiscountResult
from storefront.domain.dashboard import DashboardLayout, DashboardWidget
from storefront.domain.page import PageBlock, StorePage, PageVersion, StoreTheme, BlockTemplate

__all__ = [
    'Tenant',
    'Product', 'ProductVariant', 'generate_variants',
    'Collection',
    'Cart', 'CartItem', 'calculate_totals',
    'Order', 'OrderItem', 'can_transition', 'generate_order_number',
    'Discount', 'VoucherCode', 'ApplyDiscountResult',
    'DashboardLayout', 'DashboardWidget',
    'PageBlock', 'StorePage', 'PageVersion', 'StoreTheme', 'BlockTemplate',
]
