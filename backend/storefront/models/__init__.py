"""
Database models (schema declaration)

Repositories query these tables with raw SQL; the models exist so the
schema can be created with init_schema().
"""
from .tenant import Tenant
from .catalog import Category, Product, ProductVariant, Collection, CollectionProduct
from .commerce import Cart, CartItem, Order, OrderItem, OrderStatusHistory, OrderEvent
from .discount import Discount, VoucherCode, DiscountUsage
from .content import StorePage, StorePageVersion, StoreTheme, StoreBlockTemplate, DashboardLayout
from .customer import Customer, ContactMessage, MediaAsset, AuditLog

__all__ = [
    "Tenant",
    "Category",
    "Product",
    "ProductVariant",
    "Collection",
    "CollectionProduct",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderEvent",
    "Discount",
    "VoucherCode",
    "DiscountUsage",
    "StorePage",
    "StorePageVersion",
    "StoreTheme",
    "StoreBlockTemplate",
    "DashboardLayout",
    "Customer",
    "ContactMessage",
    "MediaAsset",
    "AuditLog",
]
