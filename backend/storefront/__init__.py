"""Multi-tenant storefront and merchant dashboard backend"""

__version__ = "1.0.0"
