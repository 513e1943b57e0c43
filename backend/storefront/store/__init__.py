"""
Data-service access for the storefront: products and orders.
"""

from storefront.store.catalog import Product, ProductCatalog
from storefront.store.client import RestClient, StoreError
from storefront.store.orders import (
    Order,
    OrderPayload,
    OrderStatus,
    OrderStore,
    PaymentStatus,
    SupabaseOrderStore,
)

__all__ = [
    "Product",
    "ProductCatalog",
    "RestClient",
    "StoreError",
    "Order",
    "OrderPayload",
    "OrderStatus",
    "OrderStore",
    "PaymentStatus",
    "SupabaseOrderStore",
]
