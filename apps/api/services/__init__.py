"""
Services package for DastEYaar Admin API
Contains business logic services: Shopify integration, syncs and data scoping
"""

from .shopify_service import ShopifyClient, ShopifyError, ShopifyConfigError, get_shopify_client

__all__ = [
    'ShopifyClient',
    'ShopifyError',
    'ShopifyConfigError',
    'get_shopify_client',
]
