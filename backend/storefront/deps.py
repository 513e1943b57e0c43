"""
Shared service instances for the API routes.

Everything is created on first use so the application can start (and
report health) without a configured data service.
"""

import logging
from typing import Optional

from fastapi import HTTPException

from storefront.payment.config import StorefrontConfig, storefront_config
from storefront.payment.providers import JsonRpcWallet
from storefront.payment.wallets import WalletProvider
from storefront.store.catalog import ProductCatalog
from storefront.store.client import RestClient
from storefront.store.orders import OrderStore, SupabaseOrderStore

logger = logging.getLogger(__name__)

CHAIN_READER_NAME = "Chain RPC"

_rest_client: Optional[RestClient] = None
_chain_reader: Optional[WalletProvider] = None


def get_config() -> StorefrontConfig:
    return storefront_config


def get_rest_client() -> RestClient:
    """Data service client, created from settings on first use.

    Raises:
        HTTPException: 503 if the data service is not configured
    """
    global _rest_client
    if _rest_client is None:
        try:
            storefront_config.validate()
        except ValueError as e:
            logger.error(f"Storefront config validation failed: {e}")
            raise HTTPException(status_code=503, detail="Storefront data service not configured") from e
        _rest_client = RestClient(storefront_config.supabase_url, storefront_config.supabase_key)
    return _rest_client


def get_catalog() -> ProductCatalog:
    return ProductCatalog(get_rest_client())


def get_order_store() -> OrderStore:
    return SupabaseOrderStore(get_rest_client())


def get_chain_reader() -> WalletProvider:
    """Read-only chain access used to re-verify submitted transactions."""
    global _chain_reader
    if _chain_reader is None:
        chain = storefront_config.chain_spec()
        if not chain.rpc_urls:
            raise HTTPException(status_code=503, detail="No chain RPC URL configured")
        _chain_reader = JsonRpcWallet(chain.rpc_urls[0], name=CHAIN_READER_NAME)
    return _chain_reader


async def close_clients() -> None:
    global _rest_client, _chain_reader
    if _rest_client is not None:
        await _rest_client.aclose()
    _rest_client = None
    _chain_reader = None
