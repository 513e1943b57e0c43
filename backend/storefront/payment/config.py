"""
Configuration for the storefront checkout.

Loads and validates environment variables for the target chain, the wallet
sources used by discovery and the hosted data service.
"""

import os
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from storefront.payment.chain import ChainSpec, NativeCurrency


class StorefrontConfig(BaseSettings):
    """Checkout and data-service configuration."""

    # Chain Configuration (defaults target Umi Devnet)
    chain_id: int = int(os.getenv("STOREFRONT_CHAIN_ID", "42069"))
    chain_name: str = os.getenv("STOREFRONT_CHAIN_NAME", "Umi Devnet")
    chain_rpc_url: str = os.getenv(
        "STOREFRONT_CHAIN_RPC_URL",
        "https://devnet.uminetwork.com"
    )
    chain_explorer_url: str = os.getenv(
        "STOREFRONT_CHAIN_EXPLORER_URL",
        "https://devnet.explorer.moved.network"
    )

    # Native currency metadata
    currency_name: str = "Ether"
    currency_symbol: str = "ETH"
    currency_decimals: int = 18

    # Payment Configuration
    transfer_gas_limit: int = 21000  # Plain native transfer
    receipt_poll_interval_seconds: float = 3.0
    receipt_max_attempts: int = 60

    # Server-side verification polls for a shorter window per request
    verify_poll_interval_seconds: float = 3.0
    verify_max_attempts: int = 10

    # Wallet sources picked up by discovery
    wallet_rpc_url: Optional[str] = None
    wallet_rpc_name: str = "Web3 Wallet"
    wallet_private_key: Optional[str] = None

    # Hosted data service (Supabase / PostgREST), read without the prefix
    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_URL", "supabase_url"),
    )
    supabase_key: str = Field(
        default="",
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "supabase_key"),
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_prefix = "STOREFRONT_"
        case_sensitive = False
        populate_by_name = True
        # The .env file is shared with the storefront front end
        extra = "ignore"

    def chain_spec(self) -> ChainSpec:
        """Build the target chain description from settings."""
        return ChainSpec(
            chain_id=self.chain_id,
            name=self.chain_name,
            currency=NativeCurrency(
                name=self.currency_name,
                symbol=self.currency_symbol,
                decimals=self.currency_decimals,
            ),
            rpc_urls=self._split_urls(self.chain_rpc_url),
            explorer_urls=self._split_urls(self.chain_explorer_url),
        )

    @staticmethod
    def _split_urls(value: str) -> List[str]:
        return [url.strip() for url in value.split(",") if url.strip()]

    def validate(self) -> None:
        """Validate required configuration.

        Raises:
            ValueError: If required configuration is missing or invalid
        """
        if not self.chain_rpc_url:
            raise ValueError("STOREFRONT_CHAIN_RPC_URL environment variable is required")

        if self.chain_id <= 0:
            raise ValueError(f"STOREFRONT_CHAIN_ID must be positive, got {self.chain_id}")

        if self.receipt_max_attempts < 1 or self.verify_max_attempts < 1:
            raise ValueError("Receipt polling needs at least one attempt")

        if Decimal(str(self.receipt_poll_interval_seconds)) < 0:
            raise ValueError("Receipt poll interval cannot be negative")

        if not self.supabase_url:
            raise ValueError("SUPABASE_URL environment variable is required")

        if not self.supabase_key:
            raise ValueError("SUPABASE_ANON_KEY environment variable is required")


# Global config instance
storefront_config = StorefrontConfig()
