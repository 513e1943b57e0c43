#!/usr/bin/env python3
"""
Script to buy a storefront product with a local wallet key.

Looks the product up by its shareable code, then runs the full checkout:
network switch, native transfer, receipt polling, on-chain verification and
order creation.

Usage:
    python pay_product.py <unique_code> --name NAME --email EMAIL --phone PHONE
        --street STREET --city CITY --state STATE --zip ZIP --country COUNTRY
        [--notes NOTES] [--private-key KEY]

Examples:
    # Pay with the key from STOREFRONT_WALLET_PRIVATE_KEY
    python pay_product.py AB12CD34 --name "Ada Lovelace" --email ada@example.com \\
        --phone "+44 20 7946 0000" --street "1 Main St" --city London \\
        --state London --zip "N1 9GU" --country UK
"""

import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()
from storefront.payment.config import StorefrontConfig
from storefront.payment.errors import CheckoutFormError
from storefront.payment.models import STATE_MESSAGES, CheckoutForm, PaymentState
from storefront.payment.providers import LocalAccountWallet
from storefront.payment.verifier import CheckoutOutcome, PaymentVerifier
from storefront.store.catalog import Product, ProductCatalog
from storefront.store.client import RestClient, StoreError
from storefront.store.orders import OrderStore, SupabaseOrderStore

ENV_PRIVATE_KEY = "STOREFRONT_WALLET_PRIVATE_KEY"


def print_state(old: PaymentState, new: PaymentState) -> None:
    message = STATE_MESSAGES[new]
    if message:
        print(f"[{new.value}] {message}")


def print_outcome(outcome: CheckoutOutcome, explorer_url: str) -> None:
    print()
    if outcome.cancelled:
        print("Checkout cancelled.")
    elif outcome.succeeded:
        print("✓ Payment verified")
        print(f"  Amount: {outcome.result.amount_confirmed:f}")
        print(f"  From:   {outcome.result.from_address}")
        print(f"  To:     {outcome.result.to_address}")
        if outcome.order is not None:
            print(f"  Order:  {outcome.order.id}")
        if outcome.warning is not None:
            print(f"⚠ {outcome.warning.message}")
    else:
        print(f"✗ {outcome.error.message}")

    if outcome.tx_hash:
        print(f"  Transaction: {outcome.tx_hash}")
        if explorer_url:
            print(f"  Explorer:    {explorer_url}")


def build_verifier(
    product: Product,
    config: StorefrontConfig,
    order_store: OrderStore,
    private_key: str,
) -> PaymentVerifier:
    """Verifier that pays only from the given key, ignoring configured wallets."""
    wallet = LocalAccountWallet(private_key, rpc_url=config.chain_spec().rpc_urls[0])
    return PaymentVerifier.from_config(
        product,
        config,
        order_store,
        injected=[wallet],
        discover=False,
        on_state_change=print_state,
    )


async def run(args: argparse.Namespace, config: StorefrontConfig, private_key: str) -> int:
    client = RestClient(config.supabase_url, config.supabase_key)
    try:
        product = await ProductCatalog(client).get_product_by_unique_code(args.unique_code)
        if product is None:
            print(f"Error: No product with code {args.unique_code}")
            return 1

        chain = config.chain_spec()
        print(f"Product: {product.name} ({product.price} {chain.currency.symbol})")
        print(f"Network: {chain.name} (chain id {chain.chain_id})")
        print()

        verifier = build_verifier(product, config, SupabaseOrderStore(client), private_key)
        form = CheckoutForm(
            customer_name=args.name,
            customer_email=args.email,
            customer_phone=args.phone,
            street=args.street,
            city=args.city,
            state=args.state,
            zip_code=args.zip,
            country=args.country,
            notes=args.notes,
        )
        try:
            outcome = await verifier.submit(form)
        except CheckoutFormError as e:
            for field_name, message in e.errors.items():
                print(f"Error: {field_name}: {message}")
            return 1

        print_outcome(outcome, chain.explorer_tx_url(outcome.tx_hash) if outcome.tx_hash else "")
        return 0 if outcome.succeeded else 1
    except StoreError as e:
        print(f"Error: Data service request failed: {e}")
        return 1
    finally:
        await client.aclose()


def main() -> None:
    """Main function to pay for a product."""
    parser = argparse.ArgumentParser(
        description="Pay for a storefront product with a local wallet key",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("unique_code", type=str, help="Product code from the share link")
    parser.add_argument("--name", required=True, help="Full name")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--phone", required=True, help="Phone number")
    parser.add_argument("--street", required=True, help="Street address")
    parser.add_argument("--city", required=True, help="City")
    parser.add_argument("--state", required=True, help="State/Province")
    parser.add_argument("--zip", required=True, help="ZIP/Postal code")
    parser.add_argument("--country", required=True, help="Country")
    parser.add_argument("--notes", default="", help="Order notes")
    parser.add_argument(
        "--private-key",
        type=str,
        default=None,
        help=f"Payer private key (or set {ENV_PRIVATE_KEY} environment variable)",
    )
    args = parser.parse_args()

    private_key = args.private_key or os.getenv(ENV_PRIVATE_KEY)
    if not private_key:
        print(
            "Error: A private key is required.\n"
            "Please provide it via:\n"
            "  1. --private-key KEY argument\n"
            f"  2. {ENV_PRIVATE_KEY} environment variable"
        )
        sys.exit(1)

    config = StorefrontConfig()
    try:
        config.validate()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    sys.exit(asyncio.run(run(args, config, private_key)))


if __name__ == "__main__":
    main()
