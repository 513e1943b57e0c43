"""
Payment Module - storefront checkout

Wallet discovery, payment submission, receipt polling and on-chain
verification of native-currency payments.
"""

from storefront.payment.chain import ChainSpec, NativeCurrency, to_base_units
from storefront.payment.config import StorefrontConfig, storefront_config
from storefront.payment.errors import FailureKind, PaymentError
from storefront.payment.models import (
    CheckoutForm,
    PaymentIntent,
    PaymentState,
    TransactionReceipt,
    TransactionRecord,
    VerificationResult,
)
from storefront.payment.polling import wait_for_receipt
from storefront.payment.verification import verify_transaction
from storefront.payment.verifier import CheckoutOutcome, PaymentVerifier
from storefront.payment.wallets import WalletProvider, WalletRequestError, discover_wallets

__all__ = [
    "ChainSpec",
    "NativeCurrency",
    "to_base_units",
    "StorefrontConfig",
    "storefront_config",
    "FailureKind",
    "PaymentError",
    "CheckoutForm",
    "PaymentIntent",
    "PaymentState",
    "TransactionReceipt",
    "TransactionRecord",
    "VerificationResult",
    "wait_for_receipt",
    "verify_transaction",
    "CheckoutOutcome",
    "PaymentVerifier",
    "WalletProvider",
    "WalletRequestError",
    "discover_wallets",
]
