"""
On-chain field verification of a native-currency payment.

Checks, in order: receipt status, sender, recipient, amount. The first
failing check raises its own error type; only a transaction passing all four
produces a VerificationResult.

A payer claiming a transaction for an order proves control of the sending
address by signing payer_message().
"""

from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from storefront.payment.chain import NativeCurrency, format_amount, from_base_units, to_base_units
from storefront.payment.errors import (
    AmountInsufficientError,
    ReceiverMismatchError,
    SenderMismatchError,
    StatusMismatchError,
)
from storefront.payment.models import (
    RECEIPT_STATUS_SUCCESS,
    PaymentIntent,
    TransactionReceipt,
    TransactionRecord,
    VerificationResult,
)

logger = logging.getLogger(__name__)

# Text the payer signs (personal_sign) to claim a transaction for an order
PAYER_MESSAGE_TEMPLATE = "Confirm payment {tx_hash} for product {product_id}"


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()


def verify_transaction(
    intent: PaymentIntent,
    tx: TransactionRecord,
    receipt: TransactionReceipt,
    currency: NativeCurrency,
) -> VerificationResult:
    """Verify a mined native transfer against the payment intent.

    Raises:
        StatusMismatchError: Receipt does not report success
        SenderMismatchError: Sender is not the connected payer
        ReceiverMismatchError: Recipient is not the product's wallet
        AmountInsufficientError: Value is below the required amount
    """
    if not receipt.succeeded or tx.confirmation_status not in (None, RECEIPT_STATUS_SUCCESS):
        raise StatusMismatchError(
            f"Transaction failed on blockchain (receipt status {receipt.status}, "
            f"confirmation status {tx.confirmation_status})",
            tx_hash=tx.hash,
        )

    if not _same_address(tx.from_address, intent.payer_address):
        raise SenderMismatchError(
            f"Transaction sender mismatch: tx sent from {tx.from_address}, "
            f"expected {intent.payer_address}",
            tx_hash=tx.hash,
        )

    if not _same_address(tx.to_address, intent.recipient_address):
        raise ReceiverMismatchError(
            f"Transaction receiver mismatch: tx sends to {tx.to_address}, "
            f"expected {intent.recipient_address}",
            tx_hash=tx.hash,
        )

    expected = to_base_units(intent.amount_required, currency.decimals)
    if tx.value < expected:
        raise AmountInsufficientError(
            expected=expected,
            actual=tx.value,
            message=(
                f"Payment amount insufficient. Expected: {format_amount(expected, currency)}, "
                f"Received: {format_amount(tx.value, currency)}"
            ),
            tx_hash=tx.hash,
        )

    logger.info(f"Native transfer verified: {format_amount(tx.value, currency)} to {tx.to_address}")

    return VerificationResult(
        success=True,
        tx_hash=tx.hash,
        amount_confirmed=from_base_units(tx.value, currency.decimals),
        amount_confirmed_base_units=tx.value,
        from_address=tx.from_address,
        to_address=tx.to_address,
    )


def payer_message(tx_hash: str, product_id: str) -> str:
    return PAYER_MESSAGE_TEMPLATE.format(tx_hash=tx_hash, product_id=product_id)


def is_signed_by_payer(payer_address: str, tx_hash: str, product_id: str, signature: str) -> bool:
    """Check that payer_address signed the claim for tx_hash and product_id."""
    message = encode_defunct(text=payer_message(tx_hash, product_id))
    try:
        signer = Account.recover_message(message, signature=signature)
    except Exception as e:
        logger.warning(f"Unreadable payer signature for {tx_hash}: {e}")
        return False
    return _same_address(signer, payer_address)
