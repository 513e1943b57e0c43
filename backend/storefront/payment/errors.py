"""
Typed failures of the checkout payment flow.

Every failure carries a FailureKind, a message that can be shown to the
buyer as-is, and the last known transaction hash (if a transaction was
broadcast) so the buyer can follow up manually.
"""

from enum import Enum
from typing import Dict, Optional


class FailureKind(str, Enum):
    """Failure categories surfaced to the buyer."""
    NO_WALLET_DETECTED = "no_wallet_detected"
    USER_REJECTED = "user_rejected"
    PROVIDER_ERROR = "provider_error"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"
    TRANSACTION_FAILED = "transaction_failed"
    STATUS_MISMATCH = "status_mismatch"
    SENDER_MISMATCH = "sender_mismatch"
    RECEIVER_MISMATCH = "receiver_mismatch"
    AMOUNT_INSUFFICIENT = "amount_insufficient"
    ORDER_PERSISTENCE_FAILED = "order_persistence_failed"


class PaymentError(Exception):
    """Base exception for checkout payment failures."""

    kind: FailureKind = FailureKind.PROVIDER_ERROR
    default_message = "Payment failed"

    def __init__(self, message: Optional[str] = None, tx_hash: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.tx_hash = tx_hash

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "tx_hash": self.tx_hash,
        }


class NoWalletDetectedError(PaymentError):
    kind = FailureKind.NO_WALLET_DETECTED
    default_message = (
        "No crypto wallet detected. Please install MetaMask, Coinbase Wallet, "
        "Trust Wallet, or another Ethereum-compatible wallet to continue with the payment."
    )


class UserRejectedError(PaymentError):
    kind = FailureKind.USER_REJECTED
    default_message = "Request was rejected in the wallet"


class WalletProviderError(PaymentError):
    kind = FailureKind.PROVIDER_ERROR
    default_message = "The wallet reported an error. Please try again."


class InsufficientFundsError(PaymentError):
    kind = FailureKind.INSUFFICIENT_FUNDS
    default_message = "Insufficient funds in your wallet"


class ConfirmationTimeoutError(PaymentError):
    """No receipt within the polling window.

    The transaction may still confirm later; it has not failed.
    """
    kind = FailureKind.CONFIRMATION_TIMEOUT
    default_message = (
        "Transaction confirmation timeout. The transaction may still be pending."
    )


class TransactionFailedError(PaymentError):
    kind = FailureKind.TRANSACTION_FAILED
    default_message = "Transaction failed on blockchain"


class VerificationError(PaymentError):
    """An on-chain field did not match the payment intent."""


class StatusMismatchError(VerificationError):
    kind = FailureKind.STATUS_MISMATCH
    default_message = "Transaction receipt does not report success"


class SenderMismatchError(VerificationError):
    kind = FailureKind.SENDER_MISMATCH
    default_message = "Transaction sender mismatch"


class ReceiverMismatchError(VerificationError):
    kind = FailureKind.RECEIVER_MISMATCH
    default_message = "Transaction receiver mismatch"


class AmountInsufficientError(VerificationError):
    kind = FailureKind.AMOUNT_INSUFFICIENT

    def __init__(
        self,
        expected: int,
        actual: int,
        message: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ):
        super().__init__(
            message or f"Payment amount insufficient. Expected: {expected}, Received: {actual}",
            tx_hash=tx_hash,
        )
        self.expected = expected
        self.actual = actual


class OrderPersistenceError(PaymentError):
    """Order could not be recorded after a verified payment.

    Never moves the flow to failed; attached to a successful outcome as a
    warning.
    """
    kind = FailureKind.ORDER_PERSISTENCE_FAILED
    default_message = (
        "Payment successful but order creation failed. "
        "Please contact support with your transaction hash."
    )


class CheckoutFormError(ValueError):
    """Raised when the checkout form does not validate."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Checkout form is invalid: " + ", ".join(sorted(errors)))
        self.errors = errors


class CheckoutStateError(RuntimeError):
    """Raised when an operation is not allowed in the current state."""
