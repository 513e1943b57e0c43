"""
Data models for the checkout payment flow.
"""

import re
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

# Receipt status value the chain reports for a successful execution
RECEIPT_STATUS_SUCCESS = 1


class PaymentState(str, Enum):
    """State of one checkout attempt."""
    FORM = "form"
    CONNECTING = "connecting"
    PAYMENT = "payment"
    CONFIRMING = "confirming"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentState.SUCCESS, PaymentState.FAILED)


STATE_MESSAGES: Dict[PaymentState, str] = {
    PaymentState.FORM: "",
    PaymentState.CONNECTING: "Connecting to the network and your wallet...",
    PaymentState.PAYMENT: "Please confirm the payment in your wallet...",
    PaymentState.CONFIRMING: "Transaction sent! Waiting for blockchain confirmation...",
    PaymentState.VERIFYING: "Verifying payment details on blockchain...",
    PaymentState.SUCCESS: "Payment successful! Order has been placed.",
    PaymentState.FAILED: "Payment failed. Please try again.",
}


@dataclass(frozen=True)
class PaymentIntent:
    """What the buyer is about to pay, and to whom."""
    product_id: str
    recipient_address: str
    amount_required: Decimal  # In native currency, not base units
    payer_address: Optional[str] = None

    def with_payer(self, payer_address: str) -> "PaymentIntent":
        return replace(self, payer_address=payer_address)


@dataclass(frozen=True)
class TransactionRecord:
    """Read-only view of a transaction as reported by the chain."""
    hash: str
    from_address: str
    to_address: Optional[str]  # None for contract creation
    value: int  # Base units
    confirmation_status: Optional[int] = None  # None while pending


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: int
    block_number: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RECEIPT_STATUS_SUCCESS


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a fully verified on-chain payment."""
    success: bool
    tx_hash: str
    amount_confirmed: Decimal
    amount_confirmed_base_units: int
    from_address: str
    to_address: str


@dataclass
class CheckoutForm:
    """Buyer contact and shipping details entered before paying."""
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    notes: str = ""

    REQUIRED_FIELDS = {
        "customer_name": "Full name is required",
        "customer_email": "Email is required",
        "customer_phone": "Phone number is required",
        "street": "Street address is required",
        "city": "City is required",
        "state": "State/Province is required",
        "zip_code": "ZIP/Postal code is required",
        "country": "Country is required",
    }

    def validate(self) -> Dict[str, str]:
        """Return field -> error message; empty when the form is valid."""
        errors: Dict[str, str] = {}
        for name, message in self.REQUIRED_FIELDS.items():
            if not getattr(self, name).strip():
                errors[name] = message

        email = self.customer_email.strip()
        if email and not EMAIL_PATTERN.search(email):
            errors["customer_email"] = "Please enter a valid email"
        return errors

    def shipping_address(self) -> Dict[str, str]:
        return {
            "street": self.street.strip(),
            "city": self.city.strip(),
            "state": self.state.strip(),
            "zipCode": self.zip_code.strip(),
            "country": self.country.strip(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutForm":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{k: str(v) for k, v in data.items() if k in known and v is not None})
