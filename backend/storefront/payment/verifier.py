"""
PaymentVerifier - checkout payment state machine.

Drives one checkout attempt through:

    form -> connecting -> payment -> confirming -> verifying -> success | failed

1. Wallet discovery and selection
2. Network switch (falling back to adding the network) and account access
3. Native transfer to the product's wallet
4. Bounded receipt polling
5. On-chain verification of status, sender, recipient and amount
6. Best-effort order creation

Once a transaction hash exists it is kept on the verifier and attached to
every failure, because a broadcast transaction cannot be cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
)

from storefront.payment.chain import ChainSpec, to_base_units, to_decimal
from storefront.payment.errors import (
    CheckoutFormError,
    CheckoutStateError,
    InsufficientFundsError,
    NoWalletDetectedError,
    OrderPersistenceError,
    PaymentError,
    TransactionFailedError,
    UserRejectedError,
    WalletProviderError,
)
from storefront.payment.models import (
    CheckoutForm,
    PaymentIntent,
    PaymentState,
    TransactionReceipt,
    VerificationResult,
)
from storefront.payment.polling import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    PollingStopped,
    Sleeper,
    wait_for_receipt,
)
from storefront.payment.verification import verify_transaction
from storefront.payment.wallets import (
    WalletProvider,
    WalletRequestError,
    discover_wallets,
    select_wallet,
)
from storefront.store.orders import (
    Order,
    OrderPayload,
    OrderStatus,
    OrderStore,
    PaymentStatus,
)

if TYPE_CHECKING:
    from storefront.payment.config import StorefrontConfig
    from storefront.store.catalog import Product

logger = logging.getLogger(__name__)

# Gas limit of a plain native-currency transfer
DEFAULT_TRANSFER_GAS_LIMIT = 21000

ALLOWED_TRANSITIONS: Dict[PaymentState, Set[PaymentState]] = {
    PaymentState.FORM: {PaymentState.CONNECTING},
    PaymentState.CONNECTING: {PaymentState.PAYMENT, PaymentState.FAILED},
    PaymentState.PAYMENT: {PaymentState.CONFIRMING, PaymentState.FAILED},
    PaymentState.CONFIRMING: {PaymentState.VERIFYING, PaymentState.FAILED},
    PaymentState.VERIFYING: {PaymentState.SUCCESS, PaymentState.FAILED},
    PaymentState.SUCCESS: set(),
    PaymentState.FAILED: {PaymentState.FORM},
}

WalletSource = Callable[[], Sequence[WalletProvider]]
StateListener = Callable[[PaymentState, PaymentState], None]


class CheckoutClosed(Exception):
    """The checkout was closed before the transaction was broadcast."""


@dataclass
class CheckoutOutcome:
    """Snapshot of a checkout attempt after submit() returns."""
    state: PaymentState
    tx_hash: Optional[str] = None
    payer_address: Optional[str] = None
    result: Optional[VerificationResult] = None
    order: Optional[Order] = None
    error: Optional[PaymentError] = None
    warning: Optional[OrderPersistenceError] = None
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state == PaymentState.SUCCESS


def build_order_payload(
    product: "Product",
    form: CheckoutForm,
    result: VerificationResult,
) -> OrderPayload:
    """Merge a verified payment with the buyer's form into a paid order."""
    if not result.success:
        raise CheckoutStateError("Order payload requires a verified payment")

    return OrderPayload(
        product_id=product.id,
        product_name=product.name,
        product_price=to_decimal(product.price),
        customer_name=form.customer_name.strip(),
        customer_email=form.customer_email.strip(),
        customer_phone=form.customer_phone.strip(),
        shipping_address=form.shipping_address(),
        wallet_address=product.wallet_address,
        payer_address=result.from_address,
        tx_hash=result.tx_hash,
        notes=form.notes.strip(),
        payment_status=PaymentStatus.COMPLETED,
        status=OrderStatus.PAID,
    )


class PaymentVerifier:
    """Runs and verifies the payment for one checkout attempt."""

    def __init__(
        self,
        product: "Product",
        chain: ChainSpec,
        wallet_source: WalletSource,
        order_store: OrderStore,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        gas_limit: int = DEFAULT_TRANSFER_GAS_LIMIT,
        sleep: Sleeper = asyncio.sleep,
        on_state_change: Optional[StateListener] = None,
    ) -> None:
        """
        Args:
            product: Product being bought (recipient wallet and price)
            chain: Network the payment must happen on
            wallet_source: Called on submit to discover available wallets
            order_store: Where the order is recorded after verification
            poll_interval: Seconds between receipt polls
            max_attempts: Receipt polls before giving up
            gas_limit: Gas limit for the transfer
            sleep: Async sleep used between polls
            on_state_change: Called with (old, new) on every transition

        Raises:
            ValueError: If the product price cannot be paid exactly
        """
        self.product = product
        self.chain = chain
        self.wallet_source = wallet_source
        self.order_store = order_store
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.gas_limit = gas_limit
        self._sleep = sleep
        self._on_state_change = on_state_change

        self.amount_base_units = to_base_units(product.price, chain.currency.decimals)

        self.state = PaymentState.FORM
        self.form = CheckoutForm()
        self.wallet: Optional[WalletProvider] = None
        self.tx_history: List[str] = []
        self._closed = False
        self._reset_attempt()

    @classmethod
    def from_config(
        cls,
        product: "Product",
        config: "StorefrontConfig",
        order_store: OrderStore,
        injected: Iterable[WalletProvider] = (),
        discover: bool = True,
        **kwargs,
    ) -> "PaymentVerifier":
        """Build a verifier from settings.

        With discover=False only the injected wallets are offered; wallets
        configured in settings are ignored.
        """
        injected = list(injected)
        return cls(
            product,
            config.chain_spec(),
            (lambda: discover_wallets(config, injected)) if discover else (lambda: list(injected)),
            order_store,
            poll_interval=config.receipt_poll_interval_seconds,
            max_attempts=config.receipt_max_attempts,
            gas_limit=config.transfer_gas_limit,
            **kwargs,
        )

    def _reset_attempt(self) -> None:
        self.intent = PaymentIntent(
            product_id=self.product.id,
            recipient_address=self.product.wallet_address,
            amount_required=to_decimal(self.product.price),
        )
        self.tx_hash: Optional[str] = None
        self.payer_address: Optional[str] = None
        self.result: Optional[VerificationResult] = None
        self.order: Optional[Order] = None
        self.error: Optional[PaymentError] = None
        self.warning: Optional[OrderPersistenceError] = None

    # --- State handling -----------------------------------------------------

    def _transition(self, new_state: PaymentState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise CheckoutStateError(f"Cannot move from {self.state.value} to {new_state.value}")

        old_state, self.state = self.state, new_state
        logger.info(f"Checkout for product {self.product.id}: {old_state.value} -> {new_state.value}")
        if self._on_state_change is not None:
            self._on_state_change(old_state, new_state)

    def _ensure_open(self) -> None:
        if self._closed:
            raise CheckoutClosed()

    def outcome(self, cancelled: bool = False) -> CheckoutOutcome:
        return CheckoutOutcome(
            state=self.state,
            tx_hash=self.tx_hash,
            payer_address=self.payer_address,
            result=self.result,
            order=self.order,
            error=self.error,
            warning=self.warning,
            cancelled=cancelled,
        )

    # --- Public operations ----------------------------------------------------

    async def submit(self, form: CheckoutForm) -> CheckoutOutcome:
        """Validate the form and run the payment flow to a terminal state.

        Raises:
            CheckoutFormError: If the form is invalid (state stays form)
            CheckoutStateError: If a checkout is already in progress
        """
        if self.state != PaymentState.FORM:
            raise CheckoutStateError(f"Checkout already {self.state.value}")

        self.form = form
        errors = form.validate()
        if errors:
            raise CheckoutFormError(errors)

        self._closed = False
        try:
            self._transition(PaymentState.CONNECTING)
            wallet = self._select_wallet()
            payer = await self._connect(wallet)

            self._ensure_open()
            self._transition(PaymentState.PAYMENT)
            tx_hash = await self._send_payment(wallet, payer)

            self._transition(PaymentState.CONFIRMING)
            await self._wait_for_confirmation(wallet, tx_hash)

            self._transition(PaymentState.VERIFYING)
            self.result = await self._verify(wallet, tx_hash)
            self._transition(PaymentState.SUCCESS)

        except (CheckoutClosed, PollingStopped):
            if self.tx_hash:
                logger.info(f"Checkout closed while waiting; transaction {self.tx_hash} stays on chain")
            else:
                logger.info("Checkout closed before any transaction was sent")
            return self.outcome(cancelled=True)

        except PaymentError as e:
            if e.tx_hash is None:
                e.tx_hash = self.tx_hash
            self.error = e
            logger.error(f"Payment failed ({e.kind.value}): {e.message} [tx_hash={self.tx_hash}]")
            self._transition(PaymentState.FAILED)
            return self.outcome()

        await self._record_order()
        return self.outcome()

    def retry(self) -> None:
        """Go back to the form after a failure, keeping what was entered."""
        if self.state != PaymentState.FAILED:
            raise CheckoutStateError(f"Cannot retry from {self.state.value}")
        self._reset_attempt()
        self._transition(PaymentState.FORM)

    def close(self) -> None:
        """Abandon the attempt; a broadcast transaction is not affected."""
        self._closed = True
        if self.tx_hash and not self.state.is_terminal:
            logger.warning(
                f"Checkout closed before confirmation; keep transaction hash {self.tx_hash} for manual verification"
            )

    # --- Phases ---------------------------------------------------------------

    def _select_wallet(self) -> WalletProvider:
        wallets = list(self.wallet_source())
        if not wallets:
            raise NoWalletDetectedError()

        self.wallet = select_wallet(wallets)
        logger.info(f"Available wallets: {[w.name for w in wallets]}; using {self.wallet.name}")
        return self.wallet

    def _wallet_failure(self, error: Exception, action: str) -> PaymentError:
        """Map anything a wallet raised to the buyer-facing failure."""
        if not isinstance(error, WalletRequestError):
            return WalletProviderError(f"{action} failed: {error}", tx_hash=self.tx_hash)
        if error.is_user_rejection:
            return UserRejectedError(
                f"{action} was rejected by user. Please approve the request in your wallet.",
                tx_hash=self.tx_hash,
            )
        if error.is_insufficient_funds:
            return InsufficientFundsError(tx_hash=self.tx_hash)
        return WalletProviderError(f"{action} failed: {error.message}", tx_hash=self.tx_hash)

    async def _connect(self, wallet: WalletProvider) -> str:
        chain = self.chain
        try:
            await wallet.switch_network(chain.chain_id)
        except Exception as e:
            if not (isinstance(e, WalletRequestError) and e.is_unrecognized_chain):
                raise self._wallet_failure(e, f"Switching to {chain.name}") from e

            logger.info(f"{wallet.name} does not know chain {chain.hex_chain_id}; adding {chain.name}")
            try:
                await wallet.add_network(chain)
            except Exception as add_error:
                raise self._wallet_failure(add_error, f"Adding {chain.name} network") from add_error

        self._ensure_open()
        try:
            accounts = await wallet.request_accounts()
        except Exception as e:
            raise self._wallet_failure(e, "Wallet connection") from e

        if not accounts:
            raise WalletProviderError("No accounts found. Please make sure your wallet is unlocked.")

        payer = accounts[0]
        self.payer_address = payer
        self.intent = self.intent.with_payer(payer)
        logger.info(f"Wallet connected: {payer}")
        return payer

    async def _send_payment(self, wallet: WalletProvider, payer: str) -> str:
        tx = {
            "from": payer,
            "to": self.intent.recipient_address,
            "value": self.amount_base_units,
            "gas": self.gas_limit,
        }
        logger.info(f"Sending transaction: {tx}")
        try:
            tx_hash = await wallet.send_transaction(tx)
        except Exception as e:
            raise self._wallet_failure(e, "Payment") from e

        # Recorded before anything else can fail
        self.tx_hash = tx_hash
        self.tx_history.append(tx_hash)
        logger.info(f"Transaction sent: {tx_hash}")
        return tx_hash

    async def _wait_for_confirmation(self, wallet: WalletProvider, tx_hash: str) -> TransactionReceipt:
        receipt = await wait_for_receipt(
            wallet.get_transaction_receipt,
            tx_hash,
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            sleep=self._sleep,
            should_continue=lambda: not self._closed,
        )
        if not receipt.succeeded:
            raise TransactionFailedError(tx_hash=tx_hash)
        return receipt

    async def _verify(self, wallet: WalletProvider, tx_hash: str) -> VerificationResult:
        try:
            tx = await wallet.get_transaction(tx_hash)
            receipt = await wallet.get_transaction_receipt(tx_hash)
        except Exception as e:
            raise self._wallet_failure(e, "Fetching transaction details") from e

        if tx is None:
            raise WalletProviderError("Transaction not found on blockchain", tx_hash=tx_hash)
        if receipt is None:
            raise WalletProviderError("Transaction receipt not found", tx_hash=tx_hash)

        return verify_transaction(self.intent, tx, receipt, self.chain.currency)

    # --- Order ----------------------------------------------------------------

    def build_order_payload(self) -> OrderPayload:
        if self.result is None:
            raise CheckoutStateError("Order payload requires a verified payment")
        return build_order_payload(self.product, self.form, self.result)

    async def _record_order(self) -> None:
        payload = self.build_order_payload()
        try:
            self.order = await self.order_store.create_order(payload)
        except Exception as e:
            # The payment is confirmed on chain; a bookkeeping failure only warns
            warning = OrderPersistenceError(
                f"Payment successful but order creation failed: {e}. "
                f"Please contact support with your transaction hash {payload.tx_hash}.",
                tx_hash=payload.tx_hash,
            )
            warning.__cause__ = e
            self.warning = warning
            logger.warning(f"Order creation failed after verified payment {payload.tx_hash}: {e}")
            return

        logger.info(f"Order {self.order.id} recorded for transaction {payload.tx_hash}")
