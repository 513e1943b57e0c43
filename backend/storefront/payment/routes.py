"""
Checkout API Routes.

Endpoints for browser wallets: the network to add/switch to, and
server-side verification of a submitted payment before the order is
recorded.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from storefront.deps import get_catalog, get_chain_reader, get_config, get_order_store
from storefront.payment.chain import to_decimal
from storefront.payment.config import StorefrontConfig
from storefront.payment.errors import (
    ConfirmationTimeoutError,
    OrderPersistenceError,
    PaymentError,
    TransactionFailedError,
    WalletProviderError,
)
from storefront.payment.models import CheckoutForm, PaymentIntent
from storefront.payment.polling import wait_for_receipt
from storefront.payment.verification import PAYER_MESSAGE_TEMPLATE, is_signed_by_payer, verify_transaction
from storefront.payment.verifier import build_order_payload
from storefront.payment.wallets import WalletProvider, WalletRequestError
from storefront.store.catalog import ProductCatalog
from storefront.store.client import StoreError
from storefront.store.orders import OrderStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


class CheckoutFormModel(BaseModel):
    """Buyer details as entered on the checkout page."""
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""
    notes: str = ""


class VerifyCheckoutRequest(BaseModel):
    """Request body for checkout verification."""
    product_id: str
    tx_hash: str
    payer_address: str
    signature: str  # payer_address signing payer_message(tx_hash, product_id)
    form: CheckoutFormModel


class VerifyCheckoutResponse(BaseModel):
    """Verified payment and the order recorded for it."""
    success: bool
    tx_hash: str
    amount_confirmed: str
    from_address: str
    to_address: str
    explorer_url: str = ""
    order_id: Optional[str] = None
    warning: Optional[str] = None


def _status_code_for(error: PaymentError) -> int:
    if isinstance(error, ConfirmationTimeoutError):
        return 504
    if isinstance(error, WalletProviderError):
        return 502
    return 402


@router.get("/network")
async def get_network(config: StorefrontConfig = Depends(get_config)) -> Dict[str, Any]:
    """Network parameters for wallet_addEthereumChain and the transfer gas limit."""
    chain = config.chain_spec()
    return {
        "chain": chain.to_add_network_params(),
        "chain_id": chain.chain_id,
        "gas_limit": config.transfer_gas_limit,
        "payer_message": PAYER_MESSAGE_TEMPLATE,
    }


@router.post("/verify", response_model=VerifyCheckoutResponse)
async def verify_checkout(
    request: VerifyCheckoutRequest,
    config: StorefrontConfig = Depends(get_config),
    catalog: ProductCatalog = Depends(get_catalog),
    order_store: OrderStore = Depends(get_order_store),
    reader: WalletProvider = Depends(get_chain_reader),
) -> VerifyCheckoutResponse:
    """Verify a broadcast payment on chain and record the order.

    Also used to reconcile a payment whose order could not be recorded
    at checkout time; a hash that already has an order is refused.

    Raises:
        HTTPException: 422 invalid form, 403 claim not signed by the payer,
            404 unknown product, 409 hash
            already used, 402 payment check failed, 502 chain or data
            service error, 504 no receipt yet
    """
    form = CheckoutForm.from_dict(request.form.model_dump())
    errors = form.validate()
    if errors:
        raise HTTPException(status_code=422, detail={"errors": errors})

    if not is_signed_by_payer(request.payer_address, request.tx_hash, request.product_id, request.signature):
        raise HTTPException(status_code=403, detail="Payment claim is not signed by the paying address")

    try:
        product = await catalog.get_product(request.product_id)
        if product is None:
            raise HTTPException(status_code=404, detail=f"Product {request.product_id} not found")

        existing = await order_store.find_order_by_tx_hash(request.tx_hash)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=f"Data service error: {e}") from e

    if existing is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Transaction {request.tx_hash} already used for order {existing.id}",
        )

    chain = config.chain_spec()
    intent = PaymentIntent(
        product_id=product.id,
        recipient_address=product.wallet_address,
        amount_required=to_decimal(product.price),
        payer_address=request.payer_address,
    )

    try:
        receipt = await wait_for_receipt(
            reader.get_transaction_receipt,
            request.tx_hash,
            interval=config.verify_poll_interval_seconds,
            max_attempts=config.verify_max_attempts,
        )
        if not receipt.succeeded:
            raise TransactionFailedError(tx_hash=request.tx_hash)

        try:
            tx = await reader.get_transaction(request.tx_hash)
        except WalletRequestError as e:
            raise WalletProviderError(f"Fetching transaction details failed: {e.message}") from e
        if tx is None:
            raise WalletProviderError("Transaction not found on blockchain")

        result = verify_transaction(intent, tx, receipt, chain.currency)

    except PaymentError as e:
        if e.tx_hash is None:
            e.tx_hash = request.tx_hash
        logger.warning(f"Checkout verification failed for {request.tx_hash}: {e.message}")
        raise HTTPException(status_code=_status_code_for(e), detail=e.to_dict()) from e

    payload = build_order_payload(product, form, result)
    order_id = None
    warning = None
    try:
        order = await order_store.create_order(payload)
        order_id = order.id
    except Exception as e:
        warning = OrderPersistenceError(
            f"Payment successful but order creation failed: {e}. "
            f"Please contact support with your transaction hash {result.tx_hash}.",
            tx_hash=result.tx_hash,
        ).message
        logger.warning(f"Order creation failed after verified payment {result.tx_hash}: {e}")

    return VerifyCheckoutResponse(
        success=True,
        tx_hash=result.tx_hash,
        amount_confirmed=f"{result.amount_confirmed:f}",
        from_address=result.from_address,
        to_address=result.to_address,
        explorer_url=chain.explorer_tx_url(result.tx_hash),
        order_id=order_id,
        warning=warning,
    )
