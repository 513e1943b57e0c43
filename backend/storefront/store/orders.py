"""
Order persistence.

OrderStore is the interface the checkout records verified payments through;
SupabaseOrderStore implements it on the orders table of the data service.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from storefront.payment.chain import to_decimal
from storefront.store.client import RestClient, StoreError

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class OrderPayload:
    """Order creation request built after a verified payment."""
    product_id: str
    product_name: str
    product_price: Decimal
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: Dict[str, str]
    wallet_address: str  # Seller's receiving wallet
    payer_address: str
    tx_hash: str
    notes: str = ""
    payment_status: PaymentStatus = PaymentStatus.PENDING
    status: OrderStatus = OrderStatus.PENDING

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["product_price"] = str(self.product_price)
        row["payment_status"] = self.payment_status.value
        row["status"] = self.status.value
        return row


@dataclass
class Order(OrderPayload):
    id: str = ""
    order_date: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        return cls(
            id=row["id"],
            product_id=row["product_id"],
            product_name=row.get("product_name", ""),
            product_price=to_decimal(row.get("product_price", 0)),
            customer_name=row.get("customer_name", ""),
            customer_email=row.get("customer_email", ""),
            customer_phone=row.get("customer_phone", ""),
            shipping_address=row.get("shipping_address") or {},
            wallet_address=row.get("wallet_address", ""),
            payer_address=row.get("payer_address") or "",
            tx_hash=row.get("tx_hash") or "",
            notes=row.get("notes") or "",
            payment_status=PaymentStatus(row.get("payment_status", PaymentStatus.PENDING.value)),
            status=OrderStatus(row.get("status", OrderStatus.PENDING.value)),
            order_date=row.get("order_date"),
            created_at=row.get("created_at"),
        )


class OrderStore(ABC):
    """Where verified orders are recorded."""

    @abstractmethod
    async def create_order(self, payload: OrderPayload) -> Order:
        ...

    @abstractmethod
    async def find_order_by_tx_hash(self, tx_hash: str) -> Optional[Order]:
        ...


class SupabaseOrderStore(OrderStore):
    """Orders table on the hosted data service."""

    def __init__(self, client: RestClient) -> None:
        self.client = client

    async def create_order(self, payload: OrderPayload) -> Order:
        if not payload.product_id or not payload.customer_email or not payload.customer_name:
            raise StoreError("Missing required order fields")

        row = await self.client.insert(ORDERS_TABLE, payload.to_row())
        logger.info(f"Order {row.get('id')} created for product {payload.product_id} (tx {payload.tx_hash})")
        return Order.from_row(row)

    async def get_order(self, order_id: str) -> Optional[Order]:
        row = await self.client.select_one(ORDERS_TABLE, {"id": order_id})
        return Order.from_row(row) if row else None

    async def find_order_by_tx_hash(self, tx_hash: str) -> Optional[Order]:
        row = await self.client.select_one(ORDERS_TABLE, {"tx_hash": tx_hash})
        return Order.from_row(row) if row else None

    async def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        payment_status: Optional[PaymentStatus] = None,
    ) -> Order:
        values = {"status": status.value}
        if payment_status is not None:
            values["payment_status"] = payment_status.value

        rows = await self.client.update(ORDERS_TABLE, {"id": order_id}, values)
        if not rows:
            raise StoreError(f"Order {order_id} not found", status_code=404)
        return Order.from_row(rows[0])
