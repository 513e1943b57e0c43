"""
Product catalog: read access by id or public unique code, plus listing
creation with a fresh unique code.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.payment.chain import to_decimal
from storefront.store.client import RestClient, StoreError

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
UNIQUE_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
UNIQUE_CODE_LENGTH = 8
MAX_UNIQUE_CODE_ATTEMPTS = 20


@dataclass
class Product:
    id: str
    user_id: str
    name: str
    description: str
    price: Decimal
    wallet_address: str
    unique_code: str
    image: str = ""
    images: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Product":
        image = row.get("image") or ""
        return cls(
            id=row["id"],
            user_id=row.get("user_id", ""),
            name=row.get("name", ""),
            description=row.get("description", ""),
            price=to_decimal(row["price"]),
            wallet_address=row["wallet_address"],
            unique_code=row.get("unique_code", ""),
            image=image,
            # Older rows only have the single image column
            images=row.get("images") or ([image] if image else []),
            features=row.get("features") or [],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Fields a buyer-facing page needs; no seller account details."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": str(self.price),
            "images": list(self.images),
            "features": list(self.features),
            "wallet_address": self.wallet_address,
            "unique_code": self.unique_code,
        }


class ProductCatalog:
    """Product lookups against the products table."""

    def __init__(self, client: RestClient, rng: Optional[random.Random] = None) -> None:
        self.client = client
        self._rng = rng or random.SystemRandom()

    async def get_product(self, product_id: str) -> Optional[Product]:
        row = await self.client.select_one(PRODUCTS_TABLE, {"id": product_id})
        return Product.from_row(row) if row else None

    async def get_product_by_unique_code(self, unique_code: str) -> Optional[Product]:
        row = await self.client.select_one(PRODUCTS_TABLE, {"unique_code": unique_code.strip().upper()})
        return Product.from_row(row) if row else None

    async def generate_unique_code(self, max_attempts: int = MAX_UNIQUE_CODE_ATTEMPTS) -> str:
        """Draw codes until one is not used by any product.

        Raises:
            StoreError: If every attempt collided
        """
        for _ in range(max_attempts):
            code = "".join(self._rng.choice(UNIQUE_CODE_ALPHABET) for _ in range(UNIQUE_CODE_LENGTH))
            if await self.client.select_one(PRODUCTS_TABLE, {"unique_code": code}) is None:
                return code
            logger.debug(f"Unique code {code} already taken, drawing again")
        raise StoreError(f"Could not generate a unique product code in {max_attempts} attempts")

    async def create_product(
        self,
        user_id: str,
        name: str,
        description: str,
        price: Decimal,
        wallet_address: str,
        images: Optional[List[str]] = None,
        features: Optional[List[str]] = None,
    ) -> Product:
        """Create a listing with a fresh unique code."""
        images = images or []
        unique_code = await self.generate_unique_code()
        row = await self.client.insert(
            PRODUCTS_TABLE,
            {
                "user_id": user_id,
                "name": name,
                "description": description,
                "price": str(price),
                "image": images[0] if images else "",
                "images": images,
                "features": features or [],
                "wallet_address": wallet_address,
                "unique_code": unique_code,
            },
        )
        logger.info(f"Created product {row.get('id')} with code {unique_code}")
        return Product.from_row(row)
