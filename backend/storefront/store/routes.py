"""
Product API Routes.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from storefront.deps import get_catalog
from storefront.store.catalog import ProductCatalog
from storefront.store.client import StoreError

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/{unique_code}")
async def get_product(unique_code: str, catalog: ProductCatalog = Depends(get_catalog)) -> Dict[str, Any]:
    """Public view of a product by its shareable code.

    Raises:
        HTTPException: 404 if no product has the code, 502 on data service errors
    """
    try:
        product = await catalog.get_product_by_unique_code(unique_code)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=f"Data service error: {e}") from e

    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {unique_code} not found")
    return product.to_public_dict()
