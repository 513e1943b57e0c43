"""
Thin async client for the hosted data service (Supabase PostgREST API).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # seconds


class StoreError(Exception):
    """Base exception for data-service failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RestClient:
    """Minimal PostgREST table access: select, insert, update."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not base_url:
            raise StoreError("No data service URL configured")
        self.base_url = f"{base_url.rstrip('/')}/rest/v1"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def _filters(filters: Dict[str, Any]) -> Dict[str, str]:
        return {column: f"eq.{value}" for column, value in filters.items()}

    async def _send(self, method: str, table: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/{table}"
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {table} failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            logger.error(f"{method} {table} returned HTTP {response.status_code}: {detail}")
            raise StoreError(f"{method} {table} failed: {detail}", status_code=response.status_code)

        if not response.content:
            return None
        return response.json()

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {"select": "*", **self._filters(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return await self._send("GET", table, params=params) or []

    async def select_one(self, table: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._send(
            "POST",
            table,
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, filters: Dict[str, Any], values: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._send(
            "PATCH",
            table,
            params=self._filters(filters),
            json=values,
            headers={"Prefer": "return=representation"},
        ) or []

    async def aclose(self) -> None:
        await self._client.aclose()
