"""
Concrete wallet providers.

This module provides:
- JsonRpcWallet: an EIP-1193 style wallet reached over JSON-RPC (a desktop
  wallet's local RPC endpoint, or a node with unlocked accounts). Without
  accounts it doubles as a read-only chain reader.
- LocalAccountWallet: signs with a local eth_account key and broadcasts
  through web3.py.
- check_rpc_endpoint: quick synchronous chain-id check for health reporting.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import RPCEndpoint

from storefront.payment.chain import ChainSpec
from storefront.payment.models import TransactionReceipt, TransactionRecord
from storefront.payment.wallets import (
    INTERNAL_ERROR_CODE,
    UNRECOGNIZED_CHAIN_CODE,
    WalletProvider,
    WalletRequestError,
    rank_for,
)

logger = logging.getLogger(__name__)

# Health check timeout (shorter for quick failover)
HEALTH_CHECK_TIMEOUT = 3  # seconds


def _to_int(value: Any, default: int = 0) -> int:
    """Parse a JSON-RPC quantity (hex string) or plain int."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith("0x") else int(value)
    return int(value)


def _to_hex_quantity(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, int):
        return value
    return hex(value)


class JsonRpcWallet(WalletProvider):
    """Wallet speaking the standard wallet JSON-RPC methods."""

    def __init__(
        self,
        rpc_url: str,
        name: str = "Web3 Wallet",
        rank: Optional[int] = None,
        transport: Any = None,
    ) -> None:
        """
        Args:
            rpc_url: Wallet (or node) JSON-RPC endpoint
            name: Display name; well-known names rank ahead of others
            rank: Explicit rank overriding the name-based default
            transport: Object with an async make_request(method, params);
                defaults to web3's AsyncHTTPProvider
        """
        self.rpc_url = rpc_url
        self.name = name
        self.rank = rank if rank is not None else rank_for(name)
        self._transport = transport or AsyncHTTPProvider(rpc_url)
        self._accounts: List[str] = []

    async def _request(self, method: str, params: List[Any]) -> Any:
        try:
            response = await self._transport.make_request(RPCEndpoint(method), params)
        except WalletRequestError:
            raise
        except Exception as e:
            raise WalletRequestError(None, f"RPC request {method} failed: {e}") from e

        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise WalletRequestError(error.get("code"), error.get("message", "Unknown wallet error"))
            raise WalletRequestError(None, str(error))
        return response.get("result")

    async def request_accounts(self) -> List[str]:
        accounts = await self._request("eth_requestAccounts", [])
        self._accounts = list(accounts or [])
        return self._accounts

    async def switch_network(self, chain_id: int) -> None:
        await self._request("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])

    async def add_network(self, chain: ChainSpec) -> None:
        await self._request("wallet_addEthereumChain", [chain.to_add_network_params()])

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        params = {key: _to_hex_quantity(value) for key, value in tx.items()}
        if "from" not in params and self._accounts:
            params["from"] = self._accounts[0]
        return await self._request("eth_sendTransaction", [params])

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionRecord]:
        result = await self._request("eth_getTransactionByHash", [tx_hash])
        if not result:
            return None
        return TransactionRecord(
            hash=result.get("hash", tx_hash),
            from_address=result.get("from", ""),
            to_address=result.get("to"),
            value=_to_int(result.get("value")),
            confirmation_status=await self._confirmation_status(tx_hash, result.get("blockNumber")),
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        result = await self._request("eth_getTransactionReceipt", [tx_hash])
        if not result:
            return None
        return TransactionReceipt(
            tx_hash=result.get("transactionHash", tx_hash),
            status=_to_int(result.get("status")),
            block_number=_to_int(result.get("blockNumber"), default=None),
        )


class LocalAccountWallet(WalletProvider):
    """Wallet backed by a local private key and a chain RPC endpoint."""

    def __init__(
        self,
        private_key: str,
        rpc_url: str,
        name: str = "Local Account",
        rank: Optional[int] = None,
        web3: Optional[AsyncWeb3] = None,
    ) -> None:
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._account = Account.from_key(private_key)
        self.address = self._account.address
        self.rpc_url = rpc_url
        self.name = name
        self.rank = rank if rank is not None else rank_for(name)
        self._known_networks: Dict[int, ChainSpec] = {}
        self.web3 = web3 or self._connect(rpc_url)

    @staticmethod
    def _connect(rpc_url: str) -> AsyncWeb3:
        # No I/O here; the first awaited call opens the connection
        w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return w3

    async def _chain_id(self) -> int:
        try:
            return int(await self.web3.eth.chain_id)
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to read chain id: {e}") from e

    async def request_accounts(self) -> List[str]:
        return [self.address]

    async def switch_network(self, chain_id: int) -> None:
        if await self._chain_id() == chain_id:
            return

        known = self._known_networks.get(chain_id)
        if known is None:
            raise WalletRequestError(UNRECOGNIZED_CHAIN_CODE, f"Unrecognized chain ID {hex(chain_id)}")

        self.web3 = self._connect(known.rpc_urls[0])
        if await self._chain_id() != chain_id:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"RPC for chain {chain_id} reports a different chain")

    async def add_network(self, chain: ChainSpec) -> None:
        if not chain.rpc_urls:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"No RPC URL given for chain {chain.name}")

        self._known_networks[chain.chain_id] = chain
        self.rpc_url = chain.rpc_urls[0]
        self.web3 = self._connect(self.rpc_url)

        chain_id = await self._chain_id()
        if chain_id != chain.chain_id:
            raise WalletRequestError(
                INTERNAL_ERROR_CODE,
                f"RPC {self.rpc_url} returned wrong chain_id={chain_id}, expected {chain.chain_id}",
            )
        logger.info(f"Local wallet switched to {chain.name} via {self.rpc_url}")

    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        try:
            to_address = Web3.to_checksum_address(tx["to"])
            value = int(tx["value"])
            gas = int(tx.get("gas", 21000))
        except (KeyError, TypeError, ValueError) as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Invalid transaction: {e}") from e

        try:
            nonce = await self.web3.eth.get_transaction_count(self.address, "pending")
            gas_price = await self.web3.eth.gas_price
            chain_id = await self.web3.eth.chain_id
            balance = await self.web3.eth.get_balance(self.address)
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to prepare transaction: {e}") from e

        if balance < value + gas * gas_price:
            raise WalletRequestError(
                INTERNAL_ERROR_CODE,
                f"insufficient funds for gas * price + value: balance {balance}",
            )

        try:
            signed = self._account.sign_transaction(
                {
                    "to": to_address,
                    "value": value,
                    "gas": gas,
                    "gasPrice": gas_price,
                    "nonce": nonce,
                    "chainId": chain_id,
                }
            )
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to sign transaction: {e}") from e

        try:
            tx_hash = await self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to broadcast transaction: {e}") from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction submitted: {tx_hash_hex}")
        return tx_hash_hex

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionRecord]:
        try:
            tx = await self.web3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to fetch transaction: {e}") from e

        return TransactionRecord(
            hash=Web3.to_hex(tx["hash"]),
            from_address=tx["from"],
            to_address=tx.get("to"),
            value=int(tx["value"]),
            confirmation_status=await self._confirmation_status(tx_hash, tx.get("blockNumber")),
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        try:
            receipt = await self.web3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as e:
            raise WalletRequestError(INTERNAL_ERROR_CODE, f"Failed to fetch receipt: {e}") from e

        return TransactionReceipt(
            tx_hash=tx_hash,
            status=int(receipt["status"]),
            block_number=receipt.get("blockNumber"),
        )


def check_rpc_endpoint(url: str, expected_chain_id: int, timeout: int = HEALTH_CHECK_TIMEOUT) -> Dict[str, Any]:
    """
    Perform a quick health check on an RPC endpoint.

    Returns:
        Dict with healthy flag, the reported chain id and the last error
    """
    try:
        payload = {"jsonrpc": "2.0", "id": 1, "method": "eth_chainId", "params": []}
        response = requests.post(url, json=payload, timeout=timeout)

        if response.status_code != 200:
            return {"healthy": False, "chain_id": None, "error": f"HTTP {response.status_code}"}

        data = response.json()
        if "result" not in data:
            return {"healthy": False, "chain_id": None, "error": str(data.get("error", "No result"))}

        chain_id = int(data["result"], 16)
        if chain_id != expected_chain_id:
            logger.warning(f"RPC {url} returned wrong chain_id: {chain_id} (expected {expected_chain_id})")
            return {"healthy": False, "chain_id": chain_id, "error": "Wrong chain id"}

        return {"healthy": True, "chain_id": chain_id, "error": None}

    except requests.exceptions.Timeout:
        logger.warning(f"RPC {url} health check timed out")
        return {"healthy": False, "chain_id": None, "error": "Timeout"}

    except Exception as e:
        logger.warning(f"RPC {url} health check failed: {e}")
        return {"healthy": False, "chain_id": None, "error": str(e)}
