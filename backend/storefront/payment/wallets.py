"""
Wallet provider capability interface and discovery.

A wallet provider is anything able to sign and broadcast transactions for a
user-controlled address. Providers are passed in explicitly; discovery only
collects and ranks them and never talks to a network.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

from storefront.payment.chain import ChainSpec
from storefront.payment.models import TransactionReceipt, TransactionRecord

if TYPE_CHECKING:
    from storefront.payment.config import StorefrontConfig

logger = logging.getLogger(__name__)

# EIP-1193 / EIP-1474 error codes
USER_REJECTED_CODE = 4001
UNAUTHORIZED_CODE = 4100
UNRECOGNIZED_CHAIN_CODE = 4902
INTERNAL_ERROR_CODE = -32603

PRIMARY_WALLET_NAME = "MetaMask"

# Lower rank wins when more than one wallet is available
WELL_KNOWN_WALLET_RANKS: Dict[str, int] = {
    PRIMARY_WALLET_NAME: 0,
    "Coinbase Wallet": 10,
    "Trust Wallet": 20,
    "OKX Wallet": 30,
    "Phantom": 40,
}
DEFAULT_WALLET_RANK = 100


class WalletRequestError(Exception):
    """A wallet refused or failed a request."""

    def __init__(self, code: Optional[int], message: str):
        super().__init__(f"{message} (code {code})" if code is not None else message)
        self.code = code
        self.message = message

    @property
    def is_user_rejection(self) -> bool:
        return self.code in (USER_REJECTED_CODE, UNAUTHORIZED_CODE)

    @property
    def is_unrecognized_chain(self) -> bool:
        return self.code == UNRECOGNIZED_CHAIN_CODE or "unrecognized chain" in self.message.lower()

    @property
    def is_insufficient_funds(self) -> bool:
        return "insufficient funds" in self.message.lower()


def rank_for(name: str) -> int:
    return WELL_KNOWN_WALLET_RANKS.get(name, DEFAULT_WALLET_RANK)


class WalletProvider(ABC):
    """Capabilities the checkout needs from a wallet."""

    name: str = "Web3 Wallet"
    rank: int = DEFAULT_WALLET_RANK

    @abstractmethod
    async def request_accounts(self) -> List[str]:
        """Ask the wallet for access to its accounts."""

    @abstractmethod
    async def switch_network(self, chain_id: int) -> None:
        """Switch to an already known network.

        Raises WalletRequestError with code 4902 if the wallet does not know
        the chain.
        """

    @abstractmethod
    async def add_network(self, chain: ChainSpec) -> None:
        """Register (and switch to) a network the wallet does not know."""

    @abstractmethod
    async def send_transaction(self, tx: Dict[str, Any]) -> str:
        """Sign and broadcast; returns the transaction hash."""

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> Optional[TransactionRecord]:
        ...

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """Receipt of a mined transaction, or None while it is pending."""

    async def _confirmation_status(self, tx_hash: str, block_number: Any) -> Optional[int]:
        """Receipt status of a mined transaction; None while it is pending."""
        if block_number is None:
            return None
        receipt = await self.get_transaction_receipt(tx_hash)
        return receipt.status if receipt is not None else None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} rank={self.rank}>"


def rank_wallets(wallets: Iterable[WalletProvider]) -> List[WalletProvider]:
    """Order wallets by rank, keeping discovery order for ties."""
    return sorted(wallets, key=lambda wallet: wallet.rank)


def select_wallet(wallets: Sequence[WalletProvider]) -> WalletProvider:
    """Pick the wallet to pay with.

    The primary well-known wallet wins when several are available; otherwise
    the best ranked one, which is the first discovered when ranks tie.
    """
    if not wallets:
        raise ValueError("No wallet providers to select from")
    return rank_wallets(wallets)[0]


def discover_wallets(
    config: Optional["StorefrontConfig"] = None,
    injected: Iterable[WalletProvider] = (),
) -> List[WalletProvider]:
    """Collect available wallets, best ranked first.

    Args:
        config: Settings with optional wallet_rpc_url / wallet_private_key
        injected: Providers supplied directly by the caller

    Returns:
        Ranked list of providers, possibly empty
    """
    wallets: List[WalletProvider] = list(injected)

    if config is not None:
        # Imported here so the interface module does not pull in web3
        from storefront.payment.providers import JsonRpcWallet, LocalAccountWallet

        if config.wallet_rpc_url:
            wallets.append(
                JsonRpcWallet(config.wallet_rpc_url, name=config.wallet_rpc_name)
            )
        if config.wallet_private_key:
            wallets.append(
                LocalAccountWallet(
                    config.wallet_private_key,
                    rpc_url=config.chain_spec().rpc_urls[0],
                )
            )

    ranked = rank_wallets(wallets)
    logger.info(f"Discovered wallets: {[wallet.name for wallet in ranked]}")
    return ranked
