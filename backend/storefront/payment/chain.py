"""
Static chain metadata and exact native-currency unit conversion.

Prices are stored as decimal amounts of the native currency; the chain only
knows integer base units. All amount comparisons go through the helpers here
so that no float ever takes part in a payment check.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Union


@dataclass(frozen=True)
class NativeCurrency:
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class ChainSpec:
    """Target network a wallet must be switched to before paying."""

    chain_id: int
    name: str
    currency: NativeCurrency
    rpc_urls: List[str] = field(default_factory=list)
    explorer_urls: List[str] = field(default_factory=list)

    @property
    def hex_chain_id(self) -> str:
        return hex(self.chain_id)

    def to_add_network_params(self) -> Dict[str, Any]:
        """Parameters for a wallet_addEthereumChain request."""
        return {
            "chainId": self.hex_chain_id,
            "chainName": self.name,
            "nativeCurrency": {
                "name": self.currency.name,
                "symbol": self.currency.symbol,
                "decimals": self.currency.decimals,
            },
            "rpcUrls": list(self.rpc_urls),
            "blockExplorerUrls": list(self.explorer_urls),
        }

    def explorer_tx_url(self, tx_hash: str) -> str:
        """Link to a transaction on the first configured explorer, if any."""
        if not self.explorer_urls:
            return ""
        return f"{self.explorer_urls[0].rstrip('/')}/tx/{tx_hash}"


def to_decimal(amount: Union[Decimal, int, float, str]) -> Decimal:
    """Coerce a stored price to Decimal without binary float artifacts."""
    if isinstance(amount, Decimal):
        return amount
    try:
        # str() first so 0.1 stays 0.1 instead of 0.1000000000000000055...
        return Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e


def to_base_units(amount: Union[Decimal, int, float, str], decimals: int) -> int:
    """Convert a decimal amount to integer base units.

    Raises:
        ValueError: If the amount is negative or has more fractional digits
            than the currency supports.
    """
    value = to_decimal(amount)
    if value < 0:
        raise ValueError(f"Amount cannot be negative: {value}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Amount {value} has more than {decimals} decimal places"
        )
    return int(scaled)


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert integer base units back to a decimal amount."""
    return Decimal(int(value)).scaleb(-decimals).normalize()


def format_amount(value: int, currency: NativeCurrency) -> str:
    """Human-readable amount, e.g. '0.25 ETH'."""
    amount = from_base_units(value, currency.decimals)
    return f"{amount:f} {currency.symbol}"
