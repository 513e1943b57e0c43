from decimal import Decimal

import pytest

from storefront.payment.chain import format_amount, from_base_units, to_base_units

from fakes import CHAIN, ETHER


def test_to_base_units_is_exact():
    assert to_base_units("0.5", 18) == 5 * 10 ** 17
    assert to_base_units(Decimal("1.000000000000000001"), 18) == 10 ** 18 + 1
    # Float prices go through their string form
    assert to_base_units(0.1, 18) == 10 ** 17


def test_to_base_units_rejects_extra_precision():
    with pytest.raises(ValueError):
        to_base_units("0.0000001", 6)


def test_to_base_units_rejects_negative():
    with pytest.raises(ValueError):
        to_base_units("-1", 18)


def test_from_base_units_and_format():
    assert from_base_units(10 ** 17, 18) == Decimal("0.1")
    assert format_amount(25 * 10 ** 16, ETHER) == "0.25 ETH"
    assert format_amount(10 * 10 ** 18, ETHER) == "10 ETH"


def test_add_network_params():
    params = CHAIN.to_add_network_params()
    assert params["chainId"] == "0xa455"
    assert params["chainName"] == "Umi Devnet"
    assert params["nativeCurrency"] == {"name": "Ether", "symbol": "ETH", "decimals": 18}
    assert params["rpcUrls"] == ["https://devnet.uminetwork.com"]
    assert params["blockExplorerUrls"] == ["https://devnet.explorer.moved.network"]


def test_explorer_tx_url():
    assert CHAIN.explorer_tx_url("0xabc") == "https://devnet.explorer.moved.network/tx/0xabc"
