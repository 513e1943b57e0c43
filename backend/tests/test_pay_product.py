import pay_product
from storefront.payment.config import StorefrontConfig
from storefront.payment.models import PaymentState
from storefront.payment.providers import LocalAccountWallet

from fakes import TEST_ADDRESS, TEST_PRIVATE_KEY, FakeOrderStore, make_product


def test_pays_only_from_the_given_key():
    # A configured wallet RPC would outrank the local key if it were discovered
    config = StorefrontConfig(
        _env_file=None,
        wallet_rpc_url="http://127.0.0.1:1248",
        wallet_rpc_name="MetaMask",
        wallet_private_key=None,
    )

    verifier = pay_product.build_verifier(make_product(), config, FakeOrderStore(), TEST_PRIVATE_KEY)

    wallets = verifier.wallet_source()
    assert len(wallets) == 1
    assert isinstance(wallets[0], LocalAccountWallet)
    assert wallets[0].address == TEST_ADDRESS
    assert wallets[0].rpc_url == config.chain_spec().rpc_urls[0]


def test_state_messages_are_printed(capsys):
    pay_product.print_state(PaymentState.FORM, PaymentState.CONFIRMING)

    assert capsys.readouterr().out.startswith("[confirming] ")
