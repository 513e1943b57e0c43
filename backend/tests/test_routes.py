import pytest
from fastapi.testclient import TestClient

from storefront import main
from storefront.deps import get_catalog, get_chain_reader, get_config, get_order_store
from storefront.payment.config import StorefrontConfig
from storefront.payment.models import TransactionRecord
from storefront.store.client import StoreError

from eth_account import Account

from fakes import (
    SELLER,
    STRANGER,
    TEST_ADDRESS,
    TX_HASH,
    FakeOrderStore,
    FakeWallet,
    make_product,
    sign_claim,
    valid_form,
)

PRICE_WEI = 5 * 10 ** 17


class FakeCatalog:
    def __init__(self, products):
        self.products = {product.id: product for product in products}

    async def get_product(self, product_id):
        return self.products.get(product_id)

    async def get_product_by_unique_code(self, unique_code):
        for product in self.products.values():
            if product.unique_code == unique_code.strip().upper():
                return product
        return None


class Harness:
    def __init__(self):
        self.config = StorefrontConfig(
            chain_id=42069,
            chain_explorer_url="https://devnet.explorer.moved.network",
            verify_poll_interval_seconds=0,
            verify_max_attempts=3,
        )
        self.catalog = FakeCatalog([make_product()])
        self.store = FakeOrderStore()
        self.reader = FakeWallet(name="Chain RPC")
        self.reader.tx = TransactionRecord(hash=TX_HASH, from_address=TEST_ADDRESS, to_address=SELLER, value=PRICE_WEI)

        app = main.create_app()
        app.dependency_overrides[get_config] = lambda: self.config
        app.dependency_overrides[get_catalog] = lambda: self.catalog
        app.dependency_overrides[get_order_store] = lambda: self.store
        app.dependency_overrides[get_chain_reader] = lambda: self.reader
        self.client = TestClient(app)


@pytest.fixture
def harness():
    return Harness()


def verify_body(**overrides):
    form = valid_form()
    body = {
        "product_id": "prod-1",
        "tx_hash": TX_HASH,
        "payer_address": TEST_ADDRESS,
        "form": {name: getattr(form, name) for name in form.__dataclass_fields__},
    }
    body.update(overrides)
    body.setdefault("signature", sign_claim(body["tx_hash"], body["product_id"]))
    return body


def test_network_parameters(harness):
    response = harness.client.get("/checkout/network")

    assert response.status_code == 200
    data = response.json()
    assert data["chain"]["chainId"] == "0xa455"
    assert data["chain_id"] == 42069
    assert data["gas_limit"] == 21000
    assert data["payer_message"] == "Confirm payment {tx_hash} for product {product_id}"


def test_verify_records_order(harness):
    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["tx_hash"] == TX_HASH
    assert data["amount_confirmed"] == "0.5"
    assert data["order_id"] == "order-1"
    assert data["warning"] is None
    assert data["explorer_url"] == f"https://devnet.explorer.moved.network/tx/{TX_HASH}"
    assert harness.store.orders[0].payer_address == TEST_ADDRESS


def test_verify_refuses_used_hash(harness):
    assert harness.client.post("/checkout/verify", json=verify_body()).status_code == 200

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 409
    assert len(harness.store.orders) == 1


def test_verify_invalid_form(harness):
    body = verify_body()
    body["form"]["customer_email"] = "nope"

    response = harness.client.post("/checkout/verify", json=body)

    assert response.status_code == 422
    assert "customer_email" in response.json()["detail"]["errors"]
    assert harness.reader.calls == []


def test_verify_unknown_product(harness):
    response = harness.client.post("/checkout/verify", json=verify_body(product_id="missing"))
    assert response.status_code == 404


def test_verify_short_payment(harness):
    harness.reader.tx = TransactionRecord(hash=TX_HASH, from_address=TEST_ADDRESS, to_address=SELLER, value=PRICE_WEI - 1)

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 402
    detail = response.json()["detail"]
    assert detail["kind"] == "amount_insufficient"
    assert detail["tx_hash"] == TX_HASH
    assert harness.store.orders == []


def test_verify_wrong_payer(harness):
    harness.reader.tx = TransactionRecord(hash=TX_HASH, from_address=STRANGER, to_address=SELLER, value=PRICE_WEI)

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 402
    assert response.json()["detail"]["kind"] == "sender_mismatch"
    assert harness.store.orders == []


def test_verify_rejects_claim_signed_by_someone_else(harness):
    # Anyone can read a confirmed transfer's sender off the chain
    other = Account.create()
    body = verify_body(signature=sign_claim(TX_HASH, "prod-1", private_key=other.key))

    response = harness.client.post("/checkout/verify", json=body)

    assert response.status_code == 403
    assert harness.reader.calls == []
    assert harness.store.orders == []


def test_verify_rejects_signature_for_another_hash(harness):
    body = verify_body(signature=sign_claim("0x" + "cd" * 32, "prod-1"))

    response = harness.client.post("/checkout/verify", json=body)

    assert response.status_code == 403
    assert harness.store.orders == []


def test_verify_rejects_unparseable_signature(harness):
    response = harness.client.post("/checkout/verify", json=verify_body(signature="0x1234"))

    assert response.status_code == 403


def test_verify_pending_transaction(harness):
    harness.reader.pending_polls = 1000

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 504
    assert response.json()["detail"]["kind"] == "confirmation_timeout"
    assert harness.reader.receipt_polls == 3


def test_verify_missing_transaction(harness):
    async def not_found(tx_hash):
        return None

    harness.reader.get_transaction = not_found

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 502
    assert response.json()["detail"]["kind"] == "provider_error"


def test_verify_order_failure_is_warning(harness):
    harness.store.fail = StoreError("insert failed")

    response = harness.client.post("/checkout/verify", json=verify_body())

    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] is None
    assert TX_HASH in data["warning"]


def test_get_product(harness):
    response = harness.client.get("/products/ab12cd34")

    assert response.status_code == 200
    assert response.json()["wallet_address"] == SELLER
    assert "user_id" not in response.json()

    assert harness.client.get("/products/ZZZZZZZZ").status_code == 404


def test_health(harness, monkeypatch):
    monkeypatch.setattr(main, "get_config", lambda: harness.config)
    monkeypatch.setattr(
        main,
        "check_rpc_endpoint",
        lambda url, chain_id: {"healthy": True, "chain_id": chain_id, "error": None},
    )

    response = harness.client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["chain"]["healthy"] is True
    assert data["chain"]["chain_id"] == 42069
