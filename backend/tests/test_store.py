import asyncio
import json
import random
from decimal import Decimal

import httpx
import pytest

from storefront.payment.verifier import build_order_payload
from storefront.payment.models import VerificationResult
from storefront.store.catalog import ProductCatalog
from storefront.store.client import RestClient, StoreError
from storefront.store.orders import OrderStatus, PaymentStatus, SupabaseOrderStore

from fakes import PAYER, SELLER, TX_HASH, make_product, valid_form

PRODUCT_ROW = {
    "id": "prod-1",
    "user_id": "seller-1",
    "name": "Tea Set",
    "description": "Hand-made porcelain",
    "price": 0.1,
    "wallet_address": SELLER,
    "unique_code": "AB12CD34",
    "image": "https://cdn.example.com/tea.png",
    "images": None,
    "features": ["Dishwasher safe"],
}


class Recorder:
    """MockTransport handler that records requests and replies via a callable."""

    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.reply(request)


def make_client(reply):
    recorder = Recorder(reply)
    client = RestClient(
        "https://project.supabase.co/",
        "anon-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
    )
    return client, recorder


def test_get_product_by_unique_code():
    client, recorder = make_client(lambda request: httpx.Response(200, json=[PRODUCT_ROW]))

    product = asyncio.run(ProductCatalog(client).get_product_by_unique_code(" ab12cd34 "))

    request = recorder.requests[0]
    assert request.url.path == "/rest/v1/products"
    assert request.url.params["unique_code"] == "eq.AB12CD34"
    assert request.url.params["limit"] == "1"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer anon-key"

    assert product.price == Decimal("0.1")
    # Single image column fills the image list
    assert product.images == ["https://cdn.example.com/tea.png"]
    assert product.to_public_dict()["price"] == "0.1"


def test_unknown_product_is_none():
    client, _ = make_client(lambda request: httpx.Response(200, json=[]))
    assert asyncio.run(ProductCatalog(client).get_product("missing")) is None


def test_http_error_becomes_store_error():
    client, _ = make_client(lambda request: httpx.Response(401, json={"message": "Invalid API key"}))

    with pytest.raises(StoreError) as exc:
        asyncio.run(ProductCatalog(client).get_product("prod-1"))

    assert exc.value.status_code == 401
    assert "Invalid API key" in str(exc.value)


def test_unique_code_retries_on_collision():
    replies = iter([[PRODUCT_ROW], []])
    client, recorder = make_client(lambda request: httpx.Response(200, json=next(replies)))

    code = asyncio.run(ProductCatalog(client, rng=random.Random(7)).generate_unique_code())

    assert len(recorder.requests) == 2
    assert len(code) == 8
    assert code.isalnum() and code.upper() == code
    assert recorder.requests[1].url.params["unique_code"] == f"eq.{code}"


def test_unique_code_gives_up():
    client, _ = make_client(lambda request: httpx.Response(200, json=[PRODUCT_ROW]))

    with pytest.raises(StoreError):
        asyncio.run(ProductCatalog(client).generate_unique_code(max_attempts=3))


def test_create_product_stores_generated_code():
    def reply(request):
        if request.method == "GET":
            return httpx.Response(200, json=[])
        row = json.loads(request.content)
        return httpx.Response(201, json=[{**row, "id": "prod-2"}])

    client, recorder = make_client(reply)

    product = asyncio.run(ProductCatalog(client).create_product(
        user_id="seller-1",
        name="Mug",
        description="Stoneware",
        price=Decimal("0.25"),
        wallet_address=SELLER,
        images=["https://cdn.example.com/mug.png"],
    ))

    insert = json.loads(recorder.requests[-1].content)
    assert insert["price"] == "0.25"
    assert insert["image"] == "https://cdn.example.com/mug.png"
    assert product.id == "prod-2"
    assert product.unique_code == insert["unique_code"]


def verified_result():
    return VerificationResult(
        success=True,
        tx_hash=TX_HASH,
        amount_confirmed=Decimal("0.5"),
        amount_confirmed_base_units=5 * 10 ** 17,
        from_address=PAYER,
        to_address=SELLER,
    )


def test_create_order_row():
    def reply(request):
        row = json.loads(request.content)
        return httpx.Response(201, json=[{**row, "id": "order-1", "created_at": "2024-01-01T00:00:00Z"}])

    client, recorder = make_client(reply)
    payload = build_order_payload(make_product(), valid_form(), verified_result())

    order = asyncio.run(SupabaseOrderStore(client).create_order(payload))

    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.headers["prefer"] == "return=representation"
    row = json.loads(request.content)
    assert row["tx_hash"] == TX_HASH
    assert row["product_price"] == "0.5"
    assert row["status"] == "paid"
    assert row["payment_status"] == "completed"
    assert row["shipping_address"]["zipCode"] == "N1 9GU"

    assert order.id == "order-1"
    assert order.status == OrderStatus.PAID
    assert order.payment_status == PaymentStatus.COMPLETED


def test_create_order_requires_contact_fields():
    client, recorder = make_client(lambda request: httpx.Response(201, json=[]))
    payload = build_order_payload(make_product(), valid_form(customer_email=""), verified_result())

    with pytest.raises(StoreError):
        asyncio.run(SupabaseOrderStore(client).create_order(payload))
    assert recorder.requests == []


def test_update_missing_order():
    client, _ = make_client(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(StoreError) as exc:
        asyncio.run(SupabaseOrderStore(client).update_order_status("nope", OrderStatus.SHIPPED))
    assert exc.value.status_code == 404


def test_get_order():
    order_row = {
        "id": "order-1",
        "product_id": "prod-1",
        "product_name": "Tea Set",
        "product_price": 0.5,
        "wallet_address": SELLER,
        "payer_address": PAYER,
        "tx_hash": TX_HASH,
        "payment_status": "completed",
        "status": "shipped",
    }
    client, recorder = make_client(lambda request: httpx.Response(200, json=[order_row]))

    order = asyncio.run(SupabaseOrderStore(client).get_order("order-1"))

    request = recorder.requests[0]
    assert request.url.path == "/rest/v1/orders"
    assert request.url.params["id"] == "eq.order-1"
    assert order.product_price == Decimal("0.5")
    assert order.status == OrderStatus.SHIPPED
    assert order.payer_address == PAYER


def test_get_missing_order_is_none():
    client, _ = make_client(lambda request: httpx.Response(200, json=[]))
    assert asyncio.run(SupabaseOrderStore(client).get_order("nope")) is None
