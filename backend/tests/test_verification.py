from dataclasses import replace
from decimal import Decimal

import pytest

from storefront.payment.errors import (
    AmountInsufficientError,
    FailureKind,
    ReceiverMismatchError,
    SenderMismatchError,
    StatusMismatchError,
)
from storefront.payment.models import PaymentIntent, TransactionReceipt, TransactionRecord
from eth_account import Account

from storefront.payment.verification import is_signed_by_payer, verify_transaction

from fakes import ETHER, PAYER, SELLER, STRANGER, TEST_ADDRESS, TX_HASH, sign_claim

PRICE_WEI = 5 * 10 ** 17


def make_intent():
    return PaymentIntent(
        product_id="prod-1",
        recipient_address=SELLER,
        amount_required=Decimal("0.5"),
        payer_address=PAYER,
    )


def make_tx(**overrides):
    values = dict(hash=TX_HASH, from_address=PAYER, to_address=SELLER, value=PRICE_WEI)
    values.update(overrides)
    return TransactionRecord(**values)


def ok_receipt(status=1):
    return TransactionReceipt(tx_hash=TX_HASH, status=status, block_number=1)


def test_exact_amount_passes():
    result = verify_transaction(make_intent(), make_tx(), ok_receipt(), ETHER)
    assert result.success
    assert result.tx_hash == TX_HASH
    assert result.amount_confirmed == Decimal("0.5")
    assert result.amount_confirmed_base_units == PRICE_WEI
    assert result.from_address == PAYER
    assert result.to_address == SELLER


def test_overpayment_passes():
    result = verify_transaction(make_intent(), make_tx(value=PRICE_WEI + 1), ok_receipt(), ETHER)
    assert result.amount_confirmed_base_units == PRICE_WEI + 1


def test_addresses_compare_case_insensitively():
    intent = replace(make_intent(), recipient_address="0xABCDEF0000000000000000000000000000000001")
    tx = make_tx(to_address="0xabcdef0000000000000000000000000000000001")
    assert verify_transaction(intent, tx, ok_receipt(), ETHER).success


def test_failed_status():
    with pytest.raises(StatusMismatchError) as exc:
        verify_transaction(make_intent(), make_tx(), ok_receipt(status=0), ETHER)
    assert exc.value.kind == FailureKind.STATUS_MISMATCH
    assert exc.value.tx_hash == TX_HASH


def test_failed_confirmation_status_on_transaction():
    # A receipt that reads as successful does not override the status the
    # transaction lookup itself reported
    with pytest.raises(StatusMismatchError):
        verify_transaction(make_intent(), make_tx(confirmation_status=0), ok_receipt(), ETHER)

    assert verify_transaction(make_intent(), make_tx(confirmation_status=1), ok_receipt(), ETHER).success


def test_wrong_sender():
    with pytest.raises(SenderMismatchError):
        verify_transaction(make_intent(), make_tx(from_address=STRANGER), ok_receipt(), ETHER)


def test_wrong_receiver():
    with pytest.raises(ReceiverMismatchError):
        verify_transaction(make_intent(), make_tx(to_address=STRANGER), ok_receipt(), ETHER)


def test_missing_receiver():
    with pytest.raises(ReceiverMismatchError):
        verify_transaction(make_intent(), make_tx(to_address=None), ok_receipt(), ETHER)


def test_one_base_unit_short():
    with pytest.raises(AmountInsufficientError) as exc:
        verify_transaction(make_intent(), make_tx(value=PRICE_WEI - 1), ok_receipt(), ETHER)
    assert exc.value.expected == PRICE_WEI
    assert exc.value.actual == PRICE_WEI - 1
    assert "Expected: 0.5 ETH" in exc.value.message


def test_checks_run_in_order():
    # Everything is wrong; the status check reports first
    tx = make_tx(from_address=STRANGER, to_address=STRANGER, value=0)
    with pytest.raises(StatusMismatchError):
        verify_transaction(make_intent(), tx, ok_receipt(status=0), ETHER)

    with pytest.raises(SenderMismatchError):
        verify_transaction(make_intent(), tx, ok_receipt(), ETHER)


def test_payer_signature():
    signature = sign_claim(TX_HASH, "prod-1")

    assert is_signed_by_payer(TEST_ADDRESS, TX_HASH, "prod-1", signature)
    assert is_signed_by_payer(TEST_ADDRESS.lower(), TX_HASH, "prod-1", signature)
    assert not is_signed_by_payer(TEST_ADDRESS, TX_HASH, "prod-2", signature)
    assert not is_signed_by_payer(PAYER, TX_HASH, "prod-1", signature)


def test_payer_signature_from_another_key():
    signature = sign_claim(TX_HASH, "prod-1", private_key=Account.create().key)
    assert not is_signed_by_payer(TEST_ADDRESS, TX_HASH, "prod-1", signature)


def test_unreadable_payer_signature():
    assert not is_signed_by_payer(TEST_ADDRESS, TX_HASH, "prod-1", "0x1234")
    assert not is_signed_by_payer(TEST_ADDRESS, TX_HASH, "prod-1", "not a signature")
