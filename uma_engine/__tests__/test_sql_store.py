from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from coincurve import PrivateKey

from uma_engine.exceptions import DuplicateNonceException, InvalidRequestException
from uma_engine.models import CurrencySetting, PaymentRequestRecord
from uma_engine.nonce_ledger import NonceReservation
from uma_engine.sql_store import SqlAlchemyRecordStore


def _store(tmp_path: Path) -> SqlAlchemyRecordStore:
    return SqlAlchemyRecordStore(f"sqlite:///{tmp_path / 'uma_engine.db'}")


def test_tenants_and_users(tmp_path: Path) -> None:
    store = _store(tmp_path)
    identity_key = PrivateKey().public_key.format().hex()
    tenant = store.add_tenant(
        "Example.com",
        currency_settings={
            "USD": CurrencySetting(active=True, min_sendable=1, max_sendable=10_000),
            "BTC": CurrencySetting(active=False, min_sendable=1_000, max_sendable=5_000),
        },
        is_default=True,
    )
    user = store.add_user(
        tenant.id,
        "Alice",
        display_name="Alice Doe",
        settlement_identity_key="0x" + identity_key.upper(),
        addresses={"ethereum": "0xABC", "Spark": identity_key, "polygon": "  "},
    )

    loaded_tenant = store.get_tenant_by_domain("example.com")
    assert loaded_tenant is not None
    assert loaded_tenant.is_default
    assert loaded_tenant.currency_settings["USD"] == CurrencySetting(
        active=True, min_sendable=1, max_sendable=10_000
    )
    assert loaded_tenant.active_currency_codes() == ["USD"]

    loaded_user = store.get_user(tenant.id, "ALICE")
    assert loaded_user == user
    assert loaded_user.settlement_identity_key == identity_key
    assert [address.chain_name for address in store.get_chain_addresses(user.id)] == [
        "ethereum",
        "spark",
    ]
    assert store.get_user(tenant.id, "bob") is None
    assert store.get_tenant_by_domain("unknown.com") is None


def test_duplicates_are_rejected(tmp_path: Path) -> None:
    store = _store(tmp_path)
    tenant = store.add_tenant("example.com")
    store.add_user(tenant.id, "alice")

    with pytest.raises(InvalidRequestException):
        store.add_tenant("example.com")
    with pytest.raises(InvalidRequestException):
        store.add_user(tenant.id, "Alice")
    with pytest.raises(InvalidRequestException):
        store.add_user(tenant.id, "bob", settlement_identity_key="not-a-key")


def test_set_chain_address_updates_in_place(tmp_path: Path) -> None:
    store = _store(tmp_path)
    tenant = store.add_tenant("example.com")
    user = store.add_user(tenant.id, "alice", addresses={"ethereum": "0xOLD"})
    store.set_chain_address(user.id, "base", "0xBASE")

    store.set_chain_address(user.id, "Ethereum", "0xNEW")

    addresses = store.get_formatted_addresses(user.id)
    assert list(addresses) == ["ethereum", "base"]
    assert addresses["ethereum"].address == "0xNEW"


def test_payment_requests(tmp_path: Path) -> None:
    store = _store(tmp_path)
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    record = PaymentRequestRecord(
        nonce="n1",
        user_id="user-1",
        amount=250_000_000_000,
        currency="USD",
        settlement_layer="polygon",
        asset_identifier="USDT_POLYGON",
        payment_request="0xDEF",
        created_at=created_at,
    )
    store.insert_payment_request(record)

    assert store.get_payment_request_by_nonce("n1") == record
    assert store.get_payment_request_by_nonce("n2") is None
    with pytest.raises(DuplicateNonceException):
        store.insert_payment_request(record)


def test_nonce_reservations(tmp_path: Path) -> None:
    store = _store(tmp_path)
    now = datetime.now(timezone.utc)

    assert store.reserve_nonce("n1", now) == NonceReservation.ACCEPTED
    assert store.reserve_nonce("n1", now) == NonceReservation.ALREADY_USED

    # A second store on the same database sees the reservation.
    other_store = SqlAlchemyRecordStore(f"sqlite:///{tmp_path / 'uma_engine.db'}")
    assert other_store.reserve_nonce("n1", now) == NonceReservation.ALREADY_USED


def test_concurrent_nonce_reservations(tmp_path: Path) -> None:
    store = _store(tmp_path)
    now = datetime.now(timezone.utc)

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(
            executor.map(lambda _: store.reserve_nonce("shared", now), range(8))
        )

    assert results.count(NonceReservation.ACCEPTED) == 1


def test_purge_nonces(tmp_path: Path) -> None:
    store = _store(tmp_path)
    now = datetime.now(timezone.utc)
    store.reserve_nonce("old", now - timedelta(days=40))
    store.reserve_nonce("new", now)

    store.purge_nonces_older_than(now - timedelta(days=30))

    assert store.reserve_nonce("old", now) == NonceReservation.ACCEPTED
    assert store.reserve_nonce("new", now) == NonceReservation.ALREADY_USED
