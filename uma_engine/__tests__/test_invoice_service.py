import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Tuple

import pytest
from coincurve import PrivateKey

from uma_engine.exceptions import UpstreamInvoiceFailureException
from uma_engine.invoice_service import IInvoiceIssuer, SharedInvoiceService
from uma_engine.local_invoice import (
    LocalInvoice,
    LocalInvoiceIssuer,
    decode_local_invoice,
)


class CountingInvoiceIssuer(IInvoiceIssuer):
    def __init__(self, failures: int = 0) -> None:
        self.initialize_calls = 0
        self.failures = failures
        self.invoices: List[Tuple[int, str, Optional[str]]] = []
        self._lock = threading.Lock()

    def initialize(self, seed: str) -> Any:
        with self._lock:
            self.initialize_calls += 1
            call_number = self.initialize_calls
        # Slow enough for concurrent callers to pile up behind the first one.
        time.sleep(0.05)
        if call_number <= self.failures:
            raise ConnectionError("issuer unavailable")
        return {"seed": seed}

    def create_invoice(
        self,
        handle: Any,
        amount_msats: int,
        memo: str,
        receiver_identity: Optional[str],
    ) -> str:
        self.invoices.append((amount_msats, memo, receiver_identity))
        return f"lnbc{amount_msats}"


def test_handle_is_initialized_once() -> None:
    issuer = CountingInvoiceIssuer()
    service = SharedInvoiceService(issuer, "seed")

    with ThreadPoolExecutor(max_workers=8) as executor:
        handles = list(executor.map(lambda _: service.get_handle(), range(8)))

    assert issuer.initialize_calls == 1
    assert all(handle is handles[0] for handle in handles)
    assert service.is_initialized


def test_failed_initialization_is_retried() -> None:
    issuer = CountingInvoiceIssuer(failures=1)
    service = SharedInvoiceService(issuer, "seed")

    with pytest.raises(UpstreamInvoiceFailureException):
        service.get_handle()
    assert not service.is_initialized

    assert service.get_handle() == {"seed": "seed"}
    assert issuer.initialize_calls == 2


def test_failed_initialization_is_reported_to_all_waiters() -> None:
    issuer = CountingInvoiceIssuer(failures=1)
    service = SharedInvoiceService(issuer, "seed")
    callers = 6
    barrier = threading.Barrier(callers)

    def get_handle() -> Any:
        barrier.wait()
        try:
            return service.get_handle()
        except UpstreamInvoiceFailureException as ex:
            return ex

    with ThreadPoolExecutor(max_workers=callers) as executor:
        results = list(executor.map(lambda _: get_handle(), range(callers)))

    assert issuer.initialize_calls == 1
    assert all(isinstance(result, UpstreamInvoiceFailureException) for result in results)
    assert not service.is_initialized

    assert service.get_handle() == {"seed": "seed"}
    assert issuer.initialize_calls == 2


def test_missing_seed() -> None:
    issuer = CountingInvoiceIssuer()
    service = SharedInvoiceService(issuer, None)

    with pytest.raises(UpstreamInvoiceFailureException):
        service.create_invoice(1000, "memo", None)
    assert issuer.initialize_calls == 0


def test_create_invoice_failure_is_wrapped() -> None:
    class BrokenIssuer(CountingInvoiceIssuer):
        def create_invoice(self, handle, amount_msats, memo, receiver_identity):
            raise RuntimeError("boom")

    service = SharedInvoiceService(BrokenIssuer(), "seed")
    with pytest.raises(UpstreamInvoiceFailureException):
        service.create_invoice(1000, "memo", None)


def test_local_invoice_round_trip() -> None:
    issuer = LocalInvoiceIssuer()
    handle = issuer.initialize("correct horse battery staple")
    receiver_key = PrivateKey().public_key.format()

    encoded = issuer.create_invoice(
        handle, 10_000, "Payment to alice", "0x" + receiver_key.hex()
    )
    assert encoded.startswith("lnuma1")

    invoice = decode_local_invoice(encoded, handle.node_pubkey)
    assert invoice.amount_msats == 10_000
    assert invoice.memo == "Payment to alice"
    assert invoice.receiver_identity == receiver_key
    assert len(invoice.payment_hash) == 32
    assert invoice.issuer_pubkey == handle.node_pubkey
    assert invoice.timestamp > 0


def test_local_invoices_are_unique() -> None:
    issuer = LocalInvoiceIssuer()
    handle = issuer.initialize("seed")

    first = issuer.create_invoice(handle, 1_000, "memo", None)
    second = issuer.create_invoice(handle, 1_000, "memo", None)

    assert first != second
    assert decode_local_invoice(first).receiver_identity is None


def test_node_key_is_derived_from_seed() -> None:
    issuer = LocalInvoiceIssuer()

    assert issuer.initialize("seed").node_pubkey == issuer.initialize("seed").node_pubkey
    assert issuer.initialize("seed").node_pubkey != issuer.initialize("other").node_pubkey


def test_local_invoice_from_another_node_is_rejected() -> None:
    issuer = LocalInvoiceIssuer()
    encoded = issuer.create_invoice(issuer.initialize("seed"), 1_000, "memo", None)

    with pytest.raises(ValueError):
        decode_local_invoice(encoded, issuer.initialize("other").node_pubkey)


def test_tampered_local_invoice_is_rejected() -> None:
    issuer = LocalInvoiceIssuer()
    handle = issuer.initialize("seed")
    invoice = LocalInvoice.from_bech32_string(
        issuer.create_invoice(handle, 1_000, "memo", None)
    )
    invoice.amount_msats = 1_000_000

    with pytest.raises(ValueError):
        decode_local_invoice(invoice.to_bech32_string())


def test_corrupted_local_invoice_is_rejected() -> None:
    issuer = LocalInvoiceIssuer()
    encoded = issuer.create_invoice(issuer.initialize("seed"), 1_000, "memo", None)
    corrupted = encoded[:-1] + ("q" if encoded[-1] != "q" else "p")

    with pytest.raises(ValueError):
        decode_local_invoice(corrupted)
