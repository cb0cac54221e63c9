from typing import Any, List, Optional, Tuple

import pytest

from uma_engine.exceptions import (
    AddressNotFoundException,
    MissingSettlementIdentityException,
    UpstreamInvoiceFailureException,
)
from uma_engine.invoice_dispatcher import InvoiceDispatcher
from uma_engine.invoice_service import IInvoiceIssuer, SharedInvoiceService
from uma_engine.models import ChainAddress, User

IDENTITY_KEY = "02" + "ab" * 32


class RecordingInvoiceIssuer(IInvoiceIssuer):
    def __init__(self) -> None:
        self.invoices: List[Tuple[int, str, Optional[str]]] = []

    def initialize(self, seed: str) -> Any:
        return seed

    def create_invoice(
        self,
        handle: Any,
        amount_msats: int,
        memo: str,
        receiver_identity: Optional[str],
    ) -> str:
        self.invoices.append((amount_msats, memo, receiver_identity))
        return f"lnbc{amount_msats}n1invoice"


def _dispatcher(issuer: IInvoiceIssuer) -> InvoiceDispatcher:
    return InvoiceDispatcher(SharedInvoiceService(issuer, "seed"))


def _user(settlement_identity_key: Optional[str] = IDENTITY_KEY) -> User:
    return User(
        id="user-1",
        tenant_id="tenant-1",
        username="alice",
        settlement_identity_key=settlement_identity_key,
    )


@pytest.mark.parametrize("layer", [None, "ln", "spark", "SPARK"])
def test_lightning_layers_get_an_invoice(layer: Optional[str]) -> None:
    issuer = RecordingInvoiceIssuer()
    instruction = _dispatcher(issuer).dispatch(layer, None, _user(), {}, 10_000)

    assert instruction.payment_request == "lnbc10000n1invoice"
    assert instruction.settlement_asset == "BTC"
    assert issuer.invoices == [(10_000, "Payment to alice", IDENTITY_KEY)]


def test_identity_key_prefix_is_stripped() -> None:
    issuer = RecordingInvoiceIssuer()
    _dispatcher(issuer).dispatch("ln", None, _user("0x" + IDENTITY_KEY), {}, 5_000)

    assert issuer.invoices[0][2] == IDENTITY_KEY


def test_lightning_requires_identity_key() -> None:
    issuer = RecordingInvoiceIssuer()
    with pytest.raises(MissingSettlementIdentityException):
        _dispatcher(issuer).dispatch(None, None, _user(None), {}, 10_000)
    assert issuer.invoices == []


def test_chain_layer_returns_address() -> None:
    addresses = {
        "Polygon": ChainAddress(user_id="user-1", chain_name="Polygon", address="0xDEF")
    }
    instruction = _dispatcher(RecordingInvoiceIssuer()).dispatch(
        "polygon", "USDT_POLYGON", _user(None), addresses, 10_000
    )

    assert instruction.payment_request == "0xDEF"
    assert instruction.settlement_layer == "polygon"
    assert instruction.asset_identifier == "USDT_POLYGON"
    assert instruction.settlement_asset == "USDT"


def test_chain_layer_without_address() -> None:
    with pytest.raises(AddressNotFoundException) as exc_info:
        _dispatcher(RecordingInvoiceIssuer()).dispatch(
            "polygon", None, _user(), {"ethereum": "0xABC"}, 10_000
        )
    assert exc_info.value.settlement_layer == "polygon"


def test_unknown_layer() -> None:
    with pytest.raises(AddressNotFoundException):
        _dispatcher(RecordingInvoiceIssuer()).dispatch(
            "dogecoin", None, _user(), {"dogecoin": "DAbc"}, 10_000
        )


def test_invoice_failure() -> None:
    class BrokenIssuer(RecordingInvoiceIssuer):
        def create_invoice(self, handle, amount_msats, memo, receiver_identity):
            raise TimeoutError("upstream timed out")

    with pytest.raises(UpstreamInvoiceFailureException):
        _dispatcher(BrokenIssuer()).dispatch("ln", None, _user(), {}, 10_000)


def test_settlement_asset() -> None:
    dispatcher = _dispatcher(RecordingInvoiceIssuer())

    assert dispatcher.settlement_asset(None) == "BTC"
    assert dispatcher.settlement_asset("spark") == "BTC"
    assert dispatcher.settlement_asset("Ethereum") == "USDT"
    assert dispatcher.settlement_asset("dogecoin") is None
