# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlencode

from uma_engine.exceptions import InvalidAmountException, InvalidRequestException
from uma_engine.urls import is_domain_local


@dataclass
class LnurlpRequest:
    """
    A request to `/.well-known/lnurlp/{username}`. Without an amount it is a discovery request;
    with an amount it asks for a payable instruction.
    """

    username: str
    """
    The username part of the receiver's address.
    """

    domain: str
    """
    The host the request was addressed to. Selects the tenant.
    """

    amount: Optional[int] = None
    """
    Amount in the smallest unit of the settlement asset (msats for Lightning). Its presence
    selects the payment request phase.
    """

    nonce: Optional[str] = None
    """
    A caller-chosen token ensuring the payment request is fulfilled at most once.
    """

    currency: Optional[str] = None
    """
    The currency the converted amount should be expressed in.
    """

    settlement_layer: Optional[str] = None
    """
    The settlement layer chosen by the sender, e.g. "ln", "spark" or "polygon".
    """

    asset_identifier: Optional[str] = None
    """
    The asset chosen by the sender on the settlement layer, e.g. USDT_POLYGON.
    """

    def is_pay_request(self) -> bool:
        return self.amount is not None

    def to_query_params(self) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if self.amount is not None:
            params["amount"] = str(self.amount)
        if self.nonce:
            params["nonce"] = self.nonce
        if self.currency:
            params["currency"] = self.currency
        if self.settlement_layer:
            params["settlementLayer"] = self.settlement_layer
        if self.asset_identifier:
            params["assetIdentifier"] = self.asset_identifier
        return params

    def encode_to_url(self) -> str:
        scheme = "http" if is_domain_local(self.domain) else "https"
        host = f"[{self.domain}]" if ":" in self.domain else self.domain
        base_url = f"{scheme}://{host}/.well-known/lnurlp/{self.username}"
        params = self.to_query_params()
        if not params:
            return base_url
        return f"{base_url}?{urlencode(params)}"

    @classmethod
    def from_query_params(
        cls, username: str, domain: str, params: Dict[str, str]
    ) -> "LnurlpRequest":
        if not username:
            raise InvalidRequestException("username is required.")
        return LnurlpRequest(
            username=username,
            domain=domain,
            amount=parse_amount(params.get("amount")),
            nonce=params.get("nonce") or None,
            currency=(params.get("currency") or "").upper() or None,
            settlement_layer=params.get("settlementLayer") or None,
            asset_identifier=params.get("assetIdentifier") or None,
        )


def parse_amount(amount: Optional[str]) -> Optional[int]:
    if amount is None or amount == "":
        return None
    try:
        parsed = int(amount, 10)
    except ValueError as ex:
        raise InvalidAmountException(f"Invalid amount: {amount}") from ex
    if parsed <= 0:
        raise InvalidAmountException(f"Invalid amount: {amount}")
    return parsed
