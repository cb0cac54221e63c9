from dataclasses import dataclass
from typing import Dict, List, Optional

from uma_engine.JSONable import JSONable
from uma_engine.protocol.settlement import SettlementInfo


@dataclass
class PayReqResponsePaymentInfo(JSONable):
    amount: int
    """
    The amount that the receiver will receive in the receiving currency not including fees. The amount is specified
    in the smallest unit of the currency (eg. cents for USD).
    """

    currency_code: str
    """
    The currency code that the receiver will receive for this payment.
    """

    decimals: int
    """
    Number of digits after the decimal point for the receiving currency. For example, in USD, by
    convention, there are 2 digits for cents - $5.95. In this case, `decimals` would be 2.
    """

    multiplier: int
    """
    The number of smallest units of the settlement asset that the receiver will receive for 1 smallest unit
    of the specified currency (eg: msats per cent). Specifically:
    `amount = (invoiceAmount - fee) / multiplier`
    """

    exchange_fees: int
    """
    The fees charged by the receiver for this transaction, in smallest units of the settlement asset.
    """

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {"exchange_fees": "fee"}


@dataclass
class SuccessAction(JSONable):
    """A message the wallet can show the user once the payment succeeds. See LUD-09."""

    message: str
    tag: str = "message"


@dataclass
class PayReqResponse(JSONable):
    encoded_invoice: str
    """
    The payment instruction: an encoded Lightning invoice, or a raw address on the chosen settlement layer.
    """

    routes: List[str]
    """
    Always just an empty array for legacy reasons.
    """

    payment_info: Optional[PayReqResponsePaymentInfo]
    """
    The amount the receiver will be credited in the requested currency.
    """

    settlement: Optional[SettlementInfo] = None
    """
    The settlement layer and asset the instruction is for. Only present when the sender chose a
    layer other than Lightning.
    """

    disposable: Optional[bool] = None
    """
    This field may be used by a WALLET to decide whether the initial LNURL link will
    be stored locally for later reuse or erased. If disposable is null, it should be
    interpreted as true, so if SERVICE intends its LNURL links to be stored it must
    return `disposable: false`. See LUD-11.
    """

    success_action: Optional[SuccessAction] = None
    """
    Defines a struct which can be stored and shown to the user on payment success. See LUD-09.
    """

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {"encoded_invoice": "pr", "payment_info": "converted"}
