from dataclasses import dataclass
from typing import Dict, List, Optional

from uma_engine.JSONable import JSONable
from uma_engine.protocol.counterparty_data import CounterpartyDataOptions
from uma_engine.protocol.currency import Currency
from uma_engine.protocol.settlement import SettlementOption


@dataclass
class LnurlpResponse(JSONable):
    tag: str
    callback: str
    """
    The URL that the sender will call for the payreq request.
    """

    min_sendable: int
    """
    The minimum amount that the sender can send in millisatoshis.
    """

    max_sendable: int
    """
    The maximum amount that the sender can send in millisatoshis.
    """

    encoded_metadata: str
    """
    JSON-encoded metadata that the sender can use to display information to the user.
    """

    currencies: List[Currency]
    """
    The list of currencies that the receiver accepts.
    """

    required_payer_data: CounterpartyDataOptions
    """
    The data about the payer that the sending VASP may provide. Nothing is mandatory.
    """

    uma_version: str
    """
    The version of the UMA protocol that the receiver is using.
    """

    comment_chars_allowed: Optional[int] = None
    """
    The number of characters that the sender can include in the comment field of the pay request.
    """

    settlement_options: Optional[List[SettlementOption]] = None
    """
    The settlement layers and assets the receiver accepts. None when the receiver has no
    settlement options, in which case the sender falls back to Lightning.
    """

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {
            "encoded_metadata": "metadata",
            "required_payer_data": "payerData",
            "comment_chars_allowed": "commentAllowed",
        }

    def get_settlement_option(self, layer: str) -> Optional[SettlementOption]:
        for option in self.settlement_options or []:
            if option.settlement_layer == layer:
                return option
        return None
