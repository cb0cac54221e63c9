from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class CurrencySetting:
    active: bool
    min_sendable: int
    """Minimum sendable amount in the smallest unit of the currency."""

    max_sendable: int
    """Maximum sendable amount in the smallest unit of the currency."""


@dataclass
class Tenant:
    """A served domain. Usernames are unique within a tenant."""

    id: str
    domain: str
    is_default: bool = False
    currency_settings: Dict[str, CurrencySetting] = field(default_factory=dict)

    def active_currency_codes(self) -> List[str]:
        return [
            code for code, setting in self.currency_settings.items() if setting.active
        ]


@dataclass
class User:
    id: str
    tenant_id: str
    username: str
    display_name: Optional[str] = None
    settlement_identity_key: Optional[str] = None
    """
    Hex-encoded compressed secp256k1 public key identifying the user on the native settlement
    layer. Required only for Lightning settlement.
    """

    def get_display_name(self) -> str:
        return self.display_name or self.username


@dataclass
class ChainAddress:
    user_id: str
    chain_name: str
    address: str


@dataclass
class PaymentRequestRecord:
    nonce: str
    user_id: str
    amount: int
    """Requested amount in the smallest unit of the settlement asset (msats for Lightning)."""

    currency: Optional[str]
    settlement_layer: Optional[str]
    asset_identifier: Optional[str]
    payment_request: str
    created_at: datetime
