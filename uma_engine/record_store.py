import threading
import uuid
from abc import abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Tuple

from coincurve.keys import PublicKey

from uma_engine.exceptions import DuplicateNonceException, InvalidRequestException
from uma_engine.models import (
    ChainAddress,
    CurrencySetting,
    PaymentRequestRecord,
    Tenant,
    User,
)
from uma_engine.nonce_ledger import INonceLedger, InMemoryNonceLedger
from uma_engine.type_utils import strip_hex_prefix


class IRecordStore(INonceLedger):
    """
    The storage the engine reads users from and writes payment requests to. The engine only
    reads tenants, users and chain addresses; the add_* methods are for user management.
    """

    @abstractmethod
    def get_tenant_by_domain(self, domain: str) -> Optional[Tenant]:
        pass

    @abstractmethod
    def get_user(self, tenant_id: str, username: str) -> Optional[User]:
        """Looks up a user by username within a tenant. Usernames are case-insensitive."""

    @abstractmethod
    def get_chain_addresses(self, user_id: str) -> List[ChainAddress]:
        """Returns the user's chain addresses in the order they were registered."""

    @abstractmethod
    def insert_payment_request(self, record: PaymentRequestRecord) -> None:
        pass

    @abstractmethod
    def get_payment_request_by_nonce(
        self, nonce: str
    ) -> Optional[PaymentRequestRecord]:
        pass

    @abstractmethod
    def add_tenant(
        self,
        domain: str,
        currency_settings: Optional[Mapping[str, CurrencySetting]] = None,
        is_default: bool = False,
    ) -> Tenant:
        pass

    @abstractmethod
    def add_user(
        self,
        tenant_id: str,
        username: str,
        display_name: Optional[str] = None,
        settlement_identity_key: Optional[str] = None,
        addresses: Optional[Mapping[str, str]] = None,
    ) -> User:
        pass

    @abstractmethod
    def set_chain_address(
        self, user_id: str, chain_name: str, address: str
    ) -> ChainAddress:
        pass

    def get_formatted_addresses(self, user_id: str) -> Dict[str, ChainAddress]:
        return {
            address.chain_name: address for address in self.get_chain_addresses(user_id)
        }


def validate_settlement_identity_key(key: Optional[str]) -> Optional[str]:
    """
    Normalizes a settlement identity key to lower-case hex without a 0x prefix and checks that
    it is a valid compressed secp256k1 public key.
    """
    if not key:
        return None
    normalized = strip_hex_prefix(key.strip()).lower()
    try:
        key_bytes = bytes.fromhex(normalized)
        if len(key_bytes) != 33:
            raise ValueError("expected a 33-byte compressed key")
        PublicKey(key_bytes)
    except ValueError as ex:
        raise InvalidRequestException(
            f"Invalid settlement identity key: {key}"
        ) from ex
    return normalized


def normalize_username(username: str) -> str:
    return username.strip().lower()


class InMemoryRecordStore(InMemoryNonceLedger, IRecordStore):
    """
    InMemoryRecordStore keeps everything in process memory. Useful for tests and local
    development; use SqlAlchemyRecordStore when records need to survive a restart.
    """

    def __init__(self) -> None:
        super().__init__()
        self._tenants: Dict[str, Tenant] = {}
        self._users: Dict[Tuple[str, str], User] = {}
        self._addresses: Dict[str, Dict[str, ChainAddress]] = {}
        self._payment_requests: Dict[str, PaymentRequestRecord] = {}
        self._records_lock = threading.Lock()

    def get_tenant_by_domain(self, domain: str) -> Optional[Tenant]:
        return self._tenants.get(domain.lower())

    def get_user(self, tenant_id: str, username: str) -> Optional[User]:
        return self._users.get((tenant_id, normalize_username(username)))

    def get_chain_addresses(self, user_id: str) -> List[ChainAddress]:
        return list(self._addresses.get(user_id, {}).values())

    def insert_payment_request(self, record: PaymentRequestRecord) -> None:
        with self._records_lock:
            if record.nonce in self._payment_requests:
                raise DuplicateNonceException(
                    f"Payment request for nonce {record.nonce} already exists."
                )
            self._payment_requests[record.nonce] = record

    def get_payment_request_by_nonce(
        self, nonce: str
    ) -> Optional[PaymentRequestRecord]:
        return self._payment_requests.get(nonce)

    def add_tenant(
        self,
        domain: str,
        currency_settings: Optional[Mapping[str, CurrencySetting]] = None,
        is_default: bool = False,
    ) -> Tenant:
        with self._records_lock:
            if domain.lower() in self._tenants:
                raise InvalidRequestException(f"Domain {domain} already exists")
            tenant = Tenant(
                id=str(uuid.uuid4()),
                domain=domain.lower(),
                is_default=is_default,
                currency_settings=dict(currency_settings or {}),
            )
            self._tenants[tenant.domain] = tenant
            return tenant

    def add_user(
        self,
        tenant_id: str,
        username: str,
        display_name: Optional[str] = None,
        settlement_identity_key: Optional[str] = None,
        addresses: Optional[Mapping[str, str]] = None,
    ) -> User:
        key = (tenant_id, normalize_username(username))
        with self._records_lock:
            if key in self._users:
                raise InvalidRequestException(
                    f'User "{username}" already exists in this domain'
                )
            user = User(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                username=key[1],
                display_name=display_name or username,
                settlement_identity_key=validate_settlement_identity_key(
                    settlement_identity_key
                ),
            )
            self._users[key] = user
        for chain_name, address in (addresses or {}).items():
            if address and address.strip():
                self.set_chain_address(user.id, chain_name, address)
        return user

    def set_chain_address(
        self, user_id: str, chain_name: str, address: str
    ) -> ChainAddress:
        chain_address = ChainAddress(
            user_id=user_id, chain_name=chain_name.lower(), address=address.strip()
        )
        with self._records_lock:
            self._addresses.setdefault(user_id, {})[
                chain_address.chain_name
            ] = chain_address
        return chain_address


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
