import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from uma_engine.exceptions import DuplicateNonceException, InvalidRequestException
from uma_engine.models import (
    ChainAddress,
    CurrencySetting,
    PaymentRequestRecord,
    Tenant,
    User,
)
from uma_engine.nonce_ledger import NonceReservation
from uma_engine.record_store import (
    IRecordStore,
    normalize_username,
    validate_settlement_identity_key,
)


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TenantRow(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    domain: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # {code: {"active": bool, "minSendable": int, "maxSendable": int}}
    currency_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "username"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(ForeignKey("tenants.id"), index=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    settlement_identity_key: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class ChainAddressRow(Base):
    __tablename__ = "chain_addresses"
    __table_args__ = (UniqueConstraint("user_id", "chain_name"),)

    # Autoincrement id keeps registration order for settlement options.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    chain_name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class PaymentRequestRow(Base):
    __tablename__ = "payment_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nonce: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    # Amounts routinely exceed 32 bits in msats.
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    settlement_layer: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    asset_identifier: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payment_request: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class NonceReservationRow(Base):
    __tablename__ = "nonce_reservations"

    # Existence means the nonce has been consumed.
    nonce: Mapped[str] = mapped_column(String, primary_key=True)
    reserved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )


def _currency_settings_to_json(
    currency_settings: Optional[Mapping[str, CurrencySetting]],
) -> Dict[str, Any]:
    return {
        code: {
            "active": setting.active,
            "minSendable": setting.min_sendable,
            "maxSendable": setting.max_sendable,
        }
        for code, setting in (currency_settings or {}).items()
    }


def _currency_settings_from_json(data: Optional[Dict[str, Any]]) -> Dict[str, CurrencySetting]:
    return {
        code: CurrencySetting(
            active=bool(setting.get("active")),
            min_sendable=int(setting["minSendable"]),
            max_sendable=int(setting["maxSendable"]),
        )
        for code, setting in (data or {}).items()
    }


def _as_utc(timestamp: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class SqlAlchemyRecordStore(IRecordStore):
    """
    Record store backed by a relational database. Nonce reservation relies on the primary key
    of `nonce_reservations`, so it stays atomic across processes sharing the database.
    """

    def __init__(self, database_url: str, create_tables: bool = True) -> None:
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
        self._engine = create_engine(database_url, connect_args=connect_args)
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        if create_tables:
            Base.metadata.create_all(bind=self._engine)

    def _session(self) -> Session:
        return self._session_factory()

    def reserve_nonce(self, nonce: str, timestamp: datetime) -> NonceReservation:
        with self._session() as session:
            session.add(NonceReservationRow(nonce=nonce, reserved_at=timestamp))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return NonceReservation.ALREADY_USED
        return NonceReservation.ACCEPTED

    def purge_nonces_older_than(self, timestamp: datetime) -> None:
        with self._session() as session:
            session.execute(
                delete(NonceReservationRow).where(
                    NonceReservationRow.reserved_at < timestamp
                )
            )
            session.commit()

    def get_tenant_by_domain(self, domain: str) -> Optional[Tenant]:
        with self._session() as session:
            row = session.scalars(
                select(TenantRow).where(TenantRow.domain == domain.lower())
            ).first()
            return self._to_tenant(row) if row else None

    def get_user(self, tenant_id: str, username: str) -> Optional[User]:
        with self._session() as session:
            row = session.scalars(
                select(UserRow).where(
                    UserRow.tenant_id == tenant_id,
                    UserRow.username == normalize_username(username),
                )
            ).first()
            return self._to_user(row) if row else None

    def get_chain_addresses(self, user_id: str) -> List[ChainAddress]:
        with self._session() as session:
            rows = session.scalars(
                select(ChainAddressRow)
                .where(ChainAddressRow.user_id == user_id)
                .order_by(ChainAddressRow.id)
            ).all()
            return [
                ChainAddress(
                    user_id=row.user_id, chain_name=row.chain_name, address=row.address
                )
                for row in rows
            ]

    def insert_payment_request(self, record: PaymentRequestRecord) -> None:
        with self._session() as session:
            session.add(
                PaymentRequestRow(
                    nonce=record.nonce,
                    user_id=record.user_id,
                    amount=record.amount,
                    currency=record.currency,
                    settlement_layer=record.settlement_layer,
                    asset_identifier=record.asset_identifier,
                    payment_request=record.payment_request,
                    created_at=record.created_at,
                )
            )
            try:
                session.commit()
            except IntegrityError as ex:
                session.rollback()
                raise DuplicateNonceException(
                    f"Payment request for nonce {record.nonce} already exists."
                ) from ex

    def get_payment_request_by_nonce(
        self, nonce: str
    ) -> Optional[PaymentRequestRecord]:
        with self._session() as session:
            row = session.scalars(
                select(PaymentRequestRow).where(PaymentRequestRow.nonce == nonce)
            ).first()
            if row is None:
                return None
            return PaymentRequestRecord(
                nonce=row.nonce,
                user_id=row.user_id,
                amount=row.amount,
                currency=row.currency,
                settlement_layer=row.settlement_layer,
                asset_identifier=row.asset_identifier,
                payment_request=row.payment_request,
                created_at=_as_utc(row.created_at),
            )

    def add_tenant(
        self,
        domain: str,
        currency_settings: Optional[Mapping[str, CurrencySetting]] = None,
        is_default: bool = False,
    ) -> Tenant:
        with self._session() as session:
            row = TenantRow(
                domain=domain.lower(),
                is_default=is_default,
                currency_settings=_currency_settings_to_json(currency_settings),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as ex:
                session.rollback()
                raise InvalidRequestException(f"Domain {domain} already exists") from ex
            return self._to_tenant(row)

    def add_user(
        self,
        tenant_id: str,
        username: str,
        display_name: Optional[str] = None,
        settlement_identity_key: Optional[str] = None,
        addresses: Optional[Mapping[str, str]] = None,
    ) -> User:
        with self._session() as session:
            row = UserRow(
                tenant_id=tenant_id,
                username=normalize_username(username),
                display_name=display_name or username,
                settlement_identity_key=validate_settlement_identity_key(
                    settlement_identity_key
                ),
            )
            session.add(row)
            try:
                session.flush()
            except IntegrityError as ex:
                session.rollback()
                raise InvalidRequestException(
                    f'User "{username}" already exists in this domain'
                ) from ex
            for chain_name, address in (addresses or {}).items():
                if address and address.strip():
                    session.add(
                        ChainAddressRow(
                            user_id=row.id,
                            chain_name=chain_name.lower(),
                            address=address.strip(),
                        )
                    )
            session.commit()
            return self._to_user(row)

    def set_chain_address(
        self, user_id: str, chain_name: str, address: str
    ) -> ChainAddress:
        with self._session() as session:
            row = session.scalars(
                select(ChainAddressRow).where(
                    ChainAddressRow.user_id == user_id,
                    ChainAddressRow.chain_name == chain_name.lower(),
                )
            ).first()
            if row is None:
                row = ChainAddressRow(user_id=user_id, chain_name=chain_name.lower())
                session.add(row)
            row.address = address.strip()
            row.updated_at = _utc_now()
            session.commit()
            return ChainAddress(
                user_id=row.user_id, chain_name=row.chain_name, address=row.address
            )

    @staticmethod
    def _to_tenant(row: TenantRow) -> Tenant:
        return Tenant(
            id=row.id,
            domain=row.domain,
            is_default=row.is_default,
            currency_settings=_currency_settings_from_json(row.currency_settings),
        )

    @staticmethod
    def _to_user(row: UserRow) -> User:
        return User(
            id=row.id,
            tenant_id=row.tenant_id,
            username=row.username,
            display_name=row.display_name,
            settlement_identity_key=row.settlement_identity_key,
        )
