# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import json
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Union

from uma_engine.chains import (
    DEFAULT_CHAIN_MAPPING,
    LIGHTNING_LAYER,
    NATIVE_ASSET,
    ChainMappingTable,
    default_asset_identifier,
    find_mapping_for_layer,
)
from uma_engine.config import Settings
from uma_engine.currencies import CURRENCIES, CurrencyConfig
from uma_engine.currency_converter import CurrencyConverter, convert
from uma_engine.exceptions import (
    DuplicateNonceException,
    InvalidAmountException,
    InvalidRequestException,
    NoRateAvailableException,
    TenantNotFoundException,
    UserNotFoundException,
)
from uma_engine.invoice_dispatcher import InvoiceDispatcher, PaymentInstruction
from uma_engine.invoice_service import IInvoiceIssuer, SharedInvoiceService
from uma_engine.local_invoice import LocalInvoiceIssuer
from uma_engine.market_rates import (
    FixedMarketRateProvider,
    HttpMarketRateProvider,
    IMarketRateProvider,
)
from uma_engine.models import ChainAddress, PaymentRequestRecord, Tenant, User
from uma_engine.nonce_ledger import NonceReservation
from uma_engine.protocol.counterparty_data import default_payer_data_options
from uma_engine.protocol.currency import Currency
from uma_engine.protocol.lnurlp_request import LnurlpRequest
from uma_engine.protocol.lnurlp_response import LnurlpResponse
from uma_engine.protocol.payreq_response import (
    PayReqResponse,
    PayReqResponsePaymentInfo,
    SuccessAction,
)
from uma_engine.protocol.settlement import SettlementInfo
from uma_engine.record_store import IRecordStore, utc_now
from uma_engine.settlement_options import build_settlement_options
from uma_engine.sql_store import SqlAlchemyRecordStore
from uma_engine.type_utils import none_throws
from uma_engine.urls import lnurlp_callback_url

logger = logging.getLogger(__name__)

UMA_VERSION = "1.0"
DEFAULT_MIN_SENDABLE_MSATS = 1_000
DEFAULT_MAX_SENDABLE_MSATS = 100_000_000
RECEIVER_FEES_MSATS = 0


class NegotiationEngine:
    """
    Answers both phases of an UMA payment negotiation. The discovery phase advertises the
    currencies and settlement options a receiver accepts; the payment request phase turns an
    amount and a chosen settlement layer into a payable instruction. The engine keeps no state
    between the phases: they are correlated only by username and nonce.
    """

    def __init__(
        self,
        store: IRecordStore,
        converter: CurrencyConverter,
        dispatcher: InvoiceDispatcher,
        settings: Optional[Settings] = None,
        chain_mapping: ChainMappingTable = DEFAULT_CHAIN_MAPPING,
        currencies: Mapping[str, CurrencyConfig] = CURRENCIES,
    ) -> None:
        self.store = store
        self.converter = converter
        self.dispatcher = dispatcher
        self.settings = settings or Settings()
        self.chain_mapping = chain_mapping
        self.currencies = currencies

    def handle_lnurlp_request(
        self, request: LnurlpRequest
    ) -> Union[LnurlpResponse, PayReqResponse]:
        if not request.is_pay_request():
            return self.get_lnurlp_response(request.domain, request.username)
        return self.get_pay_req_response(
            domain=request.domain,
            username=request.username,
            amount=none_throws(request.amount),
            nonce=request.nonce,
            currency=request.currency,
            settlement_layer=request.settlement_layer,
            asset_identifier=request.asset_identifier,
        )

    def get_lnurlp_response(self, domain: str, username: str) -> LnurlpResponse:
        tenant = self._get_tenant(domain)
        user = self._get_user(tenant, username)

        addresses = self.store.get_formatted_addresses(user.id)
        settlement_options = build_settlement_options(
            addresses,
            tenant.active_currency_codes(),
            self.converter,
            chain_mapping=self.chain_mapping,
            native_layer=self.settings.native_settlement_layer,
        )
        min_sendable, max_sendable = self._sendable_range(tenant)
        base_url = self.settings.base_url_for_domain(tenant.domain, tenant.is_default)

        return LnurlpResponse(
            tag="payRequest",
            callback=lnurlp_callback_url(base_url, user.username),
            min_sendable=min_sendable,
            max_sendable=max_sendable,
            encoded_metadata=self._create_metadata(user, tenant),
            currencies=self._build_currencies(tenant),
            required_payer_data=default_payer_data_options(),
            uma_version=UMA_VERSION,
            comment_chars_allowed=self.settings.comment_chars_allowed,
            settlement_options=settlement_options or None,
        )

    def get_pay_req_response(
        self,
        domain: str,
        username: str,
        amount: int,
        nonce: Optional[str] = None,
        currency: Optional[str] = None,
        settlement_layer: Optional[str] = None,
        asset_identifier: Optional[str] = None,
    ) -> PayReqResponse:
        """
        Produces the payment instruction for a pay request.

        Args:
            domain: the host the request was addressed to.
            username: the receiver's username.
            amount: the amount in smallest units of the settlement asset (msats for Lightning).
            nonce: consumed at most once. Generated when missing unless nonces are required.
            currency: the currency to express the converted amount in. Defaults to the
                configured default currency.
            settlement_layer: the layer the sender chose. Absent means Lightning.
            asset_identifier: the asset the sender chose on the settlement layer.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountException(f"Invalid amount: {amount}")

        tenant = self._get_tenant(domain)
        user = self._get_user(tenant, username)

        min_sendable, max_sendable = self._sendable_range(tenant)
        if amount < min_sendable or amount > max_sendable:
            raise InvalidAmountException(
                f"Amount {amount} is outside the sendable range {min_sendable}-{max_sendable}"
            )

        currency_code = (currency or self.settings.default_currency).upper()
        currency_config = self.currencies.get(currency_code)
        if currency_config is None:
            raise NoRateAvailableException(
                self.dispatcher.settlement_asset(settlement_layer) or NATIVE_ASSET,
                currency_code,
            )

        if not nonce:
            if self.settings.require_nonce:
                raise InvalidRequestException("nonce is required.")
            nonce = self.generate_nonce()

        # Payment records outlive purged reservations.
        if self.store.get_payment_request_by_nonce(nonce) is not None or (
            self.store.reserve_nonce(nonce, utc_now()) == NonceReservation.ALREADY_USED
        ):
            logger.warning("Duplicate payment request with nonce: %s", nonce)
            raise DuplicateNonceException()

        addresses = self.store.get_formatted_addresses(user.id)
        instruction = self.dispatcher.dispatch(
            settlement_layer, asset_identifier, user, addresses, amount
        )

        multiplier = self.converter.require_multiplier(
            instruction.settlement_asset, currency_code
        )
        converted_amount = convert(amount, multiplier, RECEIVER_FEES_MSATS)

        settlement = self._settlement_info(instruction, addresses, user)
        self.store.insert_payment_request(
            PaymentRequestRecord(
                nonce=nonce,
                user_id=user.id,
                amount=amount,
                currency=currency_code,
                settlement_layer=settlement_layer,
                asset_identifier=(
                    settlement.asset_identifier if settlement else asset_identifier
                ),
                payment_request=instruction.payment_request,
                created_at=utc_now(),
            )
        )

        return PayReqResponse(
            encoded_invoice=instruction.payment_request,
            routes=[],
            payment_info=PayReqResponsePaymentInfo(
                amount=converted_amount,
                currency_code=currency_code,
                decimals=currency_config.decimals,
                multiplier=multiplier,
                exchange_fees=RECEIVER_FEES_MSATS,
            ),
            settlement=settlement,
            disposable=False,
            success_action=SuccessAction(
                message=f"Payment received! Thank you for paying {user.get_display_name()}."
            ),
        )

    def purge_expired_nonces(self, now: Optional[datetime] = None) -> None:
        """Drops nonce reservations older than the configured retention period."""
        if self.settings.nonce_retention_days is None:
            return
        cutoff = (now or utc_now()) - timedelta(days=self.settings.nonce_retention_days)
        self.store.purge_nonces_older_than(cutoff)

    @staticmethod
    def generate_nonce() -> str:
        return f"uma_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def _get_tenant(self, domain: str) -> Tenant:
        tenant = self.store.get_tenant_by_domain(domain)
        if tenant is None:
            raise TenantNotFoundException(domain)
        return tenant

    def _get_user(self, tenant: Tenant, username: str) -> User:
        user = self.store.get_user(tenant.id, username)
        if user is None:
            raise UserNotFoundException()
        return user

    @staticmethod
    def _sendable_range(tenant: Tenant):
        btc_setting = tenant.currency_settings.get(NATIVE_ASSET)
        if btc_setting is None:
            return DEFAULT_MIN_SENDABLE_MSATS, DEFAULT_MAX_SENDABLE_MSATS
        return btc_setting.min_sendable, btc_setting.max_sendable

    @staticmethod
    def _create_metadata(user: User, tenant: Tenant) -> str:
        metadata = [
            ["text/plain", f"Pay to {user.get_display_name()}"],
            ["text/identifier", f"{user.username}@{tenant.domain}"],
        ]
        return json.dumps(metadata)

    def _build_currencies(self, tenant: Tenant) -> List[Currency]:
        currencies: List[Currency] = []
        for code, setting in tenant.currency_settings.items():
            if not setting.active:
                continue
            config = self.currencies.get(code)
            if config is None:
                logger.warning("Unknown currency code: %s, skipping...", code)
                continue
            multiplier = self.converter.multipliers(NATIVE_ASSET, [code]).get(code)
            if multiplier is None:
                logger.warning("No multiplier available for %s, skipping...", code)
                continue
            currencies.append(
                Currency(
                    code=config.code,
                    name=config.name,
                    symbol=config.symbol,
                    millisatoshi_per_unit=multiplier,
                    min_sendable=setting.min_sendable,
                    max_sendable=setting.max_sendable,
                    decimals=config.decimals,
                )
            )
        return currencies

    def _settlement_info(
        self,
        instruction: PaymentInstruction,
        addresses: Mapping[str, ChainAddress],
        user: User,
    ) -> Optional[SettlementInfo]:
        layer = instruction.settlement_layer
        if not layer or layer.lower() == LIGHTNING_LAYER:
            return None
        identifier = instruction.asset_identifier
        if not identifier:
            identifier = self._default_identifier(layer, addresses, user)
        return SettlementInfo(layer=layer, asset_identifier=identifier)

    def _default_identifier(
        self, layer: str, addresses: Mapping[str, ChainAddress], user: User
    ) -> str:
        if layer.lower() == self.settings.native_settlement_layer.lower():
            for chain_name, address in addresses.items():
                if chain_name.lower() == layer.lower() and address.address:
                    return address.address
            return user.settlement_identity_key or ""
        mapping = none_throws(
            find_mapping_for_layer(layer, self.chain_mapping),
            f"No chain mapping for settlement layer {layer}",
        )
        return default_asset_identifier(mapping)


def create_negotiation_engine(
    settings: Settings,
    store: Optional[IRecordStore] = None,
    rate_provider: Optional[IMarketRateProvider] = None,
    invoice_issuer: Optional[IInvoiceIssuer] = None,
) -> NegotiationEngine:
    """
    Wires a NegotiationEngine from settings. Unless overridden, records live in the configured
    database, rates come from the configured market rate endpoint (or a fixed table when none
    is set), and invoices are minted by the local development issuer.
    """
    if store is None:
        store = SqlAlchemyRecordStore(settings.sqlalchemy_database_url())
    if rate_provider is None:
        rate_provider = (
            HttpMarketRateProvider(settings.market_rates_url)
            if settings.market_rates_url
            else FixedMarketRateProvider()
        )
    invoice_service = SharedInvoiceService(
        invoice_issuer or LocalInvoiceIssuer(), settings.spark_seed
    )
    return NegotiationEngine(
        store=store,
        converter=CurrencyConverter(rate_provider),
        dispatcher=InvoiceDispatcher(
            invoice_service, native_layer=settings.native_settlement_layer
        ),
        settings=settings,
    )
