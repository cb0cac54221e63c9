# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

from uma_engine.chains import (
    DEFAULT_CHAIN_MAPPING,
    LIGHTNING_LAYER,
    NATIVE_SETTLEMENT_LAYER,
    ChainMapping,
)
from uma_engine.config import Settings
from uma_engine.currency_converter import CurrencyConverter, convert
from uma_engine.engine import NegotiationEngine, create_negotiation_engine
from uma_engine.errors import ErrorCode
from uma_engine.exceptions import *
from uma_engine.handler import handle_lnurlp_url, parse_lnurlp_request
from uma_engine.invoice_dispatcher import InvoiceDispatcher, PaymentInstruction
from uma_engine.invoice_service import IInvoiceIssuer, SharedInvoiceService
from uma_engine.local_invoice import (
    LocalInvoice,
    LocalInvoiceIssuer,
    decode_local_invoice,
)
from uma_engine.market_rates import (
    FixedMarketRateProvider,
    HttpMarketRateProvider,
    IMarketRateProvider,
)
from uma_engine.models import (
    ChainAddress,
    CurrencySetting,
    PaymentRequestRecord,
    Tenant,
    User,
)
from uma_engine.nonce_ledger import INonceLedger, InMemoryNonceLedger, NonceReservation
from uma_engine.protocol.counterparty_data import (
    CounterpartyDataOption,
    CounterpartyDataOptions,
    create_counterparty_data_options,
)
from uma_engine.protocol.currency import Currency
from uma_engine.protocol.lnurlp_request import LnurlpRequest
from uma_engine.protocol.lnurlp_response import LnurlpResponse
from uma_engine.protocol.payreq_response import (
    PayReqResponse,
    PayReqResponsePaymentInfo,
    SuccessAction,
)
from uma_engine.protocol.settlement import (
    SettlementAsset,
    SettlementInfo,
    SettlementOption,
)
from uma_engine.record_store import InMemoryRecordStore, IRecordStore
from uma_engine.settlement_options import build_settlement_options
from uma_engine.sql_store import SqlAlchemyRecordStore
from uma_engine.type_utils import none_throws

