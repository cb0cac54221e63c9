import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from uma_engine.chains import (
    DEFAULT_CHAIN_MAPPING,
    NATIVE_ASSET,
    NATIVE_SETTLEMENT_LAYER,
    ChainMappingTable,
    find_mapping_for_layer,
    is_lightning_layer,
)
from uma_engine.exceptions import (
    AddressNotFoundException,
    MissingSettlementIdentityException,
    UmaException,
    UpstreamInvoiceFailureException,
)
from uma_engine.invoice_service import SharedInvoiceService
from uma_engine.models import ChainAddress, User
from uma_engine.type_utils import none_throws, strip_hex_prefix

logger = logging.getLogger(__name__)


@dataclass
class PaymentInstruction:
    payment_request: str
    """An encoded invoice for Lightning settlement, otherwise the receiver's raw address."""

    settlement_layer: Optional[str]
    asset_identifier: Optional[str]

    settlement_asset: str
    """The asset the payment settles in, used to price the converted amount."""


class InvoiceDispatcher:
    """Produces the payment instruction for the settlement layer a sender chose."""

    def __init__(
        self,
        invoice_service: SharedInvoiceService,
        chain_mapping: ChainMappingTable = DEFAULT_CHAIN_MAPPING,
        native_layer: str = NATIVE_SETTLEMENT_LAYER,
    ) -> None:
        self._invoice_service = invoice_service
        self._chain_mapping = chain_mapping
        self._native_layer = native_layer

    def dispatch(
        self,
        layer: Optional[str],
        asset: Optional[str],
        user: User,
        chain_addresses: Mapping[str, Union[str, ChainAddress]],
        amount: int,
    ) -> PaymentInstruction:
        if is_lightning_layer(layer, self._native_layer):
            return PaymentInstruction(
                payment_request=self._create_lightning_invoice(user, amount),
                settlement_layer=layer,
                asset_identifier=asset,
                settlement_asset=NATIVE_ASSET,
            )

        layer = none_throws(layer)
        mapping = find_mapping_for_layer(layer, self._chain_mapping)
        address = _find_address(layer, chain_addresses)
        if mapping is None or not address:
            raise AddressNotFoundException(layer)

        logger.info(
            "Returning %s address for %s settlement (asset: %s)",
            layer,
            user.username,
            asset,
        )
        return PaymentInstruction(
            payment_request=address,
            settlement_layer=layer,
            asset_identifier=asset,
            settlement_asset=mapping.asset,
        )

    def settlement_asset(self, layer: Optional[str]) -> Optional[str]:
        """The asset a payment on the layer settles in, or None for an unmapped layer."""
        if is_lightning_layer(layer, self._native_layer):
            return NATIVE_ASSET
        mapping = find_mapping_for_layer(none_throws(layer), self._chain_mapping)
        return mapping.asset if mapping else None

    def _create_lightning_invoice(self, user: User, amount: int) -> str:
        if not user.settlement_identity_key:
            raise MissingSettlementIdentityException()
        try:
            return self._invoice_service.create_invoice(
                amount_msats=amount,
                memo=f"Payment to {user.username}",
                receiver_identity=strip_hex_prefix(user.settlement_identity_key),
            )
        except UmaException:
            raise
        except Exception as ex:  # pylint: disable=broad-except
            logger.exception("Error creating invoice for %s", user.username)
            raise UpstreamInvoiceFailureException() from ex


def _find_address(
    layer: str, chain_addresses: Mapping[str, Union[str, ChainAddress]]
) -> Optional[str]:
    for chain_name, chain_data in chain_addresses.items():
        if chain_name.lower() == layer.lower():
            if isinstance(chain_data, ChainAddress):
                return chain_data.address
            return chain_data
    return None
