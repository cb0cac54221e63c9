import logging
from typing import Dict, Iterable, List, Mapping, Union

from uma_engine.chains import (
    DEFAULT_CHAIN_MAPPING,
    NATIVE_SETTLEMENT_LAYER,
    ChainMappingTable,
    default_asset_identifier,
)
from uma_engine.currency_converter import CurrencyConverter
from uma_engine.models import ChainAddress
from uma_engine.protocol.settlement import SettlementAsset, SettlementOption

logger = logging.getLogger(__name__)

AddressOrRecord = Union[str, ChainAddress]


def build_settlement_options(
    addresses: Mapping[str, AddressOrRecord],
    active_currencies: Iterable[str],
    converter: CurrencyConverter,
    chain_mapping: ChainMappingTable = DEFAULT_CHAIN_MAPPING,
    native_layer: str = NATIVE_SETTLEMENT_LAYER,
) -> List[SettlementOption]:
    """
    Converts a user's chain addresses into settlement options.

    The options keep the order of `addresses`; it is not a preference ranking. Chains without a
    mapping are skipped. On the native layer the asset identifier is the stored address itself
    (the receiver's identity on that layer); on any other layer it is `{ASSET}_{LAYER}`.

    Args:
        addresses: chain name to address (or ChainAddress record), in registration order.
        active_currencies: the currency codes the tenant has enabled.
        converter: used to price each asset in the active currencies.
        chain_mapping: chain name to settlement layer and default asset.
        native_layer: the shared-custody layer whose identifiers are identity keys.
    """
    currencies = list(active_currencies)
    # Rates are only reused within this call since they go stale quickly.
    multipliers_by_asset: Dict[str, Dict[str, int]] = {}
    settlement_options: List[SettlementOption] = []

    for chain_name, chain_data in addresses.items():
        mapping = chain_mapping.get(chain_name.lower())
        if mapping is None:
            logger.warning("Unknown chain: %s, skipping...", chain_name)
            continue

        address = (
            chain_data.address if isinstance(chain_data, ChainAddress) else chain_data
        )
        if mapping.layer == native_layer:
            if not address:
                logger.warning("Empty %s address, skipping...", chain_name)
                continue
            identifier = address
        else:
            identifier = default_asset_identifier(mapping)

        if mapping.asset not in multipliers_by_asset:
            multipliers_by_asset[mapping.asset] = converter.multipliers(
                mapping.asset, currencies
            )
        multipliers = multipliers_by_asset[mapping.asset]

        assets = []
        if multipliers:
            assets.append(
                SettlementAsset(identifier=identifier, multipliers=dict(multipliers))
            )
        else:
            logger.warning(
                "No multipliers for %s on %s, skipping...", mapping.asset, mapping.layer
            )
        if not assets:
            continue

        settlement_options.append(
            SettlementOption(settlement_layer=mapping.layer, assets=assets)
        )

    return settlement_options
