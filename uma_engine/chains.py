from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

LIGHTNING_LAYER = "ln"
NATIVE_SETTLEMENT_LAYER = "spark"
NATIVE_ASSET = "BTC"


@dataclass(frozen=True)
class ChainMapping:
    layer: str
    """The settlement layer advertised for addresses on this chain."""

    asset: str
    """The default asset accepted on the settlement layer, e.g. USDT."""


ChainMappingTable = Mapping[str, ChainMapping]

DEFAULT_CHAIN_MAPPING: ChainMappingTable = MappingProxyType(
    {
        "spark": ChainMapping(layer=NATIVE_SETTLEMENT_LAYER, asset=NATIVE_ASSET),
        "lightning": ChainMapping(layer=LIGHTNING_LAYER, asset=NATIVE_ASSET),
        "ethereum": ChainMapping(layer="ethereum", asset="USDT"),
        "polygon": ChainMapping(layer="polygon", asset="USDT"),
        "arbitrum": ChainMapping(layer="arbitrum", asset="USDT"),
        "optimism": ChainMapping(layer="optimism", asset="USDT"),
        "base": ChainMapping(layer="base", asset="USDT"),
        "solana": ChainMapping(layer="solana", asset="USDT"),
        "plasma": ChainMapping(layer="plasma", asset="USDT"),
    }
)


def is_lightning_layer(layer: Optional[str], native_layer: str = NATIVE_SETTLEMENT_LAYER) -> bool:
    """Absent, "ln" and the native layer all settle through a Lightning-style invoice."""
    if not layer:
        return True
    return layer.lower() in (LIGHTNING_LAYER, native_layer.lower())


def find_mapping_for_layer(
    layer: str, chain_mapping: ChainMappingTable = DEFAULT_CHAIN_MAPPING
) -> Optional[ChainMapping]:
    for mapping in chain_mapping.values():
        if mapping.layer.lower() == layer.lower():
            return mapping
    return None


def default_asset_identifier(mapping: ChainMapping) -> str:
    return f"{mapping.asset}_{mapping.layer}".upper()
