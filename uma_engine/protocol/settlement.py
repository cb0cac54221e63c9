# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

from dataclasses import dataclass
from typing import Dict, List, Optional

from uma_engine.JSONable import JSONable


@dataclass
class SettlementInfo(JSONable):
    """Echoes the layer and asset a payment instruction settles on."""

    layer: str
    asset_identifier: str

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {"asset_identifier": "assetIdentifier"}


@dataclass
class SettlementAsset(JSONable):
    identifier: str
    """
    On the native layer, the receiver's identity public key exactly as stored. On every other
    layer, `{ASSET}_{LAYER}` in upper case, e.g. USDT_POLYGON.
    """

    multipliers: Dict[str, int]
    """
    Currency code to the number of smallest units of this asset worth one smallest unit of the
    currency. Only currencies with a known rate appear.
    """


@dataclass
class SettlementOption(JSONable):
    settlement_layer: str
    assets: List[SettlementAsset]

    @classmethod
    def _get_field_name_overrides(cls) -> Dict[str, str]:
        return {"settlement_layer": "settlementLayer"}

    def find_asset(self, identifier: str) -> Optional[SettlementAsset]:
        for asset in self.assets:
            if asset.identifier.lower() == identifier.lower():
                return asset
        return None
