# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

from dataclasses import dataclass
from typing import Dict
from enum import Enum

from uma_engine.JSONable import JSONable


@dataclass
class CounterpartyDataOption(JSONable):
    mandatory: bool
    """Whether the field is mandatory or not"""


CounterpartyDataOptions = Dict[str, CounterpartyDataOption]


class CounterpartyDataKeys(Enum):
    """Keys the receiver can ask the sending wallet to provide about the payer."""

    IDENTIFIER = "identifier"
    """The UMA address of the counterparty"""

    NAME = "name"
    """The full name of the counterparty"""

    EMAIL = "email"
    """The email address of the counterparty"""

    COMPLIANCE = "compliance"
    """Compliance-related data. Never required here since compliance messaging is not supported."""


def create_counterparty_data_options(
    options: Dict[str, bool],
) -> CounterpartyDataOptions:
    return {
        key: CounterpartyDataOption(mandatory=value) for key, value in options.items()
    }


def default_payer_data_options() -> CounterpartyDataOptions:
    return create_counterparty_data_options(
        {
            CounterpartyDataKeys.NAME.value: False,
            CounterpartyDataKeys.EMAIL.value: False,
            CounterpartyDataKeys.IDENTIFIER.value: False,
            CounterpartyDataKeys.COMPLIANCE.value: False,
        }
    )
