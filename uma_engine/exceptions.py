# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import json
from uma_engine.errors import ErrorCode


class UmaException(Exception):
    def __init__(self, reason: str, error_code: ErrorCode) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = error_code.value.code
        self.http_status_code = error_code.value.http_status_code
        self.error_code = error_code

    def get_additional_params(self) -> dict:
        """Override this method in child classes to add additional parameters to the JSON output"""
        return {}

    def is_internal(self) -> bool:
        return self.http_status_code >= 500

    def to_json(self) -> str:
        result = {
            "status": "ERROR",
            "reason": self.reason,
            "code": self.code,
            **self.get_additional_params(),
        }
        return json.dumps(result)

    @classmethod
    def from_json(cls: type["UmaException"], json_str: str) -> "UmaException":
        try:
            data = json.loads(json_str)
            error_code = ErrorCode[data["code"]]
            return UmaException(data["reason"], error_code)
        except (json.JSONDecodeError, KeyError):
            return UmaException(
                f"Failed to parse error JSON: {json_str}", ErrorCode.INTERNAL_ERROR
            )

    def to_http_status_code(self) -> int:
        return self.http_status_code

    def __reduce__(self):
        return (_restore_exception, (type(self), self.args, self.__dict__))


def _restore_exception(cls, args, state):
    # Subclass constructors take different arguments, so rebuild without calling them.
    exception = cls.__new__(cls)
    exception.args = args
    exception.__dict__.update(state)
    return exception


class InvalidRequestException(UmaException):
    def __init__(
        self,
        reason: str = "Invalid request",
        error_code: ErrorCode = ErrorCode.INVALID_REQUEST_FORMAT,
    ):
        super().__init__(reason, error_code)


class InvalidAmountException(UmaException):
    def __init__(self, reason: str = "Invalid amount"):
        super().__init__(reason, ErrorCode.INVALID_AMOUNT)


class UserNotFoundException(UmaException):
    def __init__(self, reason: str = "User not found"):
        super().__init__(reason, ErrorCode.USER_NOT_FOUND)


class TenantNotFoundException(UmaException):
    def __init__(self, domain: str):
        super().__init__(f"Domain {domain} not found", ErrorCode.TENANT_NOT_FOUND)
        self.domain = domain


class DuplicateNonceException(UmaException):
    def __init__(
        self,
        reason: str = "Duplicate payment request. This nonce has already been used.",
    ):
        super().__init__(reason, ErrorCode.DUPLICATE_NONCE)


class AddressNotFoundException(UmaException):
    def __init__(self, settlement_layer: str):
        super().__init__(
            "Unsupported or invalid settlement layer. Check available settlement options from the lookup endpoint.",
            ErrorCode.ADDRESS_NOT_FOUND,
        )
        self.settlement_layer = settlement_layer

    def get_additional_params(self) -> dict:
        return {"settlementLayer": self.settlement_layer}


class MissingSettlementIdentityException(UmaException):
    def __init__(
        self,
        reason: str = "Lightning payments require a settlement identity key to be configured for this user",
    ):
        super().__init__(reason, ErrorCode.MISSING_SETTLEMENT_IDENTITY)


class NoRateAvailableException(UmaException):
    def __init__(self, asset: str, currency_code: str):
        super().__init__(
            f"No conversion rate available from {asset} to {currency_code}",
            ErrorCode.NO_RATE_AVAILABLE,
        )
        self.asset = asset
        self.currency_code = currency_code


class UpstreamInvoiceFailureException(UmaException):
    def __init__(self, reason: str = "Failed to create invoice"):
        super().__init__(reason, ErrorCode.UPSTREAM_INVOICE_FAILURE)


class InternalErrorException(UmaException):
    def __init__(self, reason: str = "Internal server error"):
        super().__init__(reason, ErrorCode.INTERNAL_ERROR)
