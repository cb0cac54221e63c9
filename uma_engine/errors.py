from enum import Enum
from dataclasses import dataclass


@dataclass
class ErrorDetails:
    code: str
    http_status_code: int


class ErrorCode(Enum):
    INVALID_REQUEST_FORMAT = ErrorDetails(
        code="INVALID_REQUEST_FORMAT", http_status_code=400
    )
    """The request is malformed or missing required parameters"""

    INVALID_AMOUNT = ErrorDetails(code="INVALID_AMOUNT", http_status_code=400)
    """The amount is not a positive integer or is outside the sendable range"""

    USER_NOT_FOUND = ErrorDetails(code="USER_NOT_FOUND", http_status_code=404)
    """The user for this UMA was not found"""

    TENANT_NOT_FOUND = ErrorDetails(code="TENANT_NOT_FOUND", http_status_code=404)
    """The domain this request was addressed to is not served here"""

    DUPLICATE_NONCE = ErrorDetails(code="DUPLICATE_NONCE", http_status_code=409)
    """The nonce has already been used for a payment request"""

    ADDRESS_NOT_FOUND = ErrorDetails(code="ADDRESS_NOT_FOUND", http_status_code=400)
    """The settlement layer is unsupported or not configured for this user"""

    MISSING_SETTLEMENT_IDENTITY = ErrorDetails(
        code="MISSING_SETTLEMENT_IDENTITY", http_status_code=400
    )
    """Lightning settlement requires a settlement identity key for the user"""

    NO_RATE_AVAILABLE = ErrorDetails(code="NO_RATE_AVAILABLE", http_status_code=400)
    """No conversion rate is available between the settlement asset and the currency"""

    UPSTREAM_INVOICE_FAILURE = ErrorDetails(
        code="UPSTREAM_INVOICE_FAILURE", http_status_code=500
    )
    """The invoice issuing service failed to produce an invoice"""

    INTERNAL_ERROR = ErrorDetails(code="INTERNAL_ERROR", http_status_code=500)
    """An unexpected error occurred on the server"""
