# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import logging
from typing import Dict, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from uma_engine.engine import NegotiationEngine
from uma_engine.errors import ErrorCode
from uma_engine.exceptions import (
    InternalErrorException,
    InvalidRequestException,
    UmaException,
    UpstreamInvoiceFailureException,
)
from uma_engine.protocol.lnurlp_request import LnurlpRequest

logger = logging.getLogger(__name__)


def parse_lnurlp_request(url: str) -> LnurlpRequest:
    parsed_url = urlparse(url)
    query = parse_qs(parsed_url.query, keep_blank_values=True)
    params: Dict[str, str] = {key: values[0] for key, values in query.items() if values}

    paths = parsed_url.path.split("/")
    if len(paths) != 4 or paths[1] != ".well-known" or paths[2] != "lnurlp":
        raise InvalidRequestException("Invalid request path.")
    # hostname is lower-cased, without the port or IPv6 brackets.
    domain = parsed_url.hostname
    if not domain:
        raise InvalidRequestException("Request URL must include a host.")

    return LnurlpRequest.from_query_params(
        username=unquote(paths[3]),
        domain=domain,
        params=params,
    )


def handle_lnurlp_url(engine: NegotiationEngine, url: str) -> Tuple[int, str]:
    """
    Runs an lnurlp request URL through the engine and returns the HTTP status code and JSON body
    to respond with. Internal failures are logged and reported without their details.
    """
    try:
        request = parse_lnurlp_request(url)
        response = engine.handle_lnurlp_request(request)
        return 200, response.to_json()
    except UmaException as ex:
        if ex.is_internal():
            logger.exception("Failed to handle lnurlp request: %s", url)
            error = _generic_error(ex)
            return error.to_http_status_code(), error.to_json()
        logger.warning("Rejected lnurlp request %s: %s", url, ex.reason)
        return ex.to_http_status_code(), ex.to_json()
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected error handling lnurlp request: %s", url)
        error = InternalErrorException()
        return error.to_http_status_code(), error.to_json()


def _generic_error(ex: UmaException) -> UmaException:
    if ex.error_code == ErrorCode.UPSTREAM_INVOICE_FAILURE:
        return UpstreamInvoiceFailureException()
    return InternalErrorException()
