# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Optional

from uma_engine.exceptions import UpstreamInvoiceFailureException

logger = logging.getLogger(__name__)


class IInvoiceIssuer(ABC):
    """The external service that mints Lightning-style invoices."""

    @abstractmethod
    def initialize(self, seed: str) -> Any:
        """
        Performs the one-time, expensive setup of the issuer, deriving its key material from the
        seed. Returns the handle later passed to create_invoice.
        """

    @abstractmethod
    def create_invoice(
        self,
        handle: Any,
        amount_msats: int,
        memo: str,
        receiver_identity: Optional[str],
    ) -> str:
        """
        Creates an encoded invoice.

        Args:
            handle: the handle returned by initialize.
            amount_msats: the amount of the invoice.
            memo: a description shown to the payer.
            receiver_identity: the receiver's identity public key on the native settlement layer.
                When present it is embedded in the invoice so native-layer payers can settle
                directly with the receiver.
        """


class SharedInvoiceService:
    """
    Lazily initializes an invoice issuer exactly once per process and shares the resulting
    handle between all callers. Concurrent first callers wait on the attempt already in flight
    rather than starting their own, and all of them see its outcome. A failed attempt is not
    cached: the next call after it starts a new one.
    """

    def __init__(self, issuer: IInvoiceIssuer, seed: Optional[str]) -> None:
        self._issuer = issuer
        self._seed = seed
        self._handle: Any = None
        self._initialized = False
        self._attempt: Optional["Future[Any]"] = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def get_handle(self) -> Any:
        with self._lock:
            if self._initialized:
                return self._handle
            attempt = self._attempt
            if attempt is not None:
                is_owner = False
            else:
                attempt = Future()
                self._attempt = attempt
                is_owner = True

        if not is_owner:
            return attempt.result()

        try:
            handle = self._initialize()
        except UpstreamInvoiceFailureException as ex:
            with self._lock:
                self._attempt = None
            attempt.set_exception(ex)
            raise
        with self._lock:
            self._handle = handle
            self._initialized = True
            self._attempt = None
        attempt.set_result(handle)
        logger.info("Invoice service initialized successfully")
        return handle

    def _initialize(self) -> Any:
        if not self._seed:
            raise UpstreamInvoiceFailureException(
                "Invoice service seed is not configured"
            )
        try:
            return self._issuer.initialize(self._seed)
        except Exception as ex:  # pylint: disable=broad-except
            logger.exception("Failed to initialize invoice service")
            raise UpstreamInvoiceFailureException(
                "Failed to initialize invoice service"
            ) from ex

    def create_invoice(
        self, amount_msats: int, memo: str, receiver_identity: Optional[str]
    ) -> str:
        handle = self.get_handle()
        try:
            return self._issuer.create_invoice(
                handle, amount_msats, memo, receiver_identity
            )
        except Exception as ex:  # pylint: disable=broad-except
            logger.exception("Error creating invoice")
            raise UpstreamInvoiceFailureException() from ex
