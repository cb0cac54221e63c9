# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Dict


class NonceReservation(Enum):
    ACCEPTED = "ACCEPTED"
    ALREADY_USED = "ALREADY_USED"


class INonceLedger(ABC):
    @abstractmethod
    def reserve_nonce(self, nonce: str, timestamp: datetime) -> NonceReservation:
        """
        Atomically checks whether the given nonce has been consumed and, if not, consumes it.
        Two concurrent calls with the same nonce must never both be accepted. Reservations are
        never rolled back, even if the payment request they guard fails afterwards.

        Args:
            nonce: the payment nonce to consume.
            timestamp: when the nonce was reserved. Used for retention.
        """

    @abstractmethod
    def purge_nonces_older_than(self, timestamp: datetime) -> None:
        """
        Purges all nonces reserved before the given timestamp. This allows the ledger to be pruned.

        Args:
            timestamp: the timestamp before which nonces should be removed.
        """


class InMemoryNonceLedger(INonceLedger):
    """
    InMemoryNonceLedger is an in-memory implementation of INonceLedger.
    It is not recommended to use this in production, as it will not persist across restarts or
    be shared between processes. You likely want the SQL record store instead.
    """

    def __init__(self) -> None:
        self._reserved: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def reserve_nonce(self, nonce: str, timestamp: datetime) -> NonceReservation:
        with self._lock:
            if nonce in self._reserved:
                return NonceReservation.ALREADY_USED
            self._reserved[nonce] = timestamp
            return NonceReservation.ACCEPTED

    def purge_nonces_older_than(self, timestamp: datetime) -> None:
        with self._lock:
            expired_nonces = [
                nonce for nonce, ts in self._reserved.items() if ts < timestamp
            ]
            for nonce in expired_nonces:
                del self._reserved[nonce]

    def __contains__(self, nonce: str) -> bool:
        with self._lock:
            return nonce in self._reserved
