# Copyright ©, 2022-present, Lightspark Group, Inc. - All Rights Reserved

import logging
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import bech32
from coincurve.keys import PrivateKey, PublicKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from uma_engine.invoice_service import IInvoiceIssuer
from uma_engine.tlv_utils import TLVCodable
from uma_engine.type_utils import strip_hex_prefix

logger = logging.getLogger(__name__)

LOCAL_INVOICE_HRP = "lnuma"
_NODE_KEY_INFO = b"uma-engine local invoice node key"


@dataclass
class LocalInvoice(TLVCodable):
    """
    A signed, bech32-encoded payment request minted by LocalInvoiceIssuer. It carries the same
    information a Lightning invoice would but cannot be paid on the Lightning network.
    """

    # amount in millisatoshis.
    amount_msats: int

    memo: str

    # compressed secp256k1 public key of the receiver on the native settlement layer.
    receiver_identity: Optional[bytes]

    payment_hash: bytes

    # seconds since epoch.
    timestamp: int

    # compressed public key of the node that signed the invoice.
    issuer_pubkey: bytes

    signature: Optional[bytes]

    def __init__(
        self,
        amount_msats: int = 0,
        memo: str = "",
        receiver_identity: Optional[bytes] = None,
        payment_hash: bytes = b"",
        timestamp: int = 0,
        issuer_pubkey: bytes = b"",
        signature: Optional[bytes] = None,
    ) -> None:
        self.amount_msats = amount_msats
        self.memo = memo
        self.receiver_identity = receiver_identity
        self.payment_hash = payment_hash
        self.timestamp = timestamp
        self.issuer_pubkey = issuer_pubkey
        self.signature = signature

    @classmethod
    def tlv_map(cls) -> dict:
        return {
            "amount_msats": 0,
            "memo": 1,
            "receiver_identity": 2,
            "payment_hash": 3,
            "timestamp": 4,
            "issuer_pubkey": 5,
            "signature": 100,
        }

    def signable_payload(self) -> bytes:
        return self.to_tlv(exclude={"signature"})

    def to_bech32_string(self) -> str:
        data = bech32.convertbits(self.to_tlv(), 8, 5)
        if data is None:
            raise ValueError("Failed to convert to bech32")
        return bech32.bech32_encode(LOCAL_INVOICE_HRP, data)

    @classmethod
    def from_bech32_string(cls, bech32_str: str) -> "LocalInvoice":
        hrp, data = _bech32_decode(bech32_str)
        if hrp != LOCAL_INVOICE_HRP:
            raise ValueError(f"Unexpected invoice prefix: {hrp}")
        tlvs = bech32.convertbits(data, 5, 8, False)
        if tlvs is None:
            raise ValueError("Failed to convert bits")
        return cls.from_tlv(bytes(tlvs))


def _bech32_decode(bech32_str: str) -> Tuple[str, List[int]]:
    # bech32.bech32_decode caps strings at 90 characters, which signed invoices exceed.
    if bech32_str.lower() != bech32_str and bech32_str.upper() != bech32_str:
        raise ValueError("Mixed-case bech32 string")
    bech32_str = bech32_str.lower()
    separator = bech32_str.rfind("1")
    if separator < 1 or separator + 7 > len(bech32_str):
        raise ValueError("Failed to decode bech32")
    hrp = bech32_str[:separator]
    data = [bech32.CHARSET.find(char) for char in bech32_str[separator + 1 :]]
    if -1 in data or not bech32.bech32_verify_checksum(hrp, data):
        raise ValueError("Failed to decode bech32")
    return hrp, data[:-6]


@dataclass
class LocalIssuerHandle:
    private_key: PrivateKey

    @property
    def node_pubkey(self) -> bytes:
        return self.private_key.public_key.format()


class LocalInvoiceIssuer(IInvoiceIssuer):
    """
    Mints signed invoices without any network access. Meant for development and tests, where a
    real Lightning-capable service is unavailable.
    """

    def initialize(self, seed: str) -> LocalIssuerHandle:
        secret = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=_NODE_KEY_INFO,
        ).derive(seed.encode("utf-8"))
        handle = LocalIssuerHandle(private_key=PrivateKey(secret))
        logger.info("Local invoice issuer node key: %s", handle.node_pubkey.hex())
        return handle

    def create_invoice(
        self,
        handle: LocalIssuerHandle,
        amount_msats: int,
        memo: str,
        receiver_identity: Optional[str],
    ) -> str:
        invoice = LocalInvoice(
            amount_msats=amount_msats,
            memo=memo,
            receiver_identity=(
                bytes.fromhex(strip_hex_prefix(receiver_identity))
                if receiver_identity
                else None
            ),
            payment_hash=os.urandom(32),
            timestamp=int(time.time()),
            issuer_pubkey=handle.node_pubkey,
        )
        invoice.signature = handle.private_key.sign(invoice.signable_payload())
        return invoice.to_bech32_string()


def decode_local_invoice(
    encoded_invoice: str, expected_issuer_pubkey: Optional[bytes] = None
) -> LocalInvoice:
    """
    Decodes an invoice minted by LocalInvoiceIssuer and verifies its signature.

    Args:
        encoded_invoice: the bech32 invoice string.
        expected_issuer_pubkey: if given, the invoice must have been signed by this node key.
    """
    invoice = LocalInvoice.from_bech32_string(encoded_invoice)
    if not invoice.signature or not invoice.issuer_pubkey:
        raise ValueError("Invoice is not signed")
    if expected_issuer_pubkey is not None and invoice.issuer_pubkey != bytes(
        expected_issuer_pubkey
    ):
        raise ValueError("Invoice was signed by an unexpected node")
    if not PublicKey(invoice.issuer_pubkey).verify(
        invoice.signature, invoice.signable_payload()
    ):
        raise ValueError("Invalid invoice signature")
    return invoice
