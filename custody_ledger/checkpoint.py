"""Signed ledger checkpoints.

`Ledger.verify` proves the chain is internally consistent, but a chain that
was rebuilt from scratch (every hash recomputed) is internally consistent
too. A checkpoint pins `(length, head_hash)` at a moment in time under an
Ed25519 signature; later, `verify_checkpoint` confirms the current ledger
still extends exactly that prefix.

Checkpoints sign ledger state only. They are plain values: handing them to
an external store or witness is the caller's business.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .crypto import GENESIS_HASH, Ed25519KeyPair, canonical_json_dumps
from .ledger import Ledger


CHECKPOINT_VERSION = "CUSTODY_CHECKPOINT_V1"


@dataclass(frozen=True)
class LedgerCheckpoint:
    version: str
    length: int
    head_hash: str
    created_at: int
    key_id: str
    signature_b64: str

    def payload(self) -> bytes:
        return _checkpoint_payload(self.length, self.head_hash, self.created_at, self.key_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "length": self.length,
            "head_hash": self.head_hash,
            "created_at": self.created_at,
            "key_id": self.key_id,
            "signature_b64": self.signature_b64,
        }


def _checkpoint_payload(length: int, head_hash: str, created_at: int, key_id: str) -> bytes:
    return canonical_json_dumps({
        "version": CHECKPOINT_VERSION,
        "length": int(length),
        "head_hash": head_hash,
        "created_at": int(created_at),
        "key_id": key_id,
    }).encode("utf-8")


def sign_checkpoint(ledger: Ledger, keypair: Ed25519KeyPair, now: int) -> LedgerCheckpoint:
    """Sign the ledger's current length and head hash."""
    length = len(ledger)
    head_hash = ledger.head_hash()
    sig = keypair.sign(_checkpoint_payload(length, head_hash, now, keypair.key_id))
    return LedgerCheckpoint(
        version=CHECKPOINT_VERSION,
        length=length,
        head_hash=head_hash,
        created_at=int(now),
        key_id=keypair.key_id,
        signature_b64=base64.b64encode(sig).decode("ascii"),
    )


def verify_checkpoint(
    ledger: Ledger,
    checkpoint: LedgerCheckpoint,
    public_key_hex: str,
) -> Tuple[bool, str]:
    """Check a checkpoint against the ledger. Returns (ok, reason)."""
    if checkpoint.version != CHECKPOINT_VERSION:
        return False, f"BAD_VERSION:{checkpoint.version}"

    try:
        sig = base64.b64decode(checkpoint.signature_b64, validate=True)
    except (binascii.Error, ValueError):
        return False, "BAD_SIGNATURE_ENCODING"

    try:
        verifier = Ed25519KeyPair.from_public_key(checkpoint.key_id, public_key_hex)
    except (TypeError, ValueError):
        return False, "BAD_PUBLIC_KEY"
    if not verifier.verify(checkpoint.payload(), sig):
        return False, "INVALID_SIGNATURE"

    if len(ledger) < checkpoint.length:
        return False, "TRUNCATED"

    if checkpoint.length == 0:
        expected = GENESIS_HASH
    else:
        expected = ledger.get(checkpoint.length - 1).hash
    if expected != checkpoint.head_hash:
        return False, "HEAD_MISMATCH"

    return True, "OK"
