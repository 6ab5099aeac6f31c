"""Hashing and key material for the custody ledger.

Two concerns live here:

- Content digests: SHA-256 hex digests for evidence fingerprints and block
  hashes. Registration block hashes cover index, previous_hash, evidence_id
  and timestamp concatenated in that order; anchored transfer blocks use a
  length-prefixed encoding that also covers their history position.
- Ed25519 key pairs used to sign ledger checkpoints (see `checkpoint.py`).
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey, Ed25519PublicKey
)


# Previous-hash placeholder for the first block.
GENESIS_HASH = "0" * 64


def digest(data: Union[bytes, str]) -> str:
    """SHA-256 hex digest (64 chars). `str` input is UTF-8 encoded."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(bytes(data)).hexdigest()


def _safe_hash_encode(components: List[str]) -> bytes:
    """
    Length-prefixed encoding for hash inputs.
    Prevents delimiter collision attacks.
    """
    result = b""
    for component in components:
        encoded = component.encode("utf-8")
        length_bytes = len(encoded).to_bytes(8, byteorder="big")
        result += length_bytes + encoded
    return result


def compute_block_hash(
    index: int,
    previous_hash: str,
    evidence_id: str,
    timestamp: int,
    event_index: int = 0,
) -> str:
    """Hash of a block's fields, in fixed order.

    Registration blocks (`event_index` 0) hash the plain concatenation of
    index, previous_hash, evidence_id and timestamp. Anchored transfer
    blocks add the history position and use the length-prefixed encoding.
    """
    if not event_index:
        return digest(f"{int(index)}{previous_hash}{evidence_id}{int(timestamp)}")
    return digest(_safe_hash_encode([
        str(int(index)),
        str(previous_hash),
        str(evidence_id),
        str(int(timestamp)),
        str(int(event_index)),
    ]))


def canonical_json_dumps(obj: Any) -> str:
    """Canonical JSON for stable hashing/signing.

    - sort_keys: deterministic key order
    - separators: no whitespace ambiguity
    - ensure_ascii=False: preserve unicode deterministically (UTF-8)
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass
class Ed25519KeyPair:
    """
    Ed25519 key pair for signing and verification of ledger checkpoints.

    A key pair built with `from_public_key` can only verify.
    """
    key_id: str
    public_key_bytes: bytes
    private_key_bytes: Optional[bytes] = None

    @classmethod
    def generate(cls, key_id: str) -> "Ed25519KeyPair":
        """Generate a new Ed25519 key pair."""
        return cls._from_private_key(key_id, Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes, key_id: str) -> "Ed25519KeyPair":
        """Create key pair from a 32-byte seed."""
        if len(seed) != 32:
            raise ValueError(f"Seed must be 32 bytes, got {len(seed)}")
        return cls._from_private_key(key_id, Ed25519PrivateKey.from_private_bytes(seed))

    @classmethod
    def from_public_key(cls, key_id: str, public_key_hex: str) -> "Ed25519KeyPair":
        """Create key pair with public key only (for verification)."""
        return cls(key_id=key_id, public_key_bytes=bytes.fromhex(public_key_hex))

    @classmethod
    def _from_private_key(cls, key_id: str, private_key: Ed25519PrivateKey) -> "Ed25519KeyPair":
        private_bytes = private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )
        return cls(key_id=key_id, public_key_bytes=public_bytes, private_key_bytes=private_bytes)

    @property
    def public_key_hex(self) -> str:
        return self.public_key_bytes.hex()

    def can_sign(self) -> bool:
        """Check if this key pair can sign (has private key)."""
        return self.private_key_bytes is not None

    def sign(self, message: bytes) -> bytes:
        """Sign a message with the private key."""
        if not self.can_sign():
            raise ValueError(f"Key {self.key_id} has no private key - cannot sign")
        private_key = Ed25519PrivateKey.from_private_bytes(self.private_key_bytes)
        return private_key.sign(message)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verify a signature with the public key."""
        try:
            public_key = Ed25519PublicKey.from_public_bytes(self.public_key_bytes)
            public_key.verify(signature, message)
            return True
        except (InvalidSignature, ValueError):
            return False
