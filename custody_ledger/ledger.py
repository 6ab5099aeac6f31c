"""Append-only, hash-linked ledger of custody blocks.

Each block records:
- previous_hash: hash of the preceding block (GENESIS_HASH for block 0)
- hash: SHA256 over (index, previous_hash, evidence_id, timestamp), plus
  event_index for anchored transfer blocks

`append` is the only mutator. `verify` reports the first inconsistency it
finds and never repairs anything: tamper detection is the product.

Verification order:
1. Block 0's previous_hash must be the genesis sentinel.
2. For each i >= 1: the block's index must be i (INDEX_MISMATCH),
   previous_hash must equal block i-1's stored hash (CHAIN_BROKEN), and the
   hash recomputed from block i's own fields must equal its stored hash
   (HASH_MISMATCH).
3. Block 0's own index and hash are checked last.

A corrupted hash on block i therefore surfaces at i+1 when a successor
exists, since the successor's link is the first check that depends on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .crypto import GENESIS_HASH, compute_block_hash
from .errors import CUSTODY_E_BAD_REQUEST, CUSTODY_E_CHAIN_INVALID, custody_error
from .models import Block


logger = logging.getLogger("custody_ledger.ledger")


REASON_OK = "OK"
REASON_GENESIS_MISMATCH = "GENESIS_MISMATCH"
REASON_CHAIN_BROKEN = "CHAIN_BROKEN"
REASON_HASH_MISMATCH = "HASH_MISMATCH"
REASON_INDEX_MISMATCH = "INDEX_MISMATCH"


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    at_index: Optional[int] = None
    reason: str = REASON_OK

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def invalid(cls, at_index: int, reason: str) -> "VerificationResult":
        return cls(valid=False, at_index=at_index, reason=reason)

    def raise_for_invalid(self) -> None:
        if not self.valid:
            raise custody_error(
                CUSTODY_E_CHAIN_INVALID,
                f"Ledger verification failed at block {self.at_index} ({self.reason})",
                at_index=self.at_index,
                reason=self.reason,
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "at_index": self.at_index, "reason": self.reason}


def _expected_hash(index: int, block: Block, previous_hash: str) -> str:
    return compute_block_hash(
        index, previous_hash, block.evidence_id, block.timestamp, block.event_index
    )


class Ledger:
    """Write-once, read-many sequence of blocks."""

    def __init__(self) -> None:
        self._chain: List[Block] = []

    def __len__(self) -> int:
        return len(self._chain)

    def __iter__(self) -> Iterator[Block]:
        return iter(tuple(self._chain))

    def length(self) -> int:
        return len(self._chain)

    def head_hash(self) -> str:
        """Hash of the most recent block, or GENESIS_HASH if empty."""
        return self._chain[-1].hash if self._chain else GENESIS_HASH

    def append(self, evidence_id: str, now: int, event_index: int = 0) -> Block:
        """Link a new block for `evidence_id` onto the chain and return it."""
        if not isinstance(evidence_id, str) or not evidence_id:
            raise custody_error(CUSTODY_E_BAD_REQUEST, "Block evidence_id must be a non-empty string")

        index = len(self._chain)
        previous_hash = self.head_hash()
        ts = int(now)
        block = Block(
            index=index,
            previous_hash=previous_hash,
            evidence_id=evidence_id,
            timestamp=ts,
            hash=compute_block_hash(index, previous_hash, evidence_id, ts, event_index),
            event_index=int(event_index),
        )
        self._chain.append(block)
        logger.debug("Appended block %d for %s (hash=%s...)", index, evidence_id, block.hash[:16])
        return block

    def get(self, index: int) -> Optional[Block]:
        if 0 <= index < len(self._chain):
            return self._chain[index]
        return None

    def blocks(self) -> Tuple[Block, ...]:
        return tuple(self._chain)

    def blocks_for(self, evidence_id: str) -> List[Block]:
        return [b for b in self._chain if b.evidence_id == evidence_id]

    def verify(self) -> VerificationResult:
        """Check linkage and recompute hashes; report the first failing index."""
        chain = self._chain
        if not chain:
            return VerificationResult.ok()

        if chain[0].previous_hash != GENESIS_HASH:
            return self._fail(0, REASON_GENESIS_MISMATCH)

        for i in range(1, len(chain)):
            prev, block = chain[i - 1], chain[i]
            if block.index != i:
                return self._fail(i, REASON_INDEX_MISMATCH)
            if block.previous_hash != prev.hash:
                return self._fail(i, REASON_CHAIN_BROKEN)
            if _expected_hash(i, block, prev.hash) != block.hash:
                return self._fail(i, REASON_HASH_MISMATCH)

        if chain[0].index != 0:
            return self._fail(0, REASON_INDEX_MISMATCH)
        if _expected_hash(0, chain[0], GENESIS_HASH) != chain[0].hash:
            return self._fail(0, REASON_HASH_MISMATCH)

        return VerificationResult.ok()

    @staticmethod
    def _fail(index: int, reason: str) -> VerificationResult:
        logger.error("Ledger verification failed at block %d: %s", index, reason)
        return VerificationResult.invalid(index, reason)

    def _replace_block(self, position: int, /, **changes: Any) -> Block:
        """Swap in a modified copy of the block at `position`. Simulates storage tampering."""
        tampered = replace(self._chain[position], **changes)
        self._chain[position] = tampered
        return tampered
