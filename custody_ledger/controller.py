"""Custody controller: the command boundary of the core.

The controller owns one EvidenceStore and one Ledger and keeps them in
lockstep. Every command either fully succeeds or raises a CustodyError
with both stores exactly as they were before the call.

Commands are serialized by a single lock around the (store, ledger) pair;
the two are never updated under separate locks.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from .config import CustodyConfig
from .errors import CustodyError
from .ledger import Ledger, VerificationResult
from .models import CustodyEvent, Evidence, Role
from .store import EvidenceStore


logger = logging.getLogger("custody_ledger.controller")


def _now_epoch() -> int:
    return int(time.time())


@dataclass(frozen=True)
class RegistrationResult:
    id: str
    content_hash: str
    block_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "content_hash": self.content_hash, "block_index": self.block_index}


@dataclass(frozen=True)
class TransferResult:
    id: str
    new_custodian: Role
    # Only set when transfers are anchored in the ledger.
    block_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "new_custodian": self.new_custodian.value,
            "block_index": self.block_index,
        }


class CustodyController:
    """Orchestrates registration, transfer and verification for one session."""

    def __init__(
        self,
        config: Optional[CustodyConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or CustodyConfig()
        self._clock = clock or _now_epoch
        self._store = EvidenceStore()
        self._ledger = Ledger()
        self._lock = threading.RLock()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def now(self) -> int:
        """Current session time from the injected clock."""
        return int(self._clock())

    def handle_register(
        self,
        evidence_id: str,
        content: Union[bytes, str],
        custodian: Union[Role, str, None] = None,
    ) -> RegistrationResult:
        """Register a new item and anchor it in the ledger (all-or-nothing)."""
        role = self.config.register_custodian if custodian is None else custodian
        with self._lock:
            now = self.now()
            try:
                evidence = self._store.register(evidence_id, content, role, now)
            except CustodyError as e:
                logger.warning("Registration of %r rejected: %s", evidence_id, e)
                raise
            # The store accepted, so the ledger must follow.
            block = self._ledger.append(evidence.id, now)

        logger.info(
            "Registered evidence %s with %s (block %d)",
            evidence.id, evidence.current_custodian.value, block.index,
        )
        return RegistrationResult(id=evidence.id, content_hash=evidence.content_hash, block_index=block.index)

    def handle_transfer(
        self,
        evidence_id: str,
        new_custodian: Union[Role, str, None] = None,
    ) -> TransferResult:
        """Move custody of an existing item.

        With `anchor_transfers` enabled the new custody event is also
        anchored as a block keyed by (evidence_id, history position).
        """
        role = self.config.transfer_custodian if new_custodian is None else new_custodian
        block_index: Optional[int] = None
        with self._lock:
            now = self.now()
            try:
                evidence = self._store.transfer(evidence_id, role, now)
            except CustodyError as e:
                logger.warning("Transfer of %r rejected: %s", evidence_id, e)
                raise
            if self.config.anchor_transfers:
                block = self._ledger.append(evidence.id, now, event_index=len(evidence.history) - 1)
                block_index = block.index

        logger.info("Custody of %s transferred to %s", evidence.id, evidence.current_custodian.value)
        return TransferResult(id=evidence.id, new_custodian=evidence.current_custodian, block_index=block_index)

    def handle_verify(self) -> VerificationResult:
        with self._lock:
            result = self._ledger.verify()
        if result.valid:
            logger.info("Ledger verified: %d blocks consistent", len(self._ledger))
        return result

    def ensure_chain_valid(self) -> None:
        """Raise CUSTODY_E_CHAIN_INVALID if the ledger fails verification."""
        self.handle_verify().raise_for_invalid()

    def list_evidence(self) -> List[Evidence]:
        with self._lock:
            return self._store.list()

    def get_evidence(self, evidence_id: str) -> Optional[Evidence]:
        with self._lock:
            return self._store.get(evidence_id)

    def get_history(self, evidence_id: str) -> Optional[List[CustodyEvent]]:
        evidence = self.get_evidence(evidence_id)
        return list(evidence.history) if evidence is not None else None

    def session_summary(self) -> Dict[str, Any]:
        with self._lock:
            result = self._ledger.verify()
            return {
                "evidence_count": len(self._store),
                "block_count": len(self._ledger),
                "head_hash": self._ledger.head_hash(),
                "anchor_transfers": self.config.anchor_transfers,
                "verification": result.to_dict(),
            }
