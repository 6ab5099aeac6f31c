"""In-memory evidence store.

Maps evidence identifiers to Evidence records, in registration order.
Identifiers are unique and immutable; records are never deleted. Reads hand
out deep copies so no caller can mutate a stored record behind the store's
back.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from .crypto import digest
from .errors import (
    CUSTODY_E_BAD_REQUEST,
    CUSTODY_E_DUPLICATE_ID,
    CUSTODY_E_NOT_FOUND,
    custody_error,
)
from .models import (
    ACTION_INITIAL_HANDOFF,
    ACTION_TRANSFERRED,
    CustodyEvent,
    Evidence,
    Role,
)


logger = logging.getLogger("custody_ledger.store")


def _require_id(evidence_id: str) -> str:
    if not isinstance(evidence_id, str) or not evidence_id.strip():
        raise custody_error(CUSTODY_E_BAD_REQUEST, "Evidence ID must be a non-empty string")
    return evidence_id


class EvidenceStore:
    """Registration-ordered mapping of evidence ID -> Evidence."""

    def __init__(self) -> None:
        # dicts keep insertion order, which is registration order here
        self._items: Dict[str, Evidence] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, evidence_id: object) -> bool:
        return evidence_id in self._items

    def register(
        self,
        evidence_id: str,
        content: Union[bytes, str],
        custodian: Union[Role, str],
        now: int,
    ) -> Evidence:
        """Create an evidence record with its initial hand-off.

        Raises CUSTODY_E_DUPLICATE_ID if the ID is already known; the store
        is untouched in that case.
        """
        _require_id(evidence_id)
        role = Role.coerce(custodian)
        if evidence_id in self._items:
            raise custody_error(
                CUSTODY_E_DUPLICATE_ID,
                f"Evidence ID already exists: {evidence_id}",
                evidence_id=evidence_id,
            )

        ts = int(now)
        evidence = Evidence(
            id=evidence_id,
            content_hash=digest(content),
            created_at=ts,
            current_custodian=role,
            history=[CustodyEvent(
                from_custodian=None,
                to_custodian=role,
                timestamp=ts,
                action=ACTION_INITIAL_HANDOFF,
            )],
        )
        self._items[evidence_id] = evidence
        logger.debug("Stored evidence %s (content_hash=%s...)", evidence_id, evidence.content_hash[:16])
        return evidence.snapshot()

    def transfer(self, evidence_id: str, new_custodian: Union[Role, str], now: int) -> Evidence:
        """Hand an item to a new custodian and record the event.

        Raises CUSTODY_E_NOT_FOUND for an unknown ID.
        """
        evidence = self._items.get(evidence_id)
        if evidence is None:
            raise custody_error(
                CUSTODY_E_NOT_FOUND,
                f"Evidence not found: {evidence_id}",
                evidence_id=evidence_id,
            )
        role = Role.coerce(new_custodian)

        evidence.history.append(CustodyEvent(
            from_custodian=evidence.current_custodian,
            to_custodian=role,
            timestamp=int(now),
            action=ACTION_TRANSFERRED,
        ))
        evidence.current_custodian = role
        return evidence.snapshot()

    def get(self, evidence_id: str) -> Optional[Evidence]:
        evidence = self._items.get(evidence_id)
        return evidence.snapshot() if evidence is not None else None

    def list(self) -> List[Evidence]:
        """All evidence in registration order (snapshots)."""
        return [e.snapshot() for e in self._items.values()]
