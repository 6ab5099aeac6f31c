"""Data model for evidence items, custody events and ledger blocks."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import CUSTODY_E_BAD_CUSTODIAN, custody_error


ACTION_INITIAL_HANDOFF = "Initial Handoff"
ACTION_TRANSFERRED = "Transferred"


class Role(str, Enum):
    """Closed set of custodian roles.

    The value doubles as the display/wire identifier, so a `Role` compares
    equal to its plain-string name.
    """
    INVESTIGATOR = "Investigator"
    EVIDENCE_OFFICER = "EvidenceOfficer"
    ANALYST = "Analyst"
    PROSECUTOR = "Prosecutor"

    @classmethod
    def coerce(cls, value: Union["Role", str]) -> "Role":
        """Parse a role name (case-insensitive); reject anything else."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for role in cls:
                if wanted in (role.value.lower(), role.name.lower()):
                    return role
        raise custody_error(
            CUSTODY_E_BAD_CUSTODIAN,
            f"Unknown custodian role: {value!r}",
            allowed=[r.value for r in cls],
        )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CustodyEvent:
    """One hand-off. `from_custodian` is None only for the initial hand-off."""
    from_custodian: Optional[Role]
    to_custodian: Role
    timestamp: int
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_custodian.value if self.from_custodian is not None else None,
            "to": self.to_custodian.value,
            "timestamp": self.timestamp,
            "action": self.action,
        }


@dataclass
class Evidence:
    """An evidence item. Owned by the EvidenceStore; callers get snapshots."""
    id: str
    content_hash: str
    created_at: int
    current_custodian: Role
    history: List[CustodyEvent] = field(default_factory=list)

    def snapshot(self) -> "Evidence":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content_hash": self.content_hash,
            "created_at": self.created_at,
            "current_custodian": self.current_custodian.value,
            "history": [e.to_dict() for e in self.history],
        }


@dataclass(frozen=True)
class Block:
    """
    Ledger entry; `hash` chains to `previous_hash` (append-only).

    `event_index` is 0 for a registration and the custody-history position
    for an anchored transfer.
    """
    index: int
    previous_hash: str
    evidence_id: str
    timestamp: int
    hash: str
    event_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "previous_hash": self.previous_hash,
            "evidence_id": self.evidence_id,
            "timestamp": self.timestamp,
            "event_index": self.event_index,
            "hash": self.hash,
        }


def check_custody_continuity(evidence: Evidence) -> bool:
    """True if the history is a gap-free chain ending at the current custodian."""
    history = evidence.history
    if not history or history[0].from_custodian is not None:
        return False
    for prev, nxt in zip(history, history[1:]):
        if prev.to_custodian != nxt.from_custodian:
            return False
    return history[-1].to_custodian == evidence.current_custodian
