"""Stable error taxonomy for the custody ledger.

Every rejected command surfaces as a single exception type carrying a
machine-readable `code`. The presentation shell decides how to render it;
the core never prints.

Design goals:
- Stable `code` string suitable for programmatic handling.
- Structured `details` (e.g. `evidence_id`, `at_index`) without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


# Evidence store
CUSTODY_E_DUPLICATE_ID = "CUSTODY_E_DUPLICATE_ID"
CUSTODY_E_NOT_FOUND = "CUSTODY_E_NOT_FOUND"
CUSTODY_E_BAD_CUSTODIAN = "CUSTODY_E_BAD_CUSTODIAN"

# Ledger
CUSTODY_E_CHAIN_INVALID = "CUSTODY_E_CHAIN_INVALID"

# Generic
CUSTODY_E_BAD_REQUEST = "CUSTODY_E_BAD_REQUEST"
CUSTODY_E_CONFIG = "CUSTODY_E_CONFIG"


@dataclass
class CustodyError(Exception):
    """Base custody exception with stable error code."""

    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": bool(self.retryable),
        }
        if self.details:
            d["details"] = self.details
        return d

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


def custody_error(
    code: str,
    message: str,
    *,
    retryable: bool = False,
    **details: Any,
) -> CustodyError:
    return CustodyError(code=code, message=message, retryable=retryable, details=details)
