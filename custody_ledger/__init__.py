"""Custody ledger package.

Tracks evidence items through a chain of custody:

- Evidence store with unique identifiers and continuous custody history
- Append-only, hash-linked ledger anchoring every registration
- Custody controller keeping the two in lockstep
- Signed checkpoints of the ledger head (Ed25519)

Convenience imports
------------------
    from custody_ledger import CustodyController, Role

All of the above are loaded lazily.
"""

from __future__ import annotations

import re
from importlib import import_module
from pathlib import Path
from typing import Any


def _read_version_from_pyproject() -> str | None:
    """Best-effort version discovery for dev/test environments."""

    try:
        pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
        txt = pyproject.read_text(encoding="utf-8")
        m = re.search(r"^version\s*=\s*\"([^\"]+)\"\s*$", txt, flags=re.MULTILINE)
        return m.group(1) if m else None
    except OSError:
        return None


__version__ = _read_version_from_pyproject() or "0.3.0"

__all__ = [
    "__version__",
    "CustodyController",
    "CustodyConfig",
    "CustodyError",
    "EvidenceStore",
    "Ledger",
    "Role",
    "VerificationResult",
    "load_config",
]

# Lazy export map: name -> (module, attribute)
_LAZY_EXPORTS: dict[str, tuple[str, str]] = {
    "CustodyController": ("custody_ledger.controller", "CustodyController"),
    "CustodyConfig": ("custody_ledger.config", "CustodyConfig"),
    "CustodyError": ("custody_ledger.errors", "CustodyError"),
    "EvidenceStore": ("custody_ledger.store", "EvidenceStore"),
    "Ledger": ("custody_ledger.ledger", "Ledger"),
    "Role": ("custody_ledger.models", "Role"),
    "VerificationResult": ("custody_ledger.ledger", "VerificationResult"),
    "load_config": ("custody_ledger.config", "load_config"),
}


def __getattr__(name: str) -> Any:
    if name in _LAZY_EXPORTS:
        module_name, attr = _LAZY_EXPORTS[name]
        module = import_module(module_name)
        value = getattr(module, attr)
        # Cache the resolved attribute on the module for faster future access.
        globals()[name] = value
        return value
    raise AttributeError(f"module 'custody_ledger' has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(list(globals().keys()) + list(_LAZY_EXPORTS.keys())))
