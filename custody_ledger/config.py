"""Session configuration.

Loaded from an optional JSON file, then overridden by environment variables:

    CUSTODY_ANCHOR_TRANSFERS   "1"/"true"/"yes" to anchor transfers in the ledger
    CUSTODY_LOG_LEVEL          logging level name for the CLI
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import CUSTODY_E_CONFIG, custody_error
from .models import Role


ENV_ANCHOR_TRANSFERS = "CUSTODY_ANCHOR_TRANSFERS"
ENV_LOG_LEVEL = "CUSTODY_LOG_LEVEL"

_TRUE_STRINGS = ("1", "true", "yes", "on")


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_STRINGS


@dataclass
class CustodyConfig:
    """Policy dials for one custody session.

    anchor_transfers: when True every accepted transfer also appends a block,
        so verification covers the full custody history and not only
        registrations.
    register_custodian / transfer_custodian: default roles used by the shell
        when a command names no role.
    """
    anchor_transfers: bool = False
    register_custodian: Role = Role.INVESTIGATOR
    transfer_custodian: Role = Role.EVIDENCE_OFFICER
    log_level: str = "INFO"
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustodyConfig":
        known = {"anchor_transfers", "register_custodian", "transfer_custodian", "log_level"}
        cfg = cls(extra={k: v for k, v in data.items() if k not in known})
        if "anchor_transfers" in data:
            value = data["anchor_transfers"]
            if not isinstance(value, bool):
                raise custody_error(CUSTODY_E_CONFIG, "anchor_transfers must be a boolean")
            cfg.anchor_transfers = value
        if "register_custodian" in data:
            cfg.register_custodian = Role.coerce(data["register_custodian"])
        if "transfer_custodian" in data:
            cfg.transfer_custodian = Role.coerce(data["transfer_custodian"])
        if "log_level" in data:
            cfg.log_level = str(data["log_level"]).upper()
        return cfg

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> "CustodyConfig":
        env = os.environ if environ is None else environ
        if env.get(ENV_ANCHOR_TRANSFERS):
            self.anchor_transfers = _env_flag(env[ENV_ANCHOR_TRANSFERS])
        if env.get(ENV_LOG_LEVEL):
            self.log_level = env[ENV_LOG_LEVEL].strip().upper()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "anchor_transfers": self.anchor_transfers,
            "register_custodian": self.register_custodian.value,
            "transfer_custodian": self.transfer_custodian.value,
            "log_level": self.log_level,
        }


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> CustodyConfig:
    """
    Load configuration from a JSON file and the environment.

    A missing path yields defaults. Invalid JSON or an unreadable file raises
    CUSTODY_E_CONFIG rather than silently falling back.
    """
    data: Dict[str, Any] = {}
    if config_path is not None and Path(config_path).exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise custody_error(
                CUSTODY_E_CONFIG,
                f"Invalid JSON in config file '{config_path}': {e}",
                path=str(config_path),
            ) from e
        except OSError as e:
            raise custody_error(
                CUSTODY_E_CONFIG,
                f"Failed to read config file '{config_path}': {e}",
                path=str(config_path),
            ) from e
        if not isinstance(data, dict):
            raise custody_error(CUSTODY_E_CONFIG, "Config file must contain a JSON object")
    return CustodyConfig.from_dict(data).apply_env(environ)
