#!/usr/bin/env python3
"""
Custody Ledger - Command Line Interface

Usage:
    custody run [script]      Execute custody commands (one per line) from a file or stdin
    custody demo              Run the end-to-end demo scenarios

Script commands:
    register <id> <content> [role]   Register evidence (default role: Investigator)
    transfer <id> [role]             Transfer custody (default role: EvidenceOfficer)
    verify                           Verify ledger integrity
    list                             List registered evidence
    history <id>                     Show custody history of one item
    checkpoint                       Sign and print a ledger checkpoint
    summary                          Show session summary

Lines starting with '#' and blank lines are ignored. Each result is printed
as one JSON line. All state lives in memory and is lost when the run ends.
"""

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

from custody_ledger.checkpoint import sign_checkpoint, verify_checkpoint
from custody_ledger.config import CustodyConfig, load_config
from custody_ledger.controller import CustodyController
from custody_ledger.crypto import Ed25519KeyPair
from custody_ledger.errors import CUSTODY_E_BAD_REQUEST, CustodyError, custody_error


logger = logging.getLogger("custody_ledger.cli")


def setup_logging(verbose: bool = False, level_name: str = "INFO"):
    """Configure logging for CLI usage."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )


def _emit(obj: Dict[str, Any], out: TextIO) -> None:
    out.write(json.dumps(obj, sort_keys=True) + "\n")


def _expect_args(cmd: str, args: List[str], low: int, high: int) -> None:
    if not low <= len(args) <= high:
        raise custody_error(CUSTODY_E_BAD_REQUEST, f"Wrong number of arguments for '{cmd}'", command=cmd)


class CommandSession:
    """Dispatches text commands to a CustodyController."""

    def __init__(self, controller: CustodyController):
        self.controller = controller
        self._signing_key: Optional[Ed25519KeyPair] = None

    def execute(self, line: str) -> Dict[str, Any]:
        try:
            parts = shlex.split(line)
        except ValueError as e:
            raise custody_error(CUSTODY_E_BAD_REQUEST, f"Unparseable command: {e}") from e
        cmd, args = parts[0].lower(), parts[1:]
        ctl = self.controller

        if cmd == "register":
            _expect_args(cmd, args, 2, 3)
            role = args[2] if len(args) > 2 else None
            return {"register": ctl.handle_register(args[0], args[1], role).to_dict()}
        if cmd == "transfer":
            _expect_args(cmd, args, 1, 2)
            role = args[1] if len(args) > 1 else None
            return {"transfer": ctl.handle_transfer(args[0], role).to_dict()}
        if cmd == "verify":
            _expect_args(cmd, args, 0, 0)
            return {"verify": ctl.handle_verify().to_dict()}
        if cmd == "list":
            _expect_args(cmd, args, 0, 0)
            return {"evidence": [e.to_dict() for e in ctl.list_evidence()]}
        if cmd == "history":
            _expect_args(cmd, args, 1, 1)
            history = ctl.get_history(args[0])
            return {"id": args[0], "history": None if history is None else [h.to_dict() for h in history]}
        if cmd == "checkpoint":
            _expect_args(cmd, args, 0, 0)
            return {"checkpoint": self._checkpoint()}
        if cmd == "summary":
            _expect_args(cmd, args, 0, 0)
            return {"summary": ctl.session_summary()}
        raise custody_error(CUSTODY_E_BAD_REQUEST, f"Unknown command: {cmd}", command=cmd)

    def _checkpoint(self) -> Dict[str, Any]:
        if self._signing_key is None:
            self._signing_key = Ed25519KeyPair.generate("session")
        cp = sign_checkpoint(self.controller.ledger, self._signing_key, self.controller.now())
        ok, reason = verify_checkpoint(self.controller.ledger, cp, self._signing_key.public_key_hex)
        d = cp.to_dict()
        d["public_key_hex"] = self._signing_key.public_key_hex
        d["verified"] = {"ok": ok, "reason": reason}
        return d


def run_commands(
    lines: Iterable[str],
    controller: CustodyController,
    out: TextIO,
    fail_fast: bool = False,
) -> int:
    """Run script lines; return the number of rejected commands."""
    session = CommandSession(controller)
    errors = 0
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            _emit(session.execute(line), out)
        except CustodyError as e:
            errors += 1
            logger.debug("Line %d rejected: %s", lineno, e)
            _emit({"error": e.as_dict(), "line": lineno}, out)
            if fail_fast:
                break
    return errors


def _build_config(args: argparse.Namespace) -> CustodyConfig:
    config = load_config(args.config)
    if args.anchor_transfers:
        config.anchor_transfers = True
    return config


def cmd_run(args: argparse.Namespace) -> int:
    controller = CustodyController(config=args.custody_config)
    if args.script and args.script != "-":
        try:
            f = open(args.script, encoding="utf-8")
        except OSError as e:
            print(f"ERROR: cannot read script '{args.script}': {e}", file=sys.stderr)
            return 2
        with f:
            errors = run_commands(f, controller, sys.stdout, fail_fast=args.fail_fast)
    else:
        errors = run_commands(sys.stdin, controller, sys.stdout, fail_fast=args.fail_fast)
    if errors and args.fail_fast:
        return 1
    return 0


DEMO_SCRIPT = [
    "# 1: register E1",
    "register E1 sample Investigator",
    "# 2: register E2, check linkage",
    "register E2 'second item' Investigator",
    "verify",
    "# 3: transfer E1",
    "transfer E1 EvidenceOfficer",
    "history E1",
    "# 4: duplicate registration is rejected",
    "register E1 sample Investigator",
    "summary",
]


def cmd_demo(args: argparse.Namespace) -> int:
    controller = CustodyController(config=args.custody_config)
    run_commands(DEMO_SCRIPT, controller, sys.stdout)

    # 5: corrupt the first block's hash and verify again
    controller.ledger._replace_block(0, hash="f" * 64)
    _emit({"tampered_block": 0, "verify": controller.handle_verify().to_dict()}, sys.stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="custody",
        description="Evidence chain-of-custody ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", type=Path, help="Path to config JSON file")
    parser.add_argument("--anchor-transfers", action="store_true",
                        help="Anchor every custody transfer in the ledger")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Execute custody commands")
    run_parser.add_argument("script", nargs="?", help="Command file (default: stdin)")
    run_parser.add_argument("--fail-fast", action="store_true", help="Stop at the first rejected command")
    run_parser.set_defaults(func=cmd_run)

    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.set_defaults(func=cmd_demo)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        args.custody_config = _build_config(args)
    except CustodyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    setup_logging(args.verbose, args.custody_config.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
