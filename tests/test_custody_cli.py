import io
import json

import pytest

import custody_cli
from custody_ledger.config import CustodyConfig
from custody_ledger.controller import CustodyController
from custody_ledger.errors import CUSTODY_E_BAD_REQUEST, CUSTODY_E_DUPLICATE_ID


def _run(lines, config=None, fail_fast=False):
    out = io.StringIO()
    ctl = CustodyController(config=config)
    errors = custody_cli.run_commands(lines, ctl, out, fail_fast=fail_fast)
    return errors, [json.loads(line) for line in out.getvalue().splitlines()], ctl


def test_run_commands_basic_flow():
    errors, results, ctl = _run([
        "# comment",
        "",
        "register E1 sample",
        "register E2 'two words' Analyst",
        "transfer E1",
        "history E1",
        "verify",
        "list",
    ])
    assert errors == 0
    assert results[0]["register"]["block_index"] == 0
    assert results[1]["register"]["id"] == "E2"
    assert results[2]["transfer"] == {"id": "E1", "new_custodian": "EvidenceOfficer", "block_index": None}
    assert [h["to"] for h in results[3]["history"]] == ["Investigator", "EvidenceOfficer"]
    assert results[4]["verify"]["valid"] is True
    assert [e["id"] for e in results[5]["evidence"]] == ["E1", "E2"]


def test_run_commands_reports_errors_and_continues():
    errors, results, _ = _run([
        "register E1 sample",
        "register E1 sample",
        "transfer nope",
        "frobnicate",
        "verify",
    ])
    assert errors == 3
    assert results[1]["error"]["code"] == CUSTODY_E_DUPLICATE_ID
    assert results[1]["line"] == 2
    assert results[3]["error"]["code"] == CUSTODY_E_BAD_REQUEST
    assert results[4]["verify"]["valid"] is True


def test_run_commands_fail_fast():
    errors, results, _ = _run(["register E1 a", "register E1 a", "register E2 b"], fail_fast=True)
    assert errors == 1
    assert len(results) == 2


def test_wrong_arity_and_unbalanced_quotes():
    errors, results, _ = _run(["register E1", "verify now", "register 'E1 sample"])
    assert errors == 3
    assert all(r["error"]["code"] == CUSTODY_E_BAD_REQUEST for r in results)


def test_history_of_unknown_item_is_null():
    _, results, _ = _run(["history ghost"])
    assert results == [{"id": "ghost", "history": None}]


def test_checkpoint_and_summary():
    _, results, ctl = _run(["register E1 a", "checkpoint", "summary"])
    cp = results[1]["checkpoint"]
    assert cp["length"] == 1
    assert cp["head_hash"] == ctl.ledger.head_hash()
    assert cp["verified"] == {"ok": True, "reason": "OK"}
    assert results[2]["summary"]["block_count"] == 1


def test_anchor_transfers_config():
    _, results, ctl = _run(["register E1 a", "transfer E1 Prosecutor"], config=CustodyConfig(anchor_transfers=True))
    assert results[1]["transfer"]["block_index"] == 1
    assert len(ctl.ledger) == 2


def test_main_run_from_file(tmp_path, capsys):
    script = tmp_path / "cmds.txt"
    script.write_text("register E1 sample\nverify\n", encoding="utf-8")
    rc = custody_cli.main(["run", str(script)])
    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert json.loads(lines[1]) == {"verify": {"valid": True, "at_index": None, "reason": "OK"}}


def test_main_fail_fast_exit_code(tmp_path):
    script = tmp_path / "cmds.txt"
    script.write_text("transfer E1\n", encoding="utf-8")
    assert custody_cli.main(["run", "--fail-fast", str(script)]) == 1


def test_main_anchor_flag(tmp_path, capsys):
    script = tmp_path / "cmds.txt"
    script.write_text("register E1 a\ntransfer E1\nsummary\n", encoding="utf-8")
    assert custody_cli.main(["--anchor-transfers", "run", str(script)]) == 0
    summary = json.loads(capsys.readouterr().out.splitlines()[-1])["summary"]
    assert summary["block_count"] == 2
    assert summary["anchor_transfers"] is True


def test_main_bad_config(tmp_path, capsys):
    cfg = tmp_path / "bad.json"
    cfg.write_text("{oops", encoding="utf-8")
    assert custody_cli.main(["--config", str(cfg), "demo"]) == 2
    assert "CUSTODY_E_CONFIG" in capsys.readouterr().err


def test_main_without_command_prints_help(capsys):
    assert custody_cli.main([]) == 1


def test_demo_shows_tamper_detection(capsys):
    assert custody_cli.main(["demo"]) == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0]["register"]["block_index"] == 0
    assert any(r.get("error", {}).get("code") == CUSTODY_E_DUPLICATE_ID for r in lines)
    assert lines[-1]["verify"] == {"valid": False, "at_index": 1, "reason": "CHAIN_BROKEN"}


def test_main_missing_script(tmp_path, capsys):
    assert custody_cli.main(["run", str(tmp_path / "absent.txt")]) == 2
    assert "cannot read script" in capsys.readouterr().err


def test_checkpoint_uses_controller_clock():
    out = io.StringIO()
    ctl = CustodyController(clock=lambda: 1_234_567)
    custody_cli.run_commands(["register E1 a", "checkpoint"], ctl, out)
    cp = json.loads(out.getvalue().splitlines()[1])["checkpoint"]
    assert cp["created_at"] == 1_234_567
    assert cp["verified"]["ok"] is True
