from pathlib import Path
import json

import pandas as pd
import yaml
from typer.testing import CliRunner

from solarpitch import cli


runner = CliRunner()


def _write_request(tmp_path: Path, raw: dict, name: str = "request.yaml") -> Path:
    path = tmp_path / name
    if path.suffix == ".json":
        path.write_text(json.dumps(raw))
    else:
        path.write_text(yaml.safe_dump(raw))
    return path


def test_help_exits_zero():
    res = runner.invoke(cli.app, ["--help"])
    assert res.exit_code == 0
    for command in ("run", "audit", "validate"):
        assert command in res.stdout


def test_version_flag():
    res = runner.invoke(cli.app, ["--version"])
    assert res.exit_code == 0
    assert res.stdout.strip() == cli.__version__


def test_run_command_smoke(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request)
    out_json = tmp_path / "out.json"
    debug_path = tmp_path / "debug.jsonl"

    res = runner.invoke(
        cli.app,
        ["run", "--request", str(req), "--output", str(out_json), "--debug", str(debug_path)],
    )
    assert res.exit_code == 0, res.output
    data = json.loads(out_json.read_text())
    assert data["ok"] is True
    assert data["schema_verified"] is True
    assert set(data["scenarios"]) == {"A1", "A2", "B1", "B2"}
    assert f"Winner: {data['winner']['code']}" in res.stdout
    assert debug_path.exists()
    assert debug_path.read_text().strip() != ""


def test_run_csv_writes_kpi_table(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request, "request.json")
    out_csv = tmp_path / "kpis.csv"

    res = runner.invoke(cli.app, ["run", "-r", str(req), "-f", "csv", "--output", str(out_csv), "--no-schema"])
    assert res.exit_code == 0, res.output
    table = pd.read_csv(out_csv)
    assert list(table["scenario"]) == ["A1", "A2", "B1", "B2"]
    assert "irr_pct" in table.columns


def test_run_rejects_unknown_format(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request)
    res = runner.invoke(cli.app, ["run", "-r", str(req), "-f", "xml"])
    assert res.exit_code == 1


def test_run_infeasible_writes_failure_and_exits(tmp_path, raw_request):
    raw_request["optimizer"]["budget_eur"] = 100
    req = _write_request(tmp_path, raw_request)
    out_json = tmp_path / "out.json"

    res = runner.invoke(cli.app, ["run", "-r", str(req), "--output", str(out_json)])
    assert res.exit_code == 1
    data = json.loads(out_json.read_text())
    assert data["ok"] is False
    assert data["error"] == "NO_VIABLE_CANDIDATE"


def test_run_invalid_request_exits(tmp_path, raw_request):
    raw_request["consumption"]["monthly_kwh"] = [100] * 5
    req = _write_request(tmp_path, raw_request)
    res = runner.invoke(cli.app, ["run", "-r", str(req), "--output", str(tmp_path / "out.json")])
    assert res.exit_code == 1
    assert not (tmp_path / "out.json").exists()


def test_audit_command_reports_ok(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request)
    res = runner.invoke(cli.app, ["audit", "--request", str(req)])
    assert res.exit_code == 0, res.output
    assert "Audit OK" in res.stdout
    for code in ("A1:", "A2:", "B1:", "B2:"):
        assert code in res.stdout


def test_validate_command_exit_codes(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request)
    good = tmp_path / "good.json"
    assert runner.invoke(cli.app, ["run", "-r", str(req), "--output", str(good)]).exit_code == 0

    res = runner.invoke(cli.app, ["validate", str(good)])
    assert res.exit_code == 0
    assert f"OK: {good}" in res.stdout

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"ok": "yes"}))
    res = runner.invoke(cli.app, ["validate", str(good), str(invalid)])
    assert res.exit_code == 2
    assert f"INVALID: {invalid}" in res.stdout
    assert "  - $.ok: 'yes' is not of type 'boolean'" in res.stdout

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    res = runner.invoke(cli.app, ["validate", str(invalid), str(broken)])
    assert res.exit_code == 3
    assert f"ERROR: {broken}" in res.stdout


def test_run_json_debug_trace_is_written_on_exit(tmp_path, raw_request):
    req = _write_request(tmp_path, raw_request)
    trace = tmp_path / "trace.json"
    res = runner.invoke(
        cli.app, ["run", "-r", str(req), "--output", str(tmp_path / "out.json"), "--debug", str(trace)]
    )
    assert res.exit_code == 0, res.output
    events = json.loads(trace.read_text())
    assert events[0]["seq"] == 1
    assert "audit.summary" in {e["stage"] for e in events}
