import json

from solarpitch.core.debug import ListDebugCollector
from solarpitch.core.models import BatteryConfig, ForcedOverride, OptimizerSettings
from solarpitch.core.schema import ResponseValidator
from solarpitch.service import (
    AUDIT_FAILED,
    INVALID_INPUT,
    INVALID_RESPONSE_SCHEMA,
    NO_VIABLE_CANDIDATE,
    calculate_from_mapping,
    compute_scenarios,
    run_calculation,
    select_sizes,
)


def test_full_run_is_schema_verified(make_request):
    debug = ListDebugCollector()
    payload = run_calculation(make_request(), validator=ResponseValidator(), debug=debug)

    assert payload["ok"] is True
    assert payload["schema_verified"] is True
    assert payload["audit_ok"] is True
    assert payload["winner"]["code"] in {"A1", "A2", "B1", "B2"}
    assert all(sc["audit_ok"] is True for sc in payload["scenarios"].values())
    stages = set(debug.stages())
    assert {"optimizer.selection", "audit.summary", "scenario.winner"} <= stages
    assert "schema.unavailable" not in stages
    json.dumps(payload)


def test_missing_validator_marks_payload_unverified(make_request):
    debug = ListDebugCollector()
    payload = run_calculation(make_request(), debug=debug)
    assert payload["ok"] is True
    assert payload["schema_verified"] is False
    assert "schema.unavailable" in debug.stages()


def test_schema_mismatch_returns_failure(make_request):
    strict = ResponseValidator({"type": "object", "required": ["financing"]})
    debug = ListDebugCollector()
    payload = run_calculation(make_request(), validator=strict, debug=debug)
    assert payload == {
        "ok": False,
        "error": INVALID_RESPONSE_SCHEMA,
        "details": ["$: 'financing' is a required property"],
    }
    assert "schema.invalid" in debug.stages()


def test_infeasible_sizing_is_reported_as_data(make_request):
    req = make_request(optimizer=OptimizerSettings(min_panels=6, max_panels=8, budget_eur=100))
    payload = run_calculation(req)
    assert payload["ok"] is False
    assert payload["error"] == NO_VIABLE_CANDIDATE
    assert "No viable candidate" in payload["message"]
    assert payload["meta"]["budget_eur"] == 100


def test_audit_errors_block_the_response(make_request):
    # three forced units exceed a reference maximum of two
    req = make_request(forced=ForcedOverride(enabled=True, kwc=6.0, battery_units=3))
    failed = run_calculation(req, reference_battery=BatteryConfig(max_units=2))
    assert failed["ok"] is False
    assert failed["error"] == AUDIT_FAILED
    errors = [issue for issue in failed["audit"]["issues"] if issue["severity"] == "error"]
    assert {issue["code"] for issue in errors} == {"BAT_UNITS"}
    assert {issue["scenario"] for issue in errors} == {"A2", "B2"}
    assert "scenarios" not in failed


def test_request_battery_price_is_checked_against_catalogue(raw_request):
    raw_request["battery"]["unit_price_ht"] = 99999
    failed = calculate_from_mapping(raw_request)
    assert failed["ok"] is False
    assert failed["error"] == AUDIT_FAILED
    errors = [issue for issue in failed["audit"]["issues"] if issue["severity"] == "error"]
    assert {issue["code"] for issue in errors} == {"BAT_PRICE"}
    assert {issue["scenario"] for issue in errors} == {"A2", "B2"}


def test_price_mismatch_only_fails_battery_scenarios(make_request):
    req = make_request(battery=BatteryConfig(unit_price_ht=4000.0))
    _, scenarios, report = compute_scenarios(req)
    assert not report.ok
    assert {i.code for i in report.errors} == {"BAT_PRICE"}
    assert scenarios["A1"].audit_ok is True
    assert scenarios["A2"].audit_ok is False

    catalogue = compute_scenarios(make_request())[2]
    assert catalogue.ok


def test_forced_power_bypasses_optimizer(make_request):
    req = make_request(forced=ForcedOverride(enabled=True, kwc=6.0, variant="without_battery"))
    sizes = select_sizes(req)
    assert sizes.ok
    assert sizes.a is sizes.b
    assert sizes.meta["algorithm"] == "forced"

    payload = run_calculation(req, validator=ResponseValidator())
    assert payload["ok"] is True
    assert payload["selection"]["A"]["kwc"] == 6.0
    assert payload["selection"]["B"]["panels"] == 12
    assert payload["winner"]["code"] in {"A1", "B1"}
    assert payload["forced"]["variant"] == "without_battery"
    assert {sc["battery"]["units"] for sc in payload["scenarios"].values()} == {0}


def test_calculate_from_mapping(raw_request):
    payload = calculate_from_mapping(raw_request, validator=ResponseValidator())
    assert payload["ok"] is True
    assert payload["schema_verified"] is True

    raw_request["production"]["monthly_kwh"] = [100] * 11
    bad = calculate_from_mapping(raw_request)
    assert bad["ok"] is False
    assert bad["error"] == INVALID_INPUT
    assert "production.monthly_kwh" in bad["message"]

    assert calculate_from_mapping({"consumption": {}})["error"] == INVALID_INPUT
