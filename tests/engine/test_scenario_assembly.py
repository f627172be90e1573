from dataclasses import replace

import pytest

from solarpitch.core.debug import ListDebugCollector
from solarpitch.core.models import BatteryConfig, ForcedOverride
from solarpitch.engine import assemble_scenarios, optimize, pick_winner
from solarpitch.engine.assemble import SCENARIO_CODES, WINNER_REASON, scenario_battery_units
from solarpitch.engine.evaluate import evaluate_installation
from solarpitch.engine.optimizer import forced_size


def _scenarios(req):
    result = optimize(req)
    assert result.ok
    return result, assemble_scenarios(req, result.a, result.b)


def test_four_scenarios_in_order(make_request):
    result, scenarios = _scenarios(make_request())
    assert tuple(scenarios) == SCENARIO_CODES
    assert scenarios["A1"].kwc == scenarios["A2"].kwc == result.a.kwc
    assert scenarios["B1"].kwc == scenarios["B2"].kwc == result.b.kwc
    for code, sc in scenarios.items():
        assert sc.label == code
    assert scenarios["A1"].candidate.battery.units == 0
    assert scenarios["A2"].candidate.battery.units == 1
    assert scenarios["B2"].candidate.variant == "with_battery"


def test_requested_battery_units_used_for_with_battery_scenarios(make_request):
    req = make_request(battery=BatteryConfig(units=2), battery_enabled=True)
    _, scenarios = _scenarios(req)
    assert scenarios["A2"].candidate.battery.units == 2
    assert scenarios["B2"].candidate.battery.units == 2
    assert scenarios["A2"].candidate.capex.battery_ht == 7500.0
    assert scenarios["A1"].candidate.battery.units == 0


def test_winner_follows_priority_order(make_request):
    debug = ListDebugCollector()
    _, scenarios = _scenarios(make_request())
    winner = pick_winner(scenarios, debug=debug)
    expected = max(scenarios.values(), key=lambda s: s.kpis.ranking_key())
    assert winner.code == expected.label
    assert winner.reason == WINNER_REASON
    assert debug.events[-1]["stage"] == "scenario.winner"
    assert debug.events[-1]["scenario"] == winner.code


def test_winner_ties_keep_insertion_order(make_request):
    base = evaluate_installation(make_request(), 8, 0)
    scenarios = {code: replace(base, label=code) for code in ("B1", "A1", "A2")}
    assert pick_winner(scenarios).code == "B1"


def test_forced_with_battery_fits_battery_to_all_scenarios(make_request):
    req = make_request(forced=ForcedOverride(enabled=True, variant="with_battery"))
    _, scenarios = _scenarios(req)
    assert {code: sc.candidate.battery.units for code, sc in scenarios.items()} == {
        "A1": 1,
        "A2": 1,
        "B1": 1,
        "B2": 1,
    }
    winner = pick_winner(scenarios, variant=req.forced.forced_variant)
    assert "with_battery" in winner.reason


def test_forced_without_battery_empties_all_scenarios(make_request):
    req = make_request(
        battery=BatteryConfig(units=2),
        battery_enabled=True,
        forced=ForcedOverride(enabled=True, variant="without_battery"),
    )
    _, scenarios = _scenarios(req)
    assert {sc.candidate.battery.units for sc in scenarios.values()} == {0}
    assert scenarios["A2"].kpis == scenarios["A1"].kpis
    assert scenario_battery_units(req, 2) == 0


def test_disabled_override_keeps_variant_slots(make_request):
    req = make_request(forced=ForcedOverride(enabled=False, variant="without_battery"))
    assert scenario_battery_units(req, 1) == 0
    assert scenario_battery_units(req, 2) == 1


def test_forced_power_builds_identical_sizes(make_request):
    req = make_request(forced=ForcedOverride(enabled=True, kwc=6.0, battery_units=3))
    size = forced_size(req, req.forced.forced_kwc)
    scenarios = assemble_scenarios(req, size, size)
    assert {sc.kwc for sc in scenarios.values()} == {6.0}
    assert scenarios["A2"].candidate.battery.units == 3
    assert scenarios["B2"].capex_ttc == pytest.approx(scenarios["A2"].capex_ttc)
