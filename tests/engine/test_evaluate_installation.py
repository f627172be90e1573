import pytest

from solarpitch.core.models import ForcedOverride, TariffConfig
from solarpitch.engine.evaluate import evaluate_installation


def test_reference_scenario_end_to_end(make_request):
    req = make_request(production_reference_kwc=2.91)
    sc = evaluate_installation(req, 6, 0, label="A1")

    assert sc.kwc == 2.91
    assert sc.candidate.variant == "without_battery"
    assert sc.capex_ttc == pytest.approx(6282.0)
    assert sc.premium_eur == pytest.approx(232.8)
    assert sc.balance.feed_in_rate == 0.04
    totals = sc.balance.totals
    assert totals.production_kwh == pytest.approx(7220.0)
    monthly = sc.balance.monthly
    assert (monthly["self_consumption_kwh"] <= monthly[["production_kwh", "consumption_kwh"]].min(axis=1) + 1e-9).all()
    assert 0 < sc.kpis.self_consumption_pct < 100
    assert sc.kpis.lcoe_eur_kwh > 0
    assert sc.kpis.payback_years is not None
    assert sc.audit_ok is None


def test_production_scales_with_power(make_request):
    req = make_request(production_reference_kwc=3.4)
    small = evaluate_installation(req, 7, 0)
    large = evaluate_installation(req, 14, 0)
    assert small.balance.totals.production_kwh == pytest.approx(7220.0 * small.kwc / 3.4)
    assert large.balance.totals.production_kwh == pytest.approx(small.balance.totals.production_kwh * large.kwc / small.kwc)


def test_high_tier_feed_in_applies_at_nine_kwc(make_request):
    sc = evaluate_installation(make_request(), 19, 0, kwc=9.0)
    assert sc.kwc == 9.0
    assert sc.balance.feed_in_rate == 0.0617
    assert sc.premium_eur == pytest.approx(180.0 * 9.0)


def test_forced_feed_in_off_zeroes_revenue(make_request):
    req = make_request(forced=ForcedOverride(feed_in_enabled=False))
    sc = evaluate_installation(req, 20, 0)
    assert sc.tariffs.feed_in_enabled is False
    assert sc.balance.feed_in_rate == 0.0
    assert sc.balance.totals.feed_in_eur == 0.0


def test_with_battery_variant_costs_more(make_request):
    req = make_request(tariffs=TariffConfig(), simultaneity_factor=0.85)
    without = evaluate_installation(req, 10, 0)
    with_batt = evaluate_installation(req, 10, 1)
    assert with_batt.candidate.variant == "with_battery"
    assert with_batt.capex_ttc - without.capex_ttc == pytest.approx(3750 * 1.2)
    assert with_batt.balance.totals.self_consumption_kwh > without.balance.totals.self_consumption_kwh
