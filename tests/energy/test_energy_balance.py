import numpy as np
import pandas as pd
import pytest

from solarpitch.core.debug import ListDebugCollector
from solarpitch.core.models import BatteryConfig, DAYS_IN_MONTH, MonthlyProfile
from solarpitch.energy.balance import BALANCE_COLUMNS, monthly_usable_capacity, simulate_balance

PRODUCTION = MonthlyProfile((500, 450, 600, 650, 700, 750, 780, 740, 600, 550, 480, 420))
CONSUMPTION = MonthlyProfile((580,) * 12)


def _simulate(battery=None, **kwargs):
    kwargs.setdefault("price_eur_kwh", 0.1952)
    kwargs.setdefault("feed_in_rate", 0.04)
    return simulate_balance(PRODUCTION, CONSUMPTION, battery or BatteryConfig(), **kwargs)


def test_reference_profile_totals():
    balance = _simulate()
    totals = balance.totals
    assert list(balance.monthly.columns) == BALANCE_COLUMNS
    assert len(balance.monthly) == 12
    assert totals.production_kwh == pytest.approx(7220.0)
    assert totals.consumption_kwh == pytest.approx(6960.0)
    assert totals.self_consumption_kwh == pytest.approx(6460.0)
    assert totals.surplus_kwh == pytest.approx(760.0)
    assert totals.import_kwh == pytest.approx(500.0)
    assert totals.saving_eur == pytest.approx(6460 * 0.1952)
    assert totals.feed_in_eur == pytest.approx(760 * 0.04)
    assert 0 < totals.self_consumption_pct < 100
    assert totals.self_production_pct == pytest.approx(6460 / 6960 * 100)


@pytest.mark.parametrize("simultaneity", [1.0, 0.85, 0.5])
@pytest.mark.parametrize("units", [0, 1, 3])
def test_conservation_holds_every_month(simultaneity, units):
    monthly = _simulate(BatteryConfig(units=units), simultaneity=simultaneity).monthly
    prod = monthly["production_kwh"]
    cons = monthly["consumption_kwh"]
    self_cons = monthly["self_consumption_kwh"]
    assert ((self_cons + monthly["surplus_kwh"] - prod).abs() <= 0.5).all()
    assert ((self_cons + monthly["import_kwh"] - cons).abs() <= 0.5).all()
    assert (self_cons - monthly["battery_transfer_kwh"] <= np.minimum(prod, cons) + 1e-9).all()
    assert (self_cons <= cons + 1e-9).all()
    assert (monthly[["surplus_kwh", "import_kwh", "battery_transfer_kwh"]] >= 0).all().all()


@pytest.mark.parametrize("model", ["daily", "flat"])
def test_battery_transfer_bounded(model):
    battery = BatteryConfig(units=1)
    balance = _simulate(battery, simultaneity=0.85, battery_model=model)
    monthly = balance.monthly
    base_self = np.minimum(monthly["production_kwh"], monthly["consumption_kwh"]) * 0.85
    surplus_before = monthly["production_kwh"] - base_self
    deficit_before = monthly["consumption_kwh"] - base_self
    usable = monthly_usable_capacity(battery, model)
    transfer = monthly["battery_transfer_kwh"]
    assert (transfer <= np.minimum(np.minimum(surplus_before, deficit_before), usable) + 1e-9).all()
    assert transfer.sum() > 0


def test_flat_model_caps_at_nameplate_capacity():
    balance = _simulate(BatteryConfig(units=1), simultaneity=0.5, battery_model="flat")
    assert balance.monthly["battery_transfer_kwh"].max() == pytest.approx(7.0)


def test_daily_capacity_weights_days_in_month():
    usable = monthly_usable_capacity(BatteryConfig(units=1), "daily")
    assert usable[0] == pytest.approx(7 * 0.9 * 31)
    assert usable[1] == pytest.approx(7 * 0.9 * 28)
    assert len(usable) == len(DAYS_IN_MONTH)
    with pytest.raises(ValueError):
        monthly_usable_capacity(BatteryConfig(units=1), "hourly")


def test_zero_battery_equals_baseline():
    baseline = _simulate(BatteryConfig(units=0), simultaneity=0.85)
    capacityless = _simulate(BatteryConfig(units=2, unit_kwh=0.0), simultaneity=0.85)
    pd.testing.assert_frame_equal(baseline.monthly, capacityless.monthly)
    assert baseline.totals == capacityless.totals


def test_pure_min_split_leaves_nothing_to_shift():
    with_batt = _simulate(BatteryConfig(units=3))
    assert with_batt.totals.battery_transfer_kwh == 0.0
    assert with_batt.totals == _simulate().totals


def test_zero_months_do_not_divide_by_zero():
    zeros = MonthlyProfile((0.0,) * 12)
    balance = simulate_balance(zeros, zeros, BatteryConfig(units=1), price_eur_kwh=0.2, feed_in_rate=0.04)
    assert balance.totals.self_consumption_pct == 0.0
    assert balance.totals.self_production_pct == 0.0


def test_feed_in_disabled_means_no_revenue():
    balance = _simulate(feed_in_rate=0.0)
    assert balance.totals.feed_in_eur == 0.0
    assert balance.totals.surplus_kwh == pytest.approx(760.0)


def test_emits_balance_summary():
    debug = ListDebugCollector()
    _simulate(debug=debug)
    assert debug.stages() == ["balance.summary"]
    assert debug.events[0]["payload"]["surplus_kwh"] == pytest.approx(760.0)


def test_rejects_invalid_simultaneity():
    with pytest.raises(ValueError):
        _simulate(simultaneity=1.5)
