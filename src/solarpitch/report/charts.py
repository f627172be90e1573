"""Chart-ready aggregates derived from computed scenarios.

Every builder returns unrounded values; rounding happens when the response
payload is rendered.
"""
from __future__ import annotations

from typing import Dict, Mapping

import pandas as pd

from solarpitch.engine.evaluate import Scenario

STACKED_COLUMNS = ["month", "production_kwh", "consumption_kwh", "self_consumption_kwh", "surplus_kwh", "import_kwh"]
KPI_COLUMNS = [
    "scenario",
    "roi_pct",
    "irr_pct",
    "lcoe_eur_kwh",
    "gains_total_eur",
    "payback_years",
    "self_production_pct",
]


def stacked_monthly(scenario: Scenario) -> pd.DataFrame:
    return scenario.balance.monthly[STACKED_COLUMNS].copy()


def cumulative_gains(scenarios: Mapping[str, Scenario]) -> pd.DataFrame:
    """Long table of yearly and cumulative gains, one block per scenario."""
    frames = []
    for code, sc in scenarios.items():
        years = sc.projection.years[["year", "gain_eur", "cumulative_gain_eur"]].copy()
        years.insert(0, "scenario", code)
        frames.append(years)
    if not frames:
        return pd.DataFrame(columns=["scenario", "year", "gain_eur", "cumulative_gain_eur"])
    return pd.concat(frames, ignore_index=True)


def kpi_comparison(scenarios: Mapping[str, Scenario]) -> pd.DataFrame:
    rows = []
    for code, sc in scenarios.items():
        k = sc.kpis
        rows.append(
            {
                "scenario": code,
                "roi_pct": k.roi_pct,
                "irr_pct": k.irr_pct,
                "lcoe_eur_kwh": k.lcoe_eur_kwh,
                "gains_total_eur": k.gains_total_eur,
                "payback_years": k.payback_years,
                "self_production_pct": k.self_production_pct,
            }
        )
    return pd.DataFrame(rows, columns=KPI_COLUMNS)


def _impact_side(sc: Scenario) -> Dict[str, float]:
    return {
        "self_production_pct": sc.kpis.self_production_pct,
        "roi_pct": sc.kpis.roi_pct,
        "irr_pct": sc.kpis.irr_pct,
        "surplus_kwh": sc.balance.totals.surplus_kwh,
    }


def battery_impact(without: Scenario, with_battery: Scenario) -> Dict[str, Dict[str, float]]:
    """Side-by-side KPIs of one size without and with battery, plus deltas."""
    base = _impact_side(without)
    batt = _impact_side(with_battery)
    return {
        "without_battery": base,
        "with_battery": batt,
        "deltas": {key: batt[key] - base[key] for key in base},
    }


__all__ = ["STACKED_COLUMNS", "KPI_COLUMNS", "stacked_monthly", "cumulative_gains", "kpi_comparison", "battery_impact"]
