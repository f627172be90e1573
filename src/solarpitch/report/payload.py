"""Render a calculation outcome as the outbound JSON payload.

All arithmetic upstream runs on unrounded values. Rounding is applied here
only: 2 decimals for currency, energy and percentages, 4 decimals for unit
prices, rates and LCOE.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from solarpitch.audit.checks import AuditReport
from solarpitch.core.models import CalcRequest
from solarpitch.engine.assemble import Winner
from solarpitch.engine.evaluate import Scenario
from solarpitch.engine.optimizer import OptimizationResult, SizeEvaluation
from solarpitch.report.charts import battery_impact, cumulative_gains, kpi_comparison, stacked_monthly

STAGE = "optimizer+audit+charts"
DEFAULT_DECIMALS = 2
FINE_DECIMALS = 4
FINE_KEYS = frozenset(
    {
        "lcoe_eur_kwh",
        "price_eur_kwh",
        "effective_price",
        "variable_price_avg",
        "feed_in_rate",
        "rate_below_tier",
        "rate_at_or_above_tier",
        "score",
    }
)


@dataclass(frozen=True)
class CalcOutcome:
    request: CalcRequest
    optimization: OptimizationResult
    scenarios: Dict[str, Scenario]
    winner: Winner
    audit: AuditReport

    @property
    def a(self) -> SizeEvaluation:
        return self.optimization.a

    @property
    def b(self) -> SizeEvaluation:
        return self.optimization.b


def round_value(value: Any, decimals: int = DEFAULT_DECIMALS) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return round(value, decimals)


def round_mapping(data: Mapping[str, Any], decimals: int = DEFAULT_DECIMALS) -> Dict[str, Any]:
    """Round every float in ``data`` (recursively) and coerce numpy scalars."""
    out: Dict[str, Any] = {}
    for key, val in data.items():
        if val is None or isinstance(val, (bool, str)):
            out[key] = val
        elif isinstance(val, np.bool_):
            out[key] = bool(val)
        elif isinstance(val, (int, np.integer)):
            out[key] = int(val)
        elif isinstance(val, (float, np.floating)):
            out[key] = round_value(val, FINE_DECIMALS if key in FINE_KEYS else decimals)
        elif isinstance(val, Mapping):
            out[key] = round_mapping(val, decimals)
        else:
            out[key] = val
    return out


def frame_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    return [round_mapping(row) for row in frame.to_dict(orient="records")]


def failure_payload(error: str, **extra: Any) -> Dict[str, Any]:
    return {"ok": False, "error": error, **extra}


def scenario_to_dict(sc: Scenario) -> Dict[str, Any]:
    battery = sc.candidate.battery
    totals = asdict(sc.balance.totals)
    totals["self_consumption_pct"] = sc.balance.totals.self_consumption_pct
    totals["self_production_pct"] = sc.balance.totals.self_production_pct
    return {
        "label": sc.label,
        "variant": sc.candidate.variant,
        "panels": sc.candidate.panels,
        "kwc": round_value(sc.kwc),
        "audit_ok": sc.audit_ok,
        "battery": round_mapping(
            {
                "units": battery.units,
                "unit_kwh": battery.unit_kwh,
                "capacity_kwh": battery.capacity_kwh,
                "unit_price_ht": battery.unit_price_ht,
            }
        ),
        "capex": round_mapping(sc.candidate.capex.to_dict()),
        "tariffs": round_mapping(
            {
                "price_eur_kwh": sc.balance.price_eur_kwh,
                "feed_in_rate": sc.balance.feed_in_rate,
                "premium_eur": sc.premium_eur,
            }
        ),
        "year1": {
            "monthly": frame_records(sc.balance.monthly),
            "totals": round_mapping(totals),
        },
        "projection": frame_records(sc.projection.years),
        "kpis": round_mapping(asdict(sc.kpis)),
    }


def _selection(size: SizeEvaluation) -> Dict[str, Any]:
    return {
        **round_mapping(
            {
                "panels": size.panels,
                "kwc": size.kwc,
                "variant": size.variant,
                "score": size.score,
                "capex_ttc": size.capex_ttc,
            }
        ),
        "kpis": round_mapping(asdict(size.best.kpis)),
    }


def _meta(outcome: CalcOutcome) -> Dict[str, Any]:
    req = outcome.request
    tariffs = req.effective_tariffs
    battery = req.battery
    return round_mapping(
        {
            **outcome.optimization.meta,
            "tariffs": {
                "effective_price": tariffs.effective_price,
                "variable_pricing": tariffs.variable_pricing,
                "variable_price_avg": tariffs.variable_price_avg if tariffs.variable_pricing else None,
                "inflation_pct": tariffs.inflation_rate * 100.0,
                "degradation_pct": tariffs.degradation_rate * 100.0,
                "horizon_years": tariffs.horizon_years,
            },
            "feed_in": {
                "enabled": tariffs.feed_in_enabled,
                "rate_below_tier": tariffs.feed_in_low_eur_kwh,
                "rate_at_or_above_tier": tariffs.feed_in_high_eur_kwh,
                "tier_kwc": tariffs.tier_kwc,
            },
            "battery_config": {
                "enabled": req.battery_enabled,
                "unit_kwh": battery.unit_kwh,
                "unit_price_ht": battery.unit_price_ht,
                "max_units": battery.max_units,
                "units_requested": battery.units,
                "model": req.optimizer.battery_model,
            },
            "simultaneity_factor": req.simultaneity_factor,
        }
    )


def _forced(req: CalcRequest) -> Optional[Dict[str, Any]]:
    forced = req.forced
    if not forced.is_active:
        return None
    return round_mapping(
        {
            "kwc": forced.forced_kwc,
            "battery_units": forced.forced_battery_units,
            "variant": forced.forced_variant,
            "feed_in_enabled": forced.feed_in_enabled,
        }
    )


def build_charts(outcome: CalcOutcome) -> Dict[str, Any]:
    scenarios = outcome.scenarios
    winner = scenarios[outcome.winner.code]
    return {
        "stacked_monthly": frame_records(stacked_monthly(winner)),
        "cumulative_gains": frame_records(cumulative_gains(scenarios)),
        "kpi_comparison": frame_records(kpi_comparison(scenarios)),
        "battery_impact": {
            prefix: round_mapping(battery_impact(scenarios[f"{prefix}1"], scenarios[f"{prefix}2"]))
            for prefix in ("A", "B")
        },
    }


def build_response(outcome: CalcOutcome) -> Dict[str, Any]:
    """Outbound payload; ``schema_verified`` stays false until a validator passes it."""
    return {
        "ok": True,
        "stage": STAGE,
        "meta": _meta(outcome),
        "selection": {"A": _selection(outcome.a), "B": _selection(outcome.b)},
        "winner": {"code": outcome.winner.code, "reason": outcome.winner.reason},
        "forced": _forced(outcome.request),
        "scenarios": {code: scenario_to_dict(sc) for code, sc in outcome.scenarios.items()},
        "charts": build_charts(outcome),
        "audit_ok": outcome.audit.ok,
        "audit": outcome.audit.to_dict(),
        "schema_verified": False,
    }


__all__ = [
    "CalcOutcome",
    "round_value",
    "round_mapping",
    "frame_records",
    "failure_payload",
    "scenario_to_dict",
    "build_charts",
    "build_response",
]
