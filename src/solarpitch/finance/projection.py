"""Multi-year financial projection and KPIs for one installation.

Year ``a`` scales year-1 energy by ``(1 - degradation)^(a-1)`` and the purchase
price by ``(1 + inflation)^(a-1)``. The feed-in rate stays fixed and the
one-time premium is paid in year 1 only.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import TariffConfig
from solarpitch.energy.balance import EnergyBalance
from solarpitch.finance.irr import IrrResult, irr

PROJECTION_COLUMNS = [
    "year",
    "production_kwh",
    "saving_eur",
    "feed_in_eur",
    "premium_eur",
    "gain_eur",
    "cumulative_gain_eur",
]


@dataclass(frozen=True)
class KPISet:
    payback_years: Optional[int]
    roi_pct: float
    irr_pct: float
    irr_at_bound: bool
    lcoe_eur_kwh: float
    self_consumption_pct: float
    self_production_pct: float
    gains_year1_eur: float
    gains_total_eur: float

    def ranking_key(self) -> tuple:
        """Priority order used to compare installations: IRR, ROI, lifetime gains."""
        return (self.irr_pct, self.roi_pct, self.gains_total_eur)


@dataclass(frozen=True)
class Projection:
    years: pd.DataFrame
    kpis: KPISet
    capex_ttc: float
    premium_eur: float

    @property
    def horizon(self) -> int:
        return len(self.years)

    def cashflows(self) -> List[float]:
        return [-self.capex_ttc] + [float(v) for v in self.years["gain_eur"]]


def payback_year(cumulative: pd.Series, capex: float) -> Optional[int]:
    """First year whose cumulative gain covers CAPEX, else ``None``."""
    reached = cumulative[cumulative >= capex]
    if reached.empty:
        return None
    return int(reached.index[0]) + 1


def project(
    balance: EnergyBalance,
    capex_ttc: float,
    tariffs: TariffConfig,
    premium_eur: float,
    debug: DebugCollector | None = None,
) -> Projection:
    debug = debug or NullDebugCollector()
    totals = balance.totals
    horizon = tariffs.horizon_years

    years = np.arange(1, horizon + 1)
    scale = (1.0 - tariffs.degradation_rate) ** (years - 1)
    price = balance.price_eur_kwh * (1.0 + tariffs.inflation_rate) ** (years - 1)

    saving = totals.self_consumption_kwh * scale * price
    feed_in = totals.surplus_kwh * scale * balance.feed_in_rate
    premium = np.where(years == 1, premium_eur, 0.0)
    gain = saving + feed_in + premium

    frame = pd.DataFrame(
        {
            "year": years,
            "production_kwh": totals.production_kwh * scale,
            "saving_eur": saving,
            "feed_in_eur": feed_in,
            "premium_eur": premium,
            "gain_eur": gain,
            "cumulative_gain_eur": np.cumsum(gain),
        },
        columns=PROJECTION_COLUMNS,
    )

    gains_year1 = float(gain[0])
    gains_total = float(frame["cumulative_gain_eur"].iloc[-1])
    lifetime_kwh = float(frame["production_kwh"].sum())
    solved: IrrResult = irr([-capex_ttc] + gain.tolist())
    if solved.at_bound:
        debug.emit("irr.bound", {"rate": solved.rate, "capex_ttc": capex_ttc, "gains_total_eur": gains_total})

    kpis = KPISet(
        payback_years=payback_year(frame["cumulative_gain_eur"], capex_ttc),
        roi_pct=gains_year1 / capex_ttc * 100.0 if capex_ttc > 0 else 0.0,
        irr_pct=solved.pct,
        irr_at_bound=solved.at_bound,
        lcoe_eur_kwh=capex_ttc / max(lifetime_kwh, 1.0),
        self_consumption_pct=totals.self_consumption_pct,
        self_production_pct=totals.self_production_pct,
        gains_year1_eur=gains_year1,
        gains_total_eur=gains_total,
    )

    debug.emit(
        "projection.summary",
        {
            "capex_ttc": capex_ttc,
            "gains_year1_eur": gains_year1,
            "gains_total_eur": gains_total,
            "payback_years": kpis.payback_years,
            "irr_pct": kpis.irr_pct,
        },
    )
    return Projection(years=frame, kpis=kpis, capex_ttc=capex_ttc, premium_eur=premium_eur)


__all__ = ["KPISet", "Projection", "PROJECTION_COLUMNS", "payback_year", "project"]
