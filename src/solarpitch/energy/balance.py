"""Monthly energy balance with an optional battery transfer.

Splits each month's production and consumption into self-consumption, surplus
(exported) and grid import. A battery moves part of the surplus into the
deficit of the same month, bounded by its usable monthly capacity.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import DAYS_IN_MONTH, MONTHS, BatteryConfig, MonthlyProfile

BALANCE_COLUMNS = [
    "month",
    "production_kwh",
    "consumption_kwh",
    "self_consumption_kwh",
    "surplus_kwh",
    "import_kwh",
    "battery_transfer_kwh",
    "saving_eur",
    "feed_in_eur",
]

ENERGY_FIELDS = ("production_kwh", "consumption_kwh", "self_consumption_kwh", "surplus_kwh", "import_kwh")


def _ratio_pct(num: float, den: float) -> float:
    return num / max(den, 1.0) * 100.0


@dataclass(frozen=True)
class AnnualTotals:
    production_kwh: float
    consumption_kwh: float
    self_consumption_kwh: float
    surplus_kwh: float
    import_kwh: float
    battery_transfer_kwh: float
    saving_eur: float
    feed_in_eur: float

    @property
    def self_consumption_pct(self) -> float:
        """Share of production consumed on site."""
        return _ratio_pct(self.self_consumption_kwh, self.production_kwh)

    @property
    def self_production_pct(self) -> float:
        """Share of consumption covered by on-site production."""
        return _ratio_pct(self.self_consumption_kwh, self.consumption_kwh)

    @classmethod
    def from_monthly(cls, monthly: pd.DataFrame) -> "AnnualTotals":
        sums = monthly[BALANCE_COLUMNS[1:]].sum()
        return cls(**{col: float(sums[col]) for col in BALANCE_COLUMNS[1:]})


@dataclass(frozen=True)
class EnergyBalance:
    monthly: pd.DataFrame
    totals: AnnualTotals
    price_eur_kwh: float
    feed_in_rate: float
    battery_capacity_kwh: float


def monthly_usable_capacity(battery: BatteryConfig, model: str = "daily") -> np.ndarray:
    """Usable energy the battery can shift per month (kWh).

    ``daily`` weights one cycle per day by the number of days in the month;
    ``flat`` grants the nameplate capacity once per month.
    """

    capacity = battery.capacity_kwh
    if model == "daily":
        days = np.asarray(DAYS_IN_MONTH, dtype=float)
        return capacity * battery.depth_of_discharge * battery.cycles_per_day * days
    if model == "flat":
        return np.full(12, capacity, dtype=float)
    raise ValueError(f"Unsupported battery model: {model}")


def simulate_balance(
    production: MonthlyProfile,
    consumption: MonthlyProfile,
    battery: BatteryConfig,
    price_eur_kwh: float,
    feed_in_rate: float,
    battery_model: str = "daily",
    simultaneity: float = 1.0,
    debug: DebugCollector | None = None,
) -> EnergyBalance:
    """Compute the 12-month energy balance for one installation.

    ``simultaneity`` is the share of min(production, consumption) that is
    actually consumed on site before any battery transfer. Below 1 a month holds
    both surplus and deficit, which is what the battery can shift.
    """

    debug = debug or NullDebugCollector()

    prod = np.asarray(production.values, dtype=float)
    cons = np.asarray(consumption.values, dtype=float)

    if not (0 < simultaneity <= 1):
        raise ValueError("simultaneity must be in (0, 1]")
    base_self = np.minimum(prod, cons) * simultaneity
    surplus = np.maximum(prod - base_self, 0.0)
    deficit = np.maximum(cons - base_self, 0.0)

    transfer = np.zeros(12, dtype=float)
    if battery.capacity_kwh > 0:
        usable = monthly_usable_capacity(battery, battery_model)
        transfer = np.minimum(np.minimum(surplus, deficit), usable)

    self_cons = base_self + transfer
    surplus = surplus - transfer
    grid_import = np.maximum(cons - self_cons, 0.0)

    monthly = pd.DataFrame(
        {
            "month": list(MONTHS),
            "production_kwh": prod,
            "consumption_kwh": cons,
            "self_consumption_kwh": self_cons,
            "surplus_kwh": surplus,
            "import_kwh": grid_import,
            "battery_transfer_kwh": transfer,
            "saving_eur": self_cons * price_eur_kwh,
            "feed_in_eur": surplus * feed_in_rate,
        },
        columns=BALANCE_COLUMNS,
    )
    totals = AnnualTotals.from_monthly(monthly)

    debug.emit(
        "balance.summary",
        {
            "production_kwh": totals.production_kwh,
            "self_consumption_kwh": totals.self_consumption_kwh,
            "surplus_kwh": totals.surplus_kwh,
            "import_kwh": totals.import_kwh,
            "battery_transfer_kwh": totals.battery_transfer_kwh,
            "battery_model": battery_model,
            "simultaneity": simultaneity,
        },
    )

    return EnergyBalance(
        monthly=monthly,
        totals=totals,
        price_eur_kwh=price_eur_kwh,
        feed_in_rate=feed_in_rate,
        battery_capacity_kwh=battery.capacity_kwh,
    )


__all__ = [
    "AnnualTotals",
    "EnergyBalance",
    "BALANCE_COLUMNS",
    "ENERGY_FIELDS",
    "monthly_usable_capacity",
    "simulate_balance",
]
