"""Evaluate one installation: energy balance, CAPEX and projection."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from solarpitch.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from solarpitch.core.models import BatteryConfig, CalcRequest, TariffConfig, panels_to_kwc
from solarpitch.energy.balance import EnergyBalance, simulate_balance
from solarpitch.finance.capex import CapexBreakdown, compute_capex
from solarpitch.finance.projection import KPISet, Projection, project


@dataclass(frozen=True)
class InstallationCandidate:
    panels: int
    kwc: float
    battery: BatteryConfig
    capex: CapexBreakdown

    @property
    def variant(self) -> str:
        return "with_battery" if self.battery.units > 0 else "without_battery"


@dataclass(frozen=True)
class Scenario:
    label: str
    candidate: InstallationCandidate
    balance: EnergyBalance
    projection: Projection
    tariffs: TariffConfig
    audit_ok: Optional[bool] = None

    @property
    def kpis(self) -> KPISet:
        return self.projection.kpis

    @property
    def kwc(self) -> float:
        return self.candidate.kwc

    @property
    def capex_ttc(self) -> float:
        return self.candidate.capex.total_ttc

    @property
    def premium_eur(self) -> float:
        return self.projection.premium_eur

    def with_audit(self, ok: bool) -> "Scenario":
        return replace(self, audit_ok=ok)


def evaluate_installation(
    request: CalcRequest,
    panels: int,
    battery_units: int,
    *,
    kwc: float | None = None,
    label: str = "",
    debug: DebugCollector | None = None,
) -> Scenario:
    """Simulate ``panels`` modules (or a pinned ``kwc``) with ``battery_units`` units.

    Production scales linearly from the reference size the profile was built for.
    """

    debug = ScopedDebugCollector(debug or NullDebugCollector(), scenario=label or None, panels=panels)
    tariffs = request.effective_tariffs
    if kwc is None:
        kwc = panels_to_kwc(panels, request.pricing.panel_kwc)
    battery = request.battery.with_units(battery_units)

    production = request.production.scaled(kwc / request.production_reference_kwc)
    balance = simulate_balance(
        production,
        request.consumption,
        battery,
        price_eur_kwh=tariffs.effective_price,
        feed_in_rate=tariffs.feed_in_rate(kwc),
        battery_model=request.optimizer.battery_model,
        simultaneity=request.simultaneity_factor,
        debug=debug,
    )
    capex = compute_capex(panels, kwc, battery, request.pricing)
    projection = project(balance, capex.total_ttc, tariffs, premium_eur=tariffs.premium(kwc), debug=debug)

    candidate = InstallationCandidate(panels=panels, kwc=kwc, battery=battery, capex=capex)
    return Scenario(label=label, candidate=candidate, balance=balance, projection=projection, tariffs=tariffs)


__all__ = ["InstallationCandidate", "Scenario", "evaluate_installation"]
