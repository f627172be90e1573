"""Consistency audit for computed scenarios.

Re-derives annual sums from the monthly series and checks every scenario
against energy conservation, tariff tier rules, battery rules and KPI sanity
bounds. Issues with severity ``error`` fail the scenario; ``warning`` issues are
informational. Scenarios are never modified.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import BatteryConfig
from solarpitch.energy.balance import ENERGY_FIELDS
from solarpitch.engine.evaluate import Scenario

EPS = 1e-6
IDENTITY_TOLERANCE_KWH = 0.5
FEED_IN_TOLERANCE = 0.0005
PREMIUM_TOLERANCE_EUR = 1.0
BATTERY_PRICE_TOLERANCE_EUR = 1.0

# catalogue battery: requests may not change what a unit should cost
REFERENCE_BATTERY = BatteryConfig()

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class AuditIssue:
    severity: str
    code: str
    message: str
    scenario: Optional[str] = None

    def to_dict(self) -> dict:
        return {"severity": self.severity, "code": self.code, "message": self.message, "scenario": self.scenario}


@dataclass(frozen=True)
class AuditReport:
    ok: bool
    issues: Tuple[AuditIssue, ...] = ()

    @property
    def errors(self) -> List[AuditIssue]:
        return [i for i in self.issues if i.severity == ERROR]

    @property
    def warnings(self) -> List[AuditIssue]:
        return [i for i in self.issues if i.severity == WARNING]

    def scenario_ok(self, label: str) -> bool:
        return not any(i.severity == ERROR and i.scenario == label for i in self.issues)

    def to_dict(self) -> dict:
        return {"ok": self.ok, "issues": [i.to_dict() for i in self.issues]}


def sum_tolerance(target: float) -> float:
    """0.1 % of the target with a 0.05 absolute floor."""
    return max(0.001 * max(1.0, abs(target)), 0.05)


def _in_range(value: float, lo: float, hi: float) -> bool:
    return lo - EPS <= value <= hi + EPS


def check_monthly_series(sc: Scenario, issues: List[AuditIssue]) -> None:
    monthly = sc.balance.monthly
    for name in ENERGY_FIELDS:
        if name not in monthly.columns:
            issues.append(AuditIssue(ERROR, f"MONTH_MISSING_{name.upper()}", f"{name} monthly series is missing."))
            continue
        if len(monthly[name]) != 12:
            issues.append(AuditIssue(ERROR, f"MONTH_LEN_{name.upper()}", f"{name} must contain 12 values."))
        if (monthly[name] < -EPS).any():
            issues.append(AuditIssue(ERROR, f"MONTH_NEG_{name.upper()}", f"{name} contains negative values."))


def check_monthly_identities(sc: Scenario, issues: List[AuditIssue]) -> None:
    monthly = sc.balance.monthly
    if not set(ENERGY_FIELDS).issubset(monthly.columns):
        return
    transfer = monthly["battery_transfer_kwh"] if "battery_transfer_kwh" in monthly.columns else 0.0 * monthly["production_kwh"]
    for idx, row in monthly.iterrows():
        month = row.get("month", idx + 1)
        prod = row["production_kwh"]
        cons = row["consumption_kwh"]
        self_cons = row["self_consumption_kwh"]
        if abs(self_cons + row["surplus_kwh"] - prod) > IDENTITY_TOLERANCE_KWH:
            issues.append(AuditIssue(ERROR, "MONTH_ID_PRODUCTION", f"{month}: production != self-consumption + surplus."))
        if abs(self_cons + row["import_kwh"] - cons) > IDENTITY_TOLERANCE_KWH:
            issues.append(AuditIssue(ERROR, "MONTH_ID_CONSUMPTION", f"{month}: consumption != self-consumption + import."))
        if self_cons - transfer[idx] > min(prod, cons) + IDENTITY_TOLERANCE_KWH:
            issues.append(
                AuditIssue(ERROR, "MONTH_SELF_CONSUMPTION_BASE", f"{month}: self-consumption before battery exceeds min(production, consumption).")
            )
        if self_cons > cons + IDENTITY_TOLERANCE_KWH:
            issues.append(AuditIssue(ERROR, "MONTH_SELF_CONSUMPTION_CONS", f"{month}: self-consumption exceeds consumption."))


def check_annual_consistency(sc: Scenario, issues: List[AuditIssue]) -> None:
    monthly = sc.balance.monthly
    totals = sc.balance.totals
    for name in ENERGY_FIELDS:
        if name not in monthly.columns:
            continue
        calc = float(monthly[name].sum())
        target = float(getattr(totals, name))
        if abs(calc - target) > sum_tolerance(target):
            issues.append(
                AuditIssue(
                    ERROR,
                    f"ANNUAL_MISMATCH_{name.upper()}",
                    f"Monthly sum of {name} ({calc:.2f}) != annual total ({target:.2f}).",
                )
            )

    if abs(totals.production_kwh - (totals.self_consumption_kwh + totals.surplus_kwh)) > IDENTITY_TOLERANCE_KWH:
        issues.append(AuditIssue(ERROR, "ID_PRODUCTION", "production_kwh must equal self_consumption_kwh + surplus_kwh (±0.5 kWh)."))
    if abs(totals.consumption_kwh - (totals.self_consumption_kwh + totals.import_kwh)) > IDENTITY_TOLERANCE_KWH:
        issues.append(AuditIssue(ERROR, "ID_CONSUMPTION", "consumption_kwh must equal self_consumption_kwh + import_kwh (±0.5 kWh)."))

    kpis = sc.kpis
    ratios = (
        ("RATIO_SELF_CONSUMPTION", "Self-consumption", totals.self_consumption_pct, kpis.self_consumption_pct),
        ("RATIO_SELF_PRODUCTION", "Self-production", totals.self_production_pct, kpis.self_production_pct),
    )
    for code, title, derived, reported in ratios:
        for value in (derived, reported):
            if not _in_range(value, 0.0, 100.0):
                issues.append(AuditIssue(ERROR, code, f"{title} % out of bounds (0-100): {value:.2f}%."))
                break


def check_power_and_feed_in(sc: Scenario, issues: List[AuditIssue]) -> None:
    kwc = sc.kwc
    if kwc <= 0:
        issues.append(AuditIssue(ERROR, "KWC_ZERO", "Installed power (kWc) must be > 0."))
    expected = sc.tariffs.feed_in_rate(kwc)
    actual = sc.balance.feed_in_rate
    if abs(actual - expected) > FEED_IN_TOLERANCE:
        issues.append(
            AuditIssue(ERROR, "FEED_IN_RATE", f"Feed-in rate {actual} EUR/kWh inconsistent with {kwc} kWc (expected {expected}).")
        )


def check_premium(sc: Scenario, issues: List[AuditIssue]) -> None:
    expected = sc.tariffs.premium(sc.kwc)
    if abs(sc.premium_eur - expected) > PREMIUM_TOLERANCE_EUR:
        issues.append(
            AuditIssue(ERROR, "PREMIUM", f"Incentive premium {sc.premium_eur:.2f} EUR unexpected (expected ~{expected:.2f} EUR).")
        )


def check_battery(sc: Scenario, issues: List[AuditIssue], reference: BatteryConfig) -> None:
    battery = sc.candidate.battery
    if battery.units < 0 or battery.units > reference.max_units:
        issues.append(
            AuditIssue(ERROR, "BAT_UNITS", f"Battery unit count ({battery.units}) out of bounds (0-{reference.max_units}).")
        )
    if battery.units > 0:
        if battery.unit_kwh <= 0:
            issues.append(AuditIssue(ERROR, "BAT_KWH", "Battery unit capacity must be > 0 kWh."))
        if abs(battery.unit_price_ht - reference.unit_price_ht) > BATTERY_PRICE_TOLERANCE_EUR:
            issues.append(
                AuditIssue(
                    ERROR,
                    "BAT_PRICE",
                    f"Battery unit price {battery.unit_price_ht} EUR HT does not match reference {reference.unit_price_ht} EUR HT.",
                )
            )
    elif (sc.balance.monthly.get("battery_transfer_kwh", 0.0 * sc.balance.monthly["production_kwh"]) > EPS).any():
        issues.append(AuditIssue(ERROR, "BAT_TRANSFER", "Battery transfer reported without any battery unit."))


def check_projection(sc: Scenario, issues: List[AuditIssue]) -> None:
    years = sc.projection.years
    horizon = sc.tariffs.horizon_years
    if len(years) != horizon:
        issues.append(AuditIssue(ERROR, "PROJECTION_LENGTH", f"Projection must contain {horizon} years (got {len(years)})."))
    cumulative = years["cumulative_gain_eur"]
    drops = cumulative.diff().dropna() < -EPS
    if drops.any():
        first = int(years["year"][drops[drops].index[0]])
        issues.append(AuditIssue(ERROR, "PROJECTION_CUMULATIVE", f"Cumulative gains decrease in year {first}."))


def check_economics(sc: Scenario, issues: List[AuditIssue]) -> None:
    kpis = sc.kpis
    gains = kpis.gains_total_eur
    if gains is None or not math.isfinite(gains):
        issues.append(AuditIssue(ERROR, "GAINS_TOTAL", "Lifetime gains missing or invalid."))
    if kpis.lcoe_eur_kwh < 0:
        issues.append(AuditIssue(ERROR, "LCOE_NEGATIVE", "LCOE cannot be negative."))
    if kpis.payback_years is None:
        issues.append(AuditIssue(WARNING, "PAYBACK_UNDEFINED", "No payback within the projection horizon; check price/consumption inputs."))
    elif kpis.payback_years <= 0:
        issues.append(AuditIssue(WARNING, "PAYBACK_NON_POSITIVE", "Payback period is not positive; check price/consumption inputs."))
    if kpis.irr_at_bound:
        issues.append(
            AuditIssue(WARNING, "IRR_AT_BOUND", f"IRR solver hit its bracket ({kpis.irr_pct:.1f}%); treat as an estimate bound.")
        )


def audit_scenario(sc: Scenario, reference_battery: BatteryConfig | None = None) -> List[AuditIssue]:
    reference_battery = reference_battery or REFERENCE_BATTERY
    issues: List[AuditIssue] = []
    check_monthly_series(sc, issues)
    check_monthly_identities(sc, issues)
    check_annual_consistency(sc, issues)
    check_power_and_feed_in(sc, issues)
    check_premium(sc, issues)
    check_battery(sc, issues, reference_battery)
    check_projection(sc, issues)
    check_economics(sc, issues)
    return [AuditIssue(i.severity, i.code, i.message, sc.label or None) for i in issues]


def audit_scenarios(
    scenarios: Mapping[str, Scenario],
    reference_battery: BatteryConfig | None = None,
    debug: DebugCollector | None = None,
) -> AuditReport:
    """Audit every scenario; the batch passes only if each scenario passes."""

    debug = debug or NullDebugCollector()
    all_issues: List[AuditIssue] = []
    for key, sc in scenarios.items():
        for issue in audit_scenario(sc, reference_battery):
            issue = AuditIssue(issue.severity, issue.code, issue.message, key)
            debug.emit("audit.issue", issue.to_dict(), scenario=key)
            all_issues.append(issue)

    ok = not any(i.severity == ERROR for i in all_issues)
    debug.emit(
        "audit.summary",
        {
            "ok": ok,
            "errors": sum(1 for i in all_issues if i.severity == ERROR),
            "warnings": sum(1 for i in all_issues if i.severity == WARNING),
        },
    )
    return AuditReport(ok=ok, issues=tuple(all_issues))


def apply_audit(scenarios: Mapping[str, Scenario], report: AuditReport) -> Dict[str, Scenario]:
    """Return copies of ``scenarios`` carrying their per-scenario audit outcome."""
    return {key: sc.with_audit(report.scenario_ok(key)) for key, sc in scenarios.items()}


__all__ = [
    "ERROR",
    "WARNING",
    "REFERENCE_BATTERY",
    "AuditIssue",
    "AuditReport",
    "sum_tolerance",
    "audit_scenario",
    "audit_scenarios",
    "apply_audit",
]
