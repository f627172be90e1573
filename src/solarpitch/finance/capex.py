"""Upfront cost (CAPEX) of an installation from the price list."""
from __future__ import annotations

from dataclasses import dataclass

from solarpitch.core.models import BatteryConfig, PricingConfig


@dataclass(frozen=True)
class CapexBreakdown:
    materials_ht: float
    materials_ttc: float
    installation_ht: float
    installation_ttc: float
    battery_ht: float

    @property
    def total_ttc(self) -> float:
        return self.materials_ttc + self.installation_ttc

    def to_dict(self) -> dict:
        return {
            "materials_ht": self.materials_ht,
            "materials_ttc": self.materials_ttc,
            "installation_ht": self.installation_ht,
            "installation_ttc": self.installation_ttc,
            "battery_ht": self.battery_ht,
            "total_ttc": self.total_ttc,
        }


def installation_cost_ht(kwc: float, pricing: PricingConfig) -> float:
    """Labour is tiered by size, with a per-kWc supplement above 9 kWc."""
    if kwc <= 3:
        return pricing.install_upto_3_ht
    if kwc <= 6:
        return pricing.install_upto_6_ht
    if kwc <= 9:
        return pricing.install_upto_9_ht
    return pricing.install_upto_9_ht + pricing.install_extra_per_kwc_ht * (kwc - 9)


def compute_capex(panels: int, kwc: float, battery: BatteryConfig, pricing: PricingConfig) -> CapexBreakdown:
    battery_ht = max(battery.units, 0) * battery.unit_price_ht
    materials_ht = (
        panels * pricing.module_ht
        + pricing.inverter_kit_ht
        + pricing.energy_manager_ht
        + battery_ht
    )
    installation_ht = installation_cost_ht(kwc, pricing)
    return CapexBreakdown(
        materials_ht=materials_ht,
        materials_ttc=materials_ht * (1 + pricing.vat_materials),
        installation_ht=installation_ht,
        installation_ttc=installation_ht * (1 + pricing.vat_installation),
        battery_ht=battery_ht,
    )


__all__ = ["CapexBreakdown", "compute_capex", "installation_cost_ht"]
