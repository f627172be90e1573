"""Domain models for the PV sizing core.

Provides validated value types for monthly profiles, tariffs, battery and
pricing configuration, the optional forced override and the calculation request.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

PANEL_KWC = 0.485
VARIANTS = ("without_battery", "with_battery")


class ValidationError(ValueError):
    """Raised when model inputs violate constraints."""


def panels_to_kwc(panels: int, panel_kwc: float = PANEL_KWC) -> float:
    return round(panels * panel_kwc, 2)


def kwc_to_panels(kwc: float, panel_kwc: float = PANEL_KWC) -> int:
    return max(1, int(round(kwc / panel_kwc)))


@dataclass(frozen=True)
class MonthlyProfile:
    """Twelve monthly energy values (kWh), January first."""

    values: Tuple[float, ...]
    name: str = "profile"

    def __post_init__(self):
        try:
            cleaned = tuple(float(v) for v in self.values)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{self.name} contains non-numeric entries") from exc
        if len(cleaned) != 12:
            raise ValidationError(f"{self.name} must contain 12 monthly values (got {len(cleaned)})")
        for idx, val in enumerate(cleaned):
            if not math.isfinite(val) or val < 0:
                raise ValidationError(f"{self.name}[{idx}] must be a finite non-negative number")
        object.__setattr__(self, "values", cleaned)

    @property
    def total(self) -> float:
        return sum(self.values)

    def scaled(self, factor: float) -> "MonthlyProfile":
        return MonthlyProfile(values=tuple(v * factor for v in self.values), name=self.name)


@dataclass(frozen=True)
class TariffConfig:
    price_eur_kwh: float = 0.1952
    variable_pricing: bool = False
    variable_price_avg: Optional[float] = None
    feed_in_enabled: bool = True
    feed_in_low_eur_kwh: float = 0.04
    feed_in_high_eur_kwh: float = 0.0617
    premium_low_eur_kwc: float = 80.0
    premium_high_eur_kwc: float = 180.0
    tier_kwc: float = 9.0
    inflation_rate: float = 0.04
    degradation_rate: float = 0.005
    horizon_years: int = 25

    def __post_init__(self):
        if self.price_eur_kwh < 0:
            raise ValidationError("tariffs.effective_price must be non-negative")
        if self.variable_price_avg is not None and self.variable_price_avg < 0:
            raise ValidationError("tariffs.variable_price_avg must be non-negative")
        for name in ("feed_in_low_eur_kwh", "feed_in_high_eur_kwh", "premium_low_eur_kwc", "premium_high_eur_kwc"):
            if getattr(self, name) < 0:
                raise ValidationError(f"tariffs.{name} must be non-negative")
        if self.tier_kwc <= 0:
            raise ValidationError("tariffs.tier_kwc must be positive")
        if not (0 <= self.degradation_rate < 1):
            raise ValidationError("tariffs.degradation_pct must be between 0 and 100")
        if self.inflation_rate <= -1:
            raise ValidationError("tariffs.inflation_pct must be greater than -100")
        if self.horizon_years < 1:
            raise ValidationError("tariffs.horizon_years must be at least 1")

    @property
    def effective_price(self) -> float:
        if self.variable_pricing and self.variable_price_avg:
            return self.variable_price_avg
        return self.price_eur_kwh

    def tier_feed_in_rate(self, kwc: float) -> float:
        """Feed-in rate for the tier of ``kwc`` regardless of the enable flag."""
        return self.feed_in_low_eur_kwh if kwc < self.tier_kwc else self.feed_in_high_eur_kwh

    def feed_in_rate(self, kwc: float) -> float:
        if not self.feed_in_enabled:
            return 0.0
        return self.tier_feed_in_rate(kwc)

    def premium(self, kwc: float) -> float:
        rate = self.premium_low_eur_kwc if kwc < self.tier_kwc else self.premium_high_eur_kwc
        return rate * max(kwc, 0.0)


@dataclass(frozen=True)
class BatteryConfig:
    """Battery bank made of identical units.

    ``units`` is not range-checked here: callers clamp it and the audit flags
    anything outside ``[0, max_units]``.
    """

    units: int = 0
    unit_kwh: float = 7.0
    unit_price_ht: float = 3750.0
    max_units: int = 3
    depth_of_discharge: float = 0.9
    cycles_per_day: float = 1.0

    def __post_init__(self):
        if self.unit_kwh < 0:
            raise ValidationError("battery.unit_kwh must be non-negative")
        if self.unit_price_ht < 0:
            raise ValidationError("battery.unit_price_ht must be non-negative")
        if not (0 < self.depth_of_discharge <= 1):
            raise ValidationError("battery.depth_of_discharge must be in (0, 1]")
        if self.cycles_per_day <= 0:
            raise ValidationError("battery.cycles_per_day must be positive")

    @property
    def capacity_kwh(self) -> float:
        return max(self.units, 0) * self.unit_kwh

    def with_units(self, units: int) -> "BatteryConfig":
        return BatteryConfig(
            units=units,
            unit_kwh=self.unit_kwh,
            unit_price_ht=self.unit_price_ht,
            max_units=self.max_units,
            depth_of_discharge=self.depth_of_discharge,
            cycles_per_day=self.cycles_per_day,
        )


@dataclass(frozen=True)
class PricingConfig:
    """Price list used to derive CAPEX (prices before tax unless noted)."""

    module_ht: float = 250.0
    inverter_kit_ht: float = 1650.0
    energy_manager_ht: float = 710.0
    vat_materials: float = 0.20
    vat_installation: float = 0.10
    install_upto_3_ht: float = 1500.0
    install_upto_6_ht: float = 2200.0
    install_upto_9_ht: float = 2700.0
    install_extra_per_kwc_ht: float = 300.0
    panel_kwc: float = PANEL_KWC

    def __post_init__(self):
        for name, val in self.__dict__.items():
            if val < 0:
                raise ValidationError(f"pricing.{name} must be non-negative")
        if self.panel_kwc <= 0:
            raise ValidationError("pricing.panel_kwc must be positive")


@dataclass(frozen=True)
class ForcedOverride:
    """Caller pins on top of the optimizer.

    A field applies only when the override is enabled and the value is set,
    except ``feed_in_enabled`` which applies whenever it is set.
    """

    enabled: bool = False
    kwc: Optional[float] = None
    battery_units: Optional[int] = None
    variant: Optional[str] = None
    feed_in_enabled: Optional[bool] = None

    def __post_init__(self):
        if self.kwc is not None and self.kwc <= 0:
            raise ValidationError("forced.kwc must be positive")
        if self.variant is not None and self.variant not in VARIANTS:
            raise ValidationError(f"forced.variant must be one of {list(VARIANTS)}")

    @property
    def forced_kwc(self) -> Optional[float]:
        return self.kwc if self.enabled else None

    @property
    def forced_battery_units(self) -> Optional[int]:
        if not self.enabled or self.battery_units is None:
            return None
        return min(3, max(0, int(self.battery_units)))

    @property
    def forced_variant(self) -> Optional[str]:
        return self.variant if self.enabled else None

    @property
    def is_active(self) -> bool:
        return self.enabled and any(
            v is not None for v in (self.kwc, self.battery_units, self.variant)
        )


@dataclass(frozen=True)
class OptimizerSettings:
    min_panels: int = 6
    max_panels: int = 74
    budget_eur: Optional[float] = None
    battery_model: str = "daily"

    def __post_init__(self):
        if self.min_panels < 1:
            raise ValidationError("optimizer.min_panels must be at least 1")
        # An undersized ceiling is lifted to the floor rather than rejected.
        if self.max_panels < self.min_panels:
            object.__setattr__(self, "max_panels", self.min_panels)
        if self.budget_eur is not None and self.budget_eur < 0:
            raise ValidationError("optimizer.budget_eur must be non-negative")
        if self.battery_model not in {"daily", "flat"}:
            raise ValidationError("optimizer.battery_model must be 'daily' or 'flat'")


@dataclass(frozen=True)
class CalcRequest:
    production: MonthlyProfile
    consumption: MonthlyProfile
    production_reference_kwc: float = 3.4
    simultaneity_factor: float = 1.0
    tariffs: TariffConfig = field(default_factory=TariffConfig)
    battery: BatteryConfig = field(default_factory=BatteryConfig)
    battery_enabled: bool = False
    pricing: PricingConfig = field(default_factory=PricingConfig)
    optimizer: OptimizerSettings = field(default_factory=OptimizerSettings)
    forced: ForcedOverride = field(default_factory=ForcedOverride)

    def __post_init__(self):
        if not isinstance(self.production, MonthlyProfile):
            raise ValidationError("production must be a MonthlyProfile instance")
        if not isinstance(self.consumption, MonthlyProfile):
            raise ValidationError("consumption must be a MonthlyProfile instance")
        if self.production_reference_kwc <= 0:
            raise ValidationError("production.reference_kwc must be positive")
        if not (0 < self.simultaneity_factor <= 1):
            raise ValidationError("consumption.simultaneity_factor must be in (0, 1]")

    @property
    def effective_tariffs(self) -> TariffConfig:
        """Tariffs with the forced feed-in flag applied."""
        flag = self.forced.feed_in_enabled
        if flag is None or flag == self.tariffs.feed_in_enabled:
            return self.tariffs
        return replace(self.tariffs, feed_in_enabled=flag)

    @property
    def with_battery_units(self) -> int:
        forced = self.forced.forced_battery_units
        if forced is not None:
            return forced
        if self.battery_enabled and self.battery.units > 0:
            return min(self.battery.max_units, self.battery.units)
        return 1


__all__ = [
    "MONTHS",
    "DAYS_IN_MONTH",
    "PANEL_KWC",
    "VARIANTS",
    "ValidationError",
    "panels_to_kwc",
    "kwc_to_panels",
    "MonthlyProfile",
    "TariffConfig",
    "BatteryConfig",
    "PricingConfig",
    "ForcedOverride",
    "OptimizerSettings",
    "CalcRequest",
]
