"""Configuration loader for calculation requests.

Supports YAML and JSON files (or already-parsed mappings) containing the
inbound calculation payload.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover
    raise ImportError("PyYAML is required to load YAML configs") from exc

from .models import (
    BatteryConfig,
    CalcRequest,
    ForcedOverride,
    MonthlyProfile,
    OptimizerSettings,
    PricingConfig,
    TariffConfig,
    ValidationError,
)


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into domain models."""


_DEF_REQUIRED_SECTIONS = {"production", "consumption"}
_PRICING_KEYS = set(PricingConfig.__dataclass_fields__)


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text) or {}
        if path.suffix.lower() == ".json":
            return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    raise ConfigError(f"Unsupported config extension: {path.suffix}")


def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
    val = raw.get(key)
    if val is None:
        return {}
    if not isinstance(val, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return val


def _number(raw: Dict[str, Any], key: str, default: Optional[float], field_name: str) -> Optional[float]:
    val = raw.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        raise ConfigError(f"{field_name} must be numeric")
    try:
        return float(val)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be numeric (got {val!r})") from exc


def _flag(raw: Dict[str, Any], key: str, default: Optional[bool], field_name: str) -> Optional[bool]:
    val = raw.get(key)
    if val is None:
        return default
    if not isinstance(val, bool):
        raise ConfigError(f"{field_name} must be true or false")
    return val


def _parse_profile(raw: Dict[str, Any], section: str) -> MonthlyProfile:
    block = _section(raw, section)
    values = block.get("monthly_kwh")
    field_name = f"{section}.monthly_kwh"
    if values is None:
        raise ConfigError(f"Missing field: {field_name}")
    if not isinstance(values, (list, tuple)):
        raise ConfigError(f"{field_name} must be a list of 12 numbers")
    if len(values) != 12:
        raise ConfigError(f"{field_name} must contain 12 values (got {len(values)})")
    try:
        return MonthlyProfile(values=tuple(values), name=field_name)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {field_name}: {exc}") from exc


def _parse_tariffs(raw: Dict[str, Any]) -> TariffConfig:
    block = _section(raw, "tariffs")
    defaults = TariffConfig()
    inflation = _number(block, "inflation_pct", defaults.inflation_rate * 100, "tariffs.inflation_pct")
    degradation = _number(block, "degradation_pct", defaults.degradation_rate * 100, "tariffs.degradation_pct")
    horizon = _number(block, "horizon_years", defaults.horizon_years, "tariffs.horizon_years")
    try:
        return TariffConfig(
            price_eur_kwh=_number(block, "effective_price", defaults.price_eur_kwh, "tariffs.effective_price"),
            variable_pricing=_flag(block, "variable_pricing", False, "tariffs.variable_pricing"),
            variable_price_avg=_number(block, "variable_price_avg", None, "tariffs.variable_price_avg"),
            feed_in_enabled=_flag(block, "feed_in_enabled", True, "tariffs.feed_in_enabled"),
            feed_in_low_eur_kwh=_number(block, "feed_in_low", defaults.feed_in_low_eur_kwh, "tariffs.feed_in_low"),
            feed_in_high_eur_kwh=_number(block, "feed_in_high", defaults.feed_in_high_eur_kwh, "tariffs.feed_in_high"),
            premium_low_eur_kwc=_number(block, "premium_low", defaults.premium_low_eur_kwc, "tariffs.premium_low"),
            premium_high_eur_kwc=_number(block, "premium_high", defaults.premium_high_eur_kwc, "tariffs.premium_high"),
            tier_kwc=_number(block, "tier_kwc", defaults.tier_kwc, "tariffs.tier_kwc"),
            inflation_rate=inflation / 100.0,
            degradation_rate=degradation / 100.0,
            horizon_years=int(horizon),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid tariffs: {exc}") from exc


def _parse_battery(raw: Dict[str, Any]) -> tuple[BatteryConfig, bool]:
    block = _section(raw, "battery")
    defaults = BatteryConfig()
    enabled = _flag(block, "enabled", False, "battery.enabled")
    requested = _number(block, "units_requested", 0, "battery.units_requested")
    max_units = int(_number(block, "max_units", defaults.max_units, "battery.max_units"))
    units = min(max_units, max(0, int(requested)))
    try:
        battery = BatteryConfig(
            units=units,
            unit_kwh=_number(block, "unit_kwh", defaults.unit_kwh, "battery.unit_kwh"),
            unit_price_ht=_number(block, "unit_price_ht", defaults.unit_price_ht, "battery.unit_price_ht"),
            max_units=max_units,
            depth_of_discharge=_number(block, "depth_of_discharge", defaults.depth_of_discharge, "battery.depth_of_discharge"),
            cycles_per_day=_number(block, "cycles_per_day", defaults.cycles_per_day, "battery.cycles_per_day"),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid battery: {exc}") from exc
    return battery, enabled


def _parse_pricing(raw: Dict[str, Any]) -> PricingConfig:
    block = _section(raw, "pricing")
    unknown = set(block) - _PRICING_KEYS
    if unknown:
        raise ConfigError(f"Unknown pricing fields: {sorted(unknown)}")
    values = {key: _number(block, key, None, f"pricing.{key}") for key in block}
    try:
        return PricingConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid pricing: {exc}") from exc


def _parse_optimizer(raw: Dict[str, Any]) -> OptimizerSettings:
    block = _section(raw, "optimizer")
    defaults = OptimizerSettings()
    budget = _number(block, "budget_eur", None, "optimizer.budget_eur")
    if budget is None:
        budget = _number(raw, "budget_eur", None, "budget_eur")
    try:
        return OptimizerSettings(
            min_panels=int(_number(block, "min_panels", defaults.min_panels, "optimizer.min_panels")),
            max_panels=int(_number(block, "max_panels", defaults.max_panels, "optimizer.max_panels")),
            budget_eur=budget,
            battery_model=str(block.get("battery_model", defaults.battery_model)),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid optimizer settings: {exc}") from exc


def _parse_forced(raw: Dict[str, Any]) -> ForcedOverride:
    block = _section(raw, "forced")
    units = _number(block, "battery_units", None, "forced.battery_units")
    variant = block.get("variant")
    if variant is not None and not isinstance(variant, str):
        raise ConfigError("forced.variant must be a string")
    try:
        return ForcedOverride(
            enabled=bool(block.get("enabled", False)),
            kwc=_number(block, "kwc", None, "forced.kwc"),
            battery_units=int(units) if units is not None else None,
            variant=variant,
            feed_in_enabled=_flag(block, "feed_in_enabled", None, "forced.feed_in_enabled"),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid forced override: {exc}") from exc


def parse_request(raw: Dict[str, Any]) -> CalcRequest:
    """Map an inbound payload onto a :class:`CalcRequest`."""
    if not isinstance(raw, dict):
        raise ConfigError("Request must be a mapping")
    missing = _DEF_REQUIRED_SECTIONS - raw.keys()
    if missing:
        raise ConfigError(f"Missing request sections: {sorted(missing)}")

    production = _parse_profile(raw, "production")
    consumption = _parse_profile(raw, "consumption")
    reference_kwc = _number(_section(raw, "production"), "reference_kwc", 3.4, "production.reference_kwc")
    simultaneity = _number(_section(raw, "consumption"), "simultaneity_factor", 1.0, "consumption.simultaneity_factor")
    battery, battery_enabled = _parse_battery(raw)
    try:
        return CalcRequest(
            production=production,
            consumption=consumption,
            production_reference_kwc=reference_kwc,
            simultaneity_factor=simultaneity,
            tariffs=_parse_tariffs(raw),
            battery=battery,
            battery_enabled=battery_enabled,
            pricing=_parse_pricing(raw),
            optimizer=_parse_optimizer(raw),
            forced=_parse_forced(raw),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid request: {exc}") from exc


def load_request(path: str | Path) -> CalcRequest:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    raw = _load_raw(path)
    return parse_request(raw)


__all__ = [
    "ConfigError",
    "parse_request",
    "load_request",
]
