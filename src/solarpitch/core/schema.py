"""Structural validation of outbound response payloads.

Schemas are JSON Schema (draft 2020-12) documents checked with ``jsonschema``.
A validator is built once and reused read-only.
"""
from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from .config import ConfigError, _load_raw

_NUMBER = ["number"]
_NUMBER_OR_NULL = ["number", "null"]

_KPIS = {
    "type": "object",
    "required": [
        "payback_years",
        "roi_pct",
        "irr_pct",
        "irr_at_bound",
        "lcoe_eur_kwh",
        "self_consumption_pct",
        "self_production_pct",
        "gains_year1_eur",
        "gains_total_eur",
    ],
    "properties": {
        "payback_years": {"type": ["integer", "null"]},
        "roi_pct": {"type": _NUMBER},
        "irr_pct": {"type": _NUMBER},
        "irr_at_bound": {"type": "boolean"},
        "lcoe_eur_kwh": {"type": _NUMBER},
        "self_consumption_pct": {"type": _NUMBER},
        "self_production_pct": {"type": _NUMBER},
        "gains_year1_eur": {"type": _NUMBER},
        "gains_total_eur": {"type": _NUMBER},
    },
}

_MONTH_ROW = {
    "type": "object",
    "required": [
        "month",
        "production_kwh",
        "consumption_kwh",
        "self_consumption_kwh",
        "surplus_kwh",
        "import_kwh",
        "saving_eur",
        "feed_in_eur",
    ],
    "properties": {
        "month": {"type": "string"},
        "production_kwh": {"type": _NUMBER},
        "consumption_kwh": {"type": _NUMBER},
        "self_consumption_kwh": {"type": _NUMBER},
        "surplus_kwh": {"type": _NUMBER},
        "import_kwh": {"type": _NUMBER},
        "saving_eur": {"type": _NUMBER},
        "feed_in_eur": {"type": _NUMBER},
    },
}

_YEAR_ROW = {
    "type": "object",
    "required": ["year", "production_kwh", "gain_eur", "cumulative_gain_eur"],
    "properties": {
        "year": {"type": "integer"},
        "production_kwh": {"type": _NUMBER},
        "gain_eur": {"type": _NUMBER},
        "cumulative_gain_eur": {"type": _NUMBER},
    },
}

_SCENARIO = {
    "type": "object",
    "required": ["label", "variant", "panels", "kwc", "battery", "capex", "year1", "projection", "kpis"],
    "properties": {
        "label": {"type": "string", "enum": ["A1", "A2", "B1", "B2"]},
        "variant": {"type": "string", "enum": ["without_battery", "with_battery"]},
        "panels": {"type": "integer"},
        "kwc": {"type": _NUMBER},
        "audit_ok": {"type": ["boolean", "null"]},
        "battery": {"type": "object", "required": ["units", "capacity_kwh"]},
        "capex": {
            "type": "object",
            "required": ["materials_ttc", "installation_ttc", "total_ttc"],
            "properties": {
                "materials_ttc": {"type": _NUMBER},
                "installation_ttc": {"type": _NUMBER},
                "total_ttc": {"type": _NUMBER},
            },
        },
        "year1": {
            "type": "object",
            "required": ["monthly", "totals"],
            "properties": {
                "monthly": {"type": "array", "items": _MONTH_ROW},
                "totals": {"type": "object"},
            },
        },
        "projection": {"type": "array", "items": _YEAR_ROW},
        "kpis": _KPIS,
    },
}

_SELECTION = {
    "type": "object",
    "required": ["panels", "kwc", "variant", "capex_ttc"],
    "properties": {
        "panels": {"type": "integer"},
        "kwc": {"type": _NUMBER},
        "variant": {"type": "string"},
        "score": {"type": _NUMBER_OR_NULL},
        "capex_ttc": {"type": _NUMBER},
    },
}

_ISSUE = {
    "type": "object",
    "required": ["severity", "code", "message"],
    "properties": {
        "severity": {"type": "string", "enum": ["error", "warning"]},
        "code": {"type": "string"},
        "message": {"type": "string"},
        "scenario": {"type": ["string", "null"]},
    },
}

DEFAULT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["ok", "meta", "selection", "winner", "scenarios", "charts", "audit_ok", "audit"],
    "properties": {
        "ok": {"type": "boolean"},
        "stage": {"type": "string"},
        "meta": {"type": "object", "required": ["algorithm"]},
        "selection": {
            "type": "object",
            "required": ["A", "B"],
            "properties": {"A": _SELECTION, "B": _SELECTION},
        },
        "winner": {
            "type": "object",
            "required": ["code", "reason"],
            "properties": {
                "code": {"type": "string", "enum": ["A1", "A2", "B1", "B2"]},
                "reason": {"type": "string"},
            },
        },
        "forced": {"type": ["object", "null"]},
        "scenarios": {
            "type": "object",
            "required": ["A1", "A2", "B1", "B2"],
            "additionalProperties": _SCENARIO,
        },
        "charts": {
            "type": "object",
            "required": ["stacked_monthly", "cumulative_gains", "kpi_comparison", "battery_impact"],
            "properties": {
                "stacked_monthly": {"type": "array"},
                "cumulative_gains": {"type": "array"},
                "kpi_comparison": {"type": "array"},
                "battery_impact": {"type": "object", "required": ["A", "B"]},
            },
        },
        "audit_ok": {"type": "boolean"},
        "audit": {
            "type": "object",
            "required": ["ok", "issues"],
            "properties": {"ok": {"type": "boolean"}, "issues": {"type": "array", "items": _ISSUE}},
        },
        "schema_verified": {"type": "boolean"},
    },
}



class ResponseValidator:
    """Check a payload against a schema and list every problem found.

    Problems read ``<json path>: <message>``, e.g. ``$.ok: 1 is not of type 'boolean'``.
    """

    def __init__(self, schema: Mapping[str, Any] | None = None):
        if schema is None:
            schema = DEFAULT_RESPONSE_SCHEMA
        if not isinstance(schema, Mapping) or not schema:
            raise ConfigError("Response schema must be a non-empty mapping")
        self.schema = copy.deepcopy(dict(schema))
        try:
            Draft202012Validator.check_schema(self.schema)
        except SchemaError as exc:
            raise ConfigError(f"Invalid response schema: {exc.message}") from exc
        self._validator = Draft202012Validator(self.schema)

    @classmethod
    def from_file(cls, path: str | Path) -> "ResponseValidator":
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Schema file not found: {path}")
        raw = _load_raw(path)
        if not isinstance(raw, dict):
            raise ConfigError(f"Schema in {path} must be a mapping")
        return cls(raw)

    def validate(self, payload: Any) -> List[str]:
        errors = sorted(self._validator.iter_errors(payload), key=lambda e: (e.json_path, e.message))
        return [f"{error.json_path}: {error.message}" for error in errors]

    def is_valid(self, payload: Any) -> bool:
        return self._validator.is_valid(payload)


__all__ = ["DEFAULT_RESPONSE_SCHEMA", "ResponseValidator"]
