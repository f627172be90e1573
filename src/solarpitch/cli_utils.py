"""Shared CLI helpers to avoid circular imports."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from solarpitch.audit.checks import AuditIssue
from solarpitch.core.config import ConfigError
from solarpitch.core.schema import ResponseValidator


def load_validator(schema: Optional[Path], disabled: bool = False) -> Optional[ResponseValidator]:
    """``None`` when validation is switched off, else the file or bundled schema."""
    if disabled:
        return None
    if schema is not None:
        return ResponseValidator.from_file(schema)
    return ResponseValidator()


def kpi_table(payload: Dict[str, Any]) -> pd.DataFrame:
    rows = payload.get("charts", {}).get("kpi_comparison", [])
    return pd.DataFrame(rows)


def write_payload(path: Path, payload: Dict[str, Any], fmt: str) -> None:
    """Write the whole payload as JSON, or the KPI comparison table as CSV."""
    fmt = fmt.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "json":
        path.write_text(json.dumps(payload, indent=2))
    elif fmt == "csv":
        if not payload.get("ok"):
            raise ConfigError("CSV output requires a successful calculation")
        kpi_table(payload).to_csv(path, index=False)
    else:
        raise ConfigError("format must be json or csv")


def format_issue(issue: AuditIssue) -> str:
    scope = f" {issue.scenario}" if issue.scenario else ""
    return f"[{issue.severity}]{scope} {issue.code}: {issue.message}"


__all__ = ["load_validator", "kpi_table", "write_payload", "format_issue"]
