"""End-to-end calculation: sizing, scenarios, audit, payload and schema check.

Domain conditions (infeasible sizing, failed audit, invalid input, schema
mismatch) come back as failure payloads; only programming errors raise.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from solarpitch.audit.checks import AuditReport, apply_audit, audit_scenarios
from solarpitch.core.config import ConfigError, parse_request
from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import BatteryConfig, CalcRequest
from solarpitch.core.schema import ResponseValidator
from solarpitch.engine.assemble import assemble_scenarios, pick_winner
from solarpitch.engine.evaluate import Scenario
from solarpitch.engine.optimizer import OptimizationResult, ScoringWeights, forced_size, optimize
from solarpitch.report.payload import CalcOutcome, build_response, failure_payload

NO_VIABLE_CANDIDATE = "NO_VIABLE_CANDIDATE"
AUDIT_FAILED = "AUDIT_FAILED"
INVALID_INPUT = "INVALID_INPUT"
INVALID_RESPONSE_SCHEMA = "INVALID_RESPONSE_SCHEMA"


def select_sizes(
    request: CalcRequest,
    weights: ScoringWeights | None = None,
    debug: DebugCollector | None = None,
) -> OptimizationResult:
    """Sizes A and B from the optimizer, or both pinned to a forced kWc."""

    kwc = request.forced.forced_kwc
    if kwc is None:
        return optimize(request, weights=weights, debug=debug)
    size = forced_size(request, kwc, debug=debug)
    meta = {"algorithm": "forced", "forced_kwc": kwc, "panels": size.panels}
    return OptimizationResult(ok=True, ranked=(size,), a=size, b=size, meta=meta)


def compute_scenarios(
    request: CalcRequest,
    weights: ScoringWeights | None = None,
    debug: DebugCollector | None = None,
    reference_battery: BatteryConfig | None = None,
) -> Tuple[OptimizationResult, Optional[Dict[str, Scenario]], Optional[AuditReport]]:
    """Run sizing, assemble A1/A2/B1/B2 and audit them.

    Scenarios and report are ``None`` when sizing is infeasible. Batteries are
    audited against ``reference_battery`` (the catalogue battery by default),
    never against the battery block of the request.
    """

    debug = debug or NullDebugCollector()
    optimization = select_sizes(request, weights=weights, debug=debug)
    if not optimization.ok:
        return optimization, None, None
    scenarios = assemble_scenarios(request, optimization.a, optimization.b, debug=debug)
    report = audit_scenarios(scenarios, reference_battery=reference_battery, debug=debug)
    return optimization, apply_audit(scenarios, report), report


def run_calculation(
    request: CalcRequest,
    *,
    validator: ResponseValidator | None = None,
    weights: ScoringWeights | None = None,
    debug: DebugCollector | None = None,
    reference_battery: BatteryConfig | None = None,
) -> Dict[str, Any]:
    debug = debug or NullDebugCollector()
    optimization, scenarios, report = compute_scenarios(
        request, weights=weights, debug=debug, reference_battery=reference_battery
    )
    if scenarios is None or report is None:
        return failure_payload(NO_VIABLE_CANDIDATE, message=optimization.error, meta=dict(optimization.meta))

    if not report.ok:
        return failure_payload(
            AUDIT_FAILED,
            message=f"{len(report.errors)} audit error(s) block the response.",
            audit=report.to_dict(),
        )

    winner = pick_winner(scenarios, variant=request.forced.forced_variant, debug=debug)
    outcome = CalcOutcome(
        request=request,
        optimization=optimization,
        scenarios=scenarios,
        winner=winner,
        audit=report,
    )
    payload = build_response(outcome)

    if validator is None:
        debug.emit("schema.unavailable", {"reason": "no validator configured"})
        return payload

    problems = validator.validate(payload)
    if problems:
        debug.emit("schema.invalid", {"count": len(problems), "details": problems})
        return failure_payload(INVALID_RESPONSE_SCHEMA, details=problems)
    payload["schema_verified"] = True
    return payload


def calculate_from_mapping(
    raw: Mapping[str, Any],
    *,
    validator: ResponseValidator | None = None,
    weights: ScoringWeights | None = None,
    debug: DebugCollector | None = None,
    reference_battery: BatteryConfig | None = None,
) -> Dict[str, Any]:
    """Parse an inbound payload and run it; input errors become ``INVALID_INPUT``."""
    try:
        request = parse_request(dict(raw) if isinstance(raw, Mapping) else raw)
    except ConfigError as exc:
        return failure_payload(INVALID_INPUT, message=str(exc))
    return run_calculation(
        request, validator=validator, weights=weights, debug=debug, reference_battery=reference_battery
    )


__all__ = [
    "NO_VIABLE_CANDIDATE",
    "AUDIT_FAILED",
    "INVALID_INPUT",
    "INVALID_RESPONSE_SCHEMA",
    "select_sizes",
    "compute_scenarios",
    "run_calculation",
    "calculate_from_mapping",
]
