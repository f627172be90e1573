"""Build the four named scenarios and pick the global winner.

``A`` and ``B`` are the two selected sizes; suffix ``1`` is the variant without
battery and ``2`` the variant with battery, unless a forced variant pins the
battery of all four.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import CalcRequest
from solarpitch.engine.evaluate import Scenario, evaluate_installation
from solarpitch.engine.optimizer import SizeEvaluation, pick_best

SCENARIO_CODES = ("A1", "A2", "B1", "B2")
WINNER_REASON = "max IRR, then ROI, then lifetime gains"


@dataclass(frozen=True)
class Winner:
    code: str
    reason: str


def scenario_battery_units(request: CalcRequest, slot: int) -> int:
    """Battery units for scenario ``slot`` (1 or 2) of a size.

    A forced ``without_battery`` variant empties every scenario; a forced
    ``with_battery`` variant fits the with-battery unit count to all four.
    """

    variant = request.forced.forced_variant
    if variant == "without_battery":
        return 0
    if variant == "with_battery" or slot == 2:
        return request.with_battery_units
    return 0


def _scenario(
    request: CalcRequest, size: SizeEvaluation, label: str, units: int, debug: DebugCollector
) -> Scenario:
    for evaluated in (size.without_battery, size.with_battery):
        if evaluated.candidate.battery.units == units:
            return replace(evaluated, label=label)
    return evaluate_installation(request, size.panels, units, kwc=size.kwc, label=label, debug=debug)


def assemble_scenarios(
    request: CalcRequest,
    a: SizeEvaluation,
    b: SizeEvaluation,
    debug: DebugCollector | None = None,
) -> Dict[str, Scenario]:
    debug = debug or NullDebugCollector()
    scenarios: Dict[str, Scenario] = {}
    for prefix, size in (("A", a), ("B", b)):
        for slot in (1, 2):
            label = f"{prefix}{slot}"
            scenarios[label] = _scenario(request, size, label, scenario_battery_units(request, slot), debug)
    return scenarios


def pick_winner(
    scenarios: Dict[str, Scenario],
    variant: Optional[str] = None,
    debug: DebugCollector | None = None,
) -> Winner:
    """Best scenario by IRR, ROI then lifetime gains; insertion order breaks ties.

    A pinned ``variant`` limits the choice to scenarios of that variant when any
    exist.
    """

    debug = debug or NullDebugCollector()
    pool = list(scenarios.values())
    reason = WINNER_REASON
    if variant is not None:
        restricted = [s for s in pool if s.candidate.variant == variant]
        if restricted:
            pool = restricted
            reason = f"{WINNER_REASON} (restricted to {variant})"

    best = pick_best(pool)
    debug.emit(
        "scenario.winner",
        {"code": best.label, "irr_pct": best.kpis.irr_pct, "roi_pct": best.kpis.roi_pct, "variant": variant},
        scenario=best.label,
    )
    return Winner(code=best.label, reason=reason)


__all__ = ["SCENARIO_CODES", "WINNER_REASON", "Winner", "scenario_battery_units", "assemble_scenarios", "pick_winner"]
