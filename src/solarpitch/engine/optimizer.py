"""Candidate search over installation sizes with normalised scoring.

Every panel count in the configured range is evaluated with and without one
battery unit. The better variant (IRR, then ROI, then lifetime gains) represents
the size. Sizes are scored on min-max normalised KPIs across the pool, and two
sizes whose power differs by at least ``min_divergence`` are selected.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

from solarpitch.core.debug import DebugCollector, NullDebugCollector
from solarpitch.core.models import CalcRequest, kwc_to_panels
from solarpitch.engine.evaluate import Scenario, evaluate_installation

ALGORITHM = "IRR>ROI>Gains + self-production (normalised score)"


@dataclass(frozen=True)
class ScoringWeights:
    irr: float = 0.50
    roi: float = 0.20
    gains: float = 0.20
    self_production: float = 0.10
    bonus: float = 0.05
    bonus_threshold_pct: float = 60.0
    min_divergence: float = 0.10


@dataclass(frozen=True)
class SizeEvaluation:
    panels: int
    kwc: float
    without_battery: Scenario
    with_battery: Scenario
    best: Scenario
    score: float = 0.0

    @property
    def variant(self) -> str:
        return self.best.candidate.variant

    @property
    def capex_ttc(self) -> float:
        return self.best.capex_ttc

    def summary(self) -> dict:
        kpis = self.best.kpis
        return {
            "panels": self.panels,
            "kwc": self.kwc,
            "variant": self.variant,
            "score": self.score,
            "capex_ttc": self.capex_ttc,
            "irr_pct": kpis.irr_pct,
            "roi_pct": kpis.roi_pct,
            "self_production_pct": kpis.self_production_pct,
            "gains_total_eur": kpis.gains_total_eur,
        }


@dataclass(frozen=True)
class OptimizationResult:
    ok: bool
    error: Optional[str] = None
    ranked: Tuple[SizeEvaluation, ...] = ()
    a: Optional[SizeEvaluation] = None
    b: Optional[SizeEvaluation] = None
    meta: Dict[str, object] = field(default_factory=dict)


def normalize(value: float, vmin: float, vmax: float) -> float:
    """Min-max scale into [0, 1]; a degenerate range maps to 0."""
    if vmax <= vmin:
        return 0.0
    return min(1.0, max(0.0, (value - vmin) / (vmax - vmin)))


def pick_best(scenarios: Sequence[Scenario]) -> Scenario:
    """Highest (IRR, ROI, gains); earlier entries win exact ties."""
    best = scenarios[0]
    for scen in scenarios[1:]:
        if scen.kpis.ranking_key() > best.kpis.ranking_key():
            best = scen
    return best


def evaluate_size(
    request: CalcRequest,
    panels: int,
    budget_eur: Optional[float] = None,
    debug: DebugCollector | None = None,
) -> Optional[SizeEvaluation]:
    """Evaluate both variants for ``panels``; ``None`` when both exceed the budget."""

    debug = debug or NullDebugCollector()
    without = evaluate_installation(request, panels, 0, debug=debug)
    with_batt = evaluate_installation(request, panels, 1, debug=debug)

    viable = [s for s in (without, with_batt) if budget_eur is None or s.capex_ttc <= budget_eur]
    if not viable:
        debug.emit(
            "optimizer.excluded",
            {"reason": "budget", "budget_eur": budget_eur, "capex_min": min(without.capex_ttc, with_batt.capex_ttc)},
            panels=panels,
        )
        return None

    best = pick_best(viable)
    return SizeEvaluation(
        panels=panels,
        kwc=without.kwc,
        without_battery=without,
        with_battery=with_batt,
        best=best,
    )


def score_candidates(pool: Sequence[SizeEvaluation], weights: ScoringWeights) -> List[SizeEvaluation]:
    """Attach normalised scores and return the pool ranked by score (stable)."""

    def bounds(values: List[float]) -> Tuple[float, float]:
        return min(values), max(values)

    kpis = [c.best.kpis for c in pool]
    irr_lo, irr_hi = bounds([k.irr_pct for k in kpis])
    roi_lo, roi_hi = bounds([k.roi_pct for k in kpis])
    gains_lo, gains_hi = bounds([k.gains_total_eur for k in kpis])
    sp_lo, sp_hi = bounds([k.self_production_pct for k in kpis])

    scored = []
    for cand, k in zip(pool, kpis):
        score = (
            weights.irr * normalize(k.irr_pct, irr_lo, irr_hi)
            + weights.roi * normalize(k.roi_pct, roi_lo, roi_hi)
            + weights.gains * normalize(k.gains_total_eur, gains_lo, gains_hi)
            + weights.self_production * normalize(k.self_production_pct, sp_lo, sp_hi)
        )
        if k.self_production_pct >= weights.bonus_threshold_pct:
            score += weights.bonus
        scored.append(replace(cand, score=score))
    return sorted(scored, key=lambda c: c.score, reverse=True)


def pick_two_sizes(
    ranked: Sequence[SizeEvaluation], min_divergence: float = 0.10
) -> Tuple[Optional[SizeEvaluation], Optional[SizeEvaluation]]:
    if not ranked:
        return None, None
    a = ranked[0]
    for cand in ranked[1:]:
        if abs(cand.kwc - a.kwc) / a.kwc >= min_divergence:
            return a, cand
    return a, None


def optimize(
    request: CalcRequest,
    weights: ScoringWeights | None = None,
    debug: DebugCollector | None = None,
) -> OptimizationResult:
    weights = weights or ScoringWeights()
    debug = debug or NullDebugCollector()
    settings = request.optimizer
    meta = {
        "algorithm": ALGORITHM,
        "min_panels": settings.min_panels,
        "max_panels": settings.max_panels,
        "budget_eur": settings.budget_eur,
    }

    pool: List[SizeEvaluation] = []
    for panels in range(settings.min_panels, settings.max_panels + 1):
        cand = evaluate_size(request, panels, settings.budget_eur, debug=debug)
        if cand is not None:
            pool.append(cand)

    if not pool:
        error = "No viable candidate within the panel range and budget."
        debug.emit("optimizer.infeasible", {"reason": "empty_pool", **meta})
        return OptimizationResult(ok=False, error=error, meta=meta)

    ranked = score_candidates(pool, weights)
    for cand in ranked:
        debug.emit("optimizer.candidate", cand.summary(), panels=cand.panels)

    a, b = pick_two_sizes(ranked, weights.min_divergence)
    if b is None:
        error = f"No second size differing by at least {weights.min_divergence:.0%} from size A."
        debug.emit("optimizer.infeasible", {"reason": "no_distinct_b", "a_kwc": a.kwc, **meta})
        return OptimizationResult(ok=False, error=error, ranked=tuple(ranked), a=a, meta=meta)

    debug.emit("optimizer.selection", {"a": a.summary(), "b": b.summary()})
    return OptimizationResult(ok=True, ranked=tuple(ranked), a=a, b=b, meta=meta)


def forced_size(request: CalcRequest, kwc: float, debug: DebugCollector | None = None) -> SizeEvaluation:
    """Build a size entry for a caller-pinned power, bypassing the sweep."""

    panels = kwc_to_panels(kwc, request.pricing.panel_kwc)
    without = evaluate_installation(request, panels, 0, kwc=kwc, debug=debug)
    with_batt = evaluate_installation(request, panels, 1, kwc=kwc, debug=debug)
    return SizeEvaluation(
        panels=panels,
        kwc=kwc,
        without_battery=without,
        with_battery=with_batt,
        best=pick_best([without, with_batt]),
    )


__all__ = [
    "ALGORITHM",
    "ScoringWeights",
    "SizeEvaluation",
    "OptimizationResult",
    "normalize",
    "pick_best",
    "evaluate_size",
    "score_candidates",
    "pick_two_sizes",
    "optimize",
    "forced_size",
]
