"""Net present value and a bracketed bisection IRR solver."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class IrrResult:
    rate: float
    at_bound: bool
    iterations: int

    @property
    def pct(self) -> float:
        return self.rate * 100.0


def npv(cashflows: Sequence[float], rate: float) -> float:
    """Discount ``cashflows`` (index 0 = today) at ``rate``."""
    return sum(cf / (1.0 + rate) ** i for i, cf in enumerate(cashflows))


def irr(
    cashflows: Sequence[float],
    low: float = 0.0,
    high: float = 0.5,
    steps: int = 60,
    tolerance: float = 1e-2,
) -> IrrResult:
    """Solve NPV(r) = 0 by bisection inside ``[low, high]``.

    NPV is assumed to decrease with the rate inside the bracket. When it does
    not change sign across the bracket the nearest bound is returned with
    ``at_bound=True``: the low bound when the investment never pays back, the
    high bound when the true rate lies above the bracket.
    """

    if not cashflows:
        raise ValueError("cashflows must not be empty")
    if low <= -1.0 or high <= low:
        raise ValueError("bracket must satisfy -1 < low < high")

    npv_low = npv(cashflows, low)
    npv_high = npv(cashflows, high)
    if npv_low < 0 and npv_high < 0:
        return IrrResult(rate=low, at_bound=True, iterations=0)
    if npv_low > 0 and npv_high > 0:
        return IrrResult(rate=high, at_bound=True, iterations=0)

    lo, hi = low, high
    for i in range(steps):
        mid = (lo + hi) / 2.0
        value = npv(cashflows, mid)
        if abs(value) < tolerance:
            return IrrResult(rate=mid, at_bound=False, iterations=i + 1)
        if value > 0:
            lo = mid
        else:
            hi = mid
    return IrrResult(rate=(lo + hi) / 2.0, at_bound=False, iterations=steps)


__all__ = ["IrrResult", "npv", "irr"]
