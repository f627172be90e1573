"""Engine package sizing installations and assembling scenarios."""

from .assemble import Winner, assemble_scenarios, pick_winner
from .evaluate import Scenario, evaluate_installation
from .optimizer import OptimizationResult, optimize

__all__ = [
    "evaluate_installation",
    "Scenario",
    "optimize",
    "OptimizationResult",
    "assemble_scenarios",
    "pick_winner",
    "Winner",
]
