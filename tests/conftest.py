import sys
from pathlib import Path

import pytest

# ensure src package importable
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from solarpitch.core.models import CalcRequest, MonthlyProfile, OptimizerSettings  # noqa: E402

# Disable external plugins for reproducibility in isolated test envs
PYTEST_DISABLE_PLUGIN_AUTOLOAD = True

E2E_PRODUCTION = [500, 450, 600, 650, 700, 750, 780, 740, 600, 550, 480, 420]
FLAT_CONSUMPTION = [580] * 12


@pytest.fixture
def make_request():
    """Factory for requests built on the reference production/consumption profiles."""

    def _make(production=None, consumption=None, **kwargs):
        kwargs.setdefault("optimizer", OptimizerSettings(min_panels=6, max_panels=20))
        return CalcRequest(
            production=MonthlyProfile(tuple(production or E2E_PRODUCTION), name="production"),
            consumption=MonthlyProfile(tuple(consumption or FLAT_CONSUMPTION), name="consumption"),
            **kwargs,
        )

    return _make


@pytest.fixture
def raw_request():
    """Inbound payload mapping as a client would send it."""
    return {
        "production": {"monthly_kwh": list(E2E_PRODUCTION), "reference_kwc": 3.4},
        "consumption": {"monthly_kwh": list(FLAT_CONSUMPTION)},
        "tariffs": {"effective_price": 0.1952, "feed_in_enabled": True},
        "battery": {"enabled": False, "units_requested": 0},
        "optimizer": {"min_panels": 6, "max_panels": 20},
    }
