"""Pytest configuration."""
import os
import sys

import pytest

# Add the repo root to sys.path so `import main` and `import henrisim` work
# without installing the package.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from henrisim.simulation import SimulationEngine  # noqa: E402


@pytest.fixture
def engine():
    """Engine with the four default modules on the legacy climate."""
    eng = SimulationEngine()
    eng.register_default_modules()
    return eng


@pytest.fixture(autouse=True)
def no_plots():
    """Suppress matplotlib windows unless SHOW_PLOTS is set."""
    if os.environ.get('SHOW_PLOTS'):
        yield
        return
    from unittest.mock import patch
    with patch('matplotlib.pyplot.show'):
        yield
