"""Pytest configuration for jax-mna tests

Handles platform-specific JAX configuration:
- macOS: Forces CPU backend since Metal doesn't support float64

Uses the pytest_configure hook so JAX is configured before any test module
imports it, and importing jax_mna then enables 64-bit floats.

Also provides shared fixtures:
- options: fresh SimulationOptions
- bias: helper setting device terminal voltages
"""

import os
import sys

import pytest


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    Ensures the JAX platform is selected BEFORE any test modules are
    imported.
    """
    if sys.platform == "darwin":
        os.environ["JAX_PLATFORMS"] = "cpu"

    # Import jax_mna to enable 64-bit precision
    import jax_mna  # noqa: F401


@pytest.fixture
def options():
    from jax_mna.analysis.options import SimulationOptions

    return SimulationOptions()


def set_bias(device, *voltages):
    """Set every terminal voltage of ``device``, in terminal order."""
    for terminal, value in enumerate(voltages):
        device.set_voltage(terminal, value)


@pytest.fixture
def bias():
    return set_bias
