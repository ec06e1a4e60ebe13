"""Analysis-level helpers: options, integration, limiting, noise and network parameters"""

from jax_mna.analysis.integration import IntegrationCoeffs, IntegrationMethod, compute_coefficients
from jax_mna.analysis.limiting import fet_voltage, fet_voltage_ds, pn_critical_voltage, pn_voltage
from jax_mna.analysis.options import SimulationOptions
from jax_mna.analysis.sparams import cy_to_cs, s_to_y, y_to_s

__all__ = [
    "IntegrationCoeffs",
    "IntegrationMethod",
    "compute_coefficients",
    "SimulationOptions",
    "pn_voltage",
    "pn_critical_voltage",
    "fet_voltage",
    "fet_voltage_ds",
    "y_to_s",
    "s_to_y",
    "cy_to_cs",
]
