"""Resistor device model for jax-mna

Two-terminal linear resistor with optional temperature dependence. Also
used by the MOSFET as the series resistance it inserts at its own gate,
drain and source terminals.
"""

import logging
import math

import numpy as np

from jax_mna.analysis.noise import thermal_noise, two_terminal_correlation
from jax_mna.config import DEFAULT_TEMPERATURE_C
from jax_mna.devices.base import Analysis, Device

logger = logging.getLogger(__name__)


class Resistor(Device):
    """Two-terminal resistor device

    I = V/R where V = V(p) - V(n)

    Parameters:
        R: Resistance in Ohms (default: 50). Zero is an ideal short, stamped
           through one extra voltage-source unknown.
        Temp: Device temperature in Celsius
        Tc1: First-order temperature coefficient (1/K)
        Tc2: Second-order temperature coefficient (1/K^2)
        Tnom: Nominal temperature in Celsius

    Terminals:
        p: Positive terminal
        n: Negative terminal
    """

    terminals = ("p", "n")
    analyses = frozenset(Analysis)
    defaults = {
        "R": 50.0,
        "Temp": DEFAULT_TEMPERATURE_C,
        "Tc1": 0.0,
        "Tc2": 0.0,
        "Tnom": DEFAULT_TEMPERATURE_C,
    }

    def resistance(self) -> float:
        """Resistance at the device temperature, cached as scaled property R."""
        r = self.properties.get_double("R")
        tc1 = self.properties.get_double("Tc1")
        tc2 = self.properties.get_double("Tc2")
        dt = self.properties.get_double("Temp") - self.properties.get_double("Tnom")
        r_t = r * (1.0 + tc1 * dt + tc2 * dt * dt)
        self.set_scaled("R", r_t)
        return r_t

    def init_dc(self) -> None:
        r = self.resistance()
        if r != 0.0:
            self.set_voltage_sources(0)
            self.stamps.clear_mna()
            self.stamps.add_conductance(0, 1, 1.0 / r)
        else:
            # ideal short: V(p) - V(n) = 0 with the branch current as unknown
            self.set_voltage_sources(1)
            self.stamps.clear_mna()
            self.stamps.b[:, 0] = [1.0, -1.0]
            self.stamps.c[0, :] = [1.0, -1.0]

    def init_ac(self) -> None:
        self.init_dc()

    def init_tr(self) -> None:
        self.init_dc()

    def calc_sp(self, frequency: float) -> None:
        z = self.resistance() / self.z0
        s11 = z / (z + 2.0)
        s21 = 2.0 / (z + 2.0)
        self.stamps.s[...] = np.array([[s11, s21], [s21, s11]], dtype=complex)

    def calc_noise_ac(self, frequency: float) -> None:
        r = self.get_scaled("R")
        g = 1.0 / r if r > 0 else 0.0
        self.stamps.n[...] = two_terminal_correlation(
            thermal_noise(g, self.temperature_k(), self.constants)
        )

    def calc_noise_sp(self, frequency: float) -> None:
        r = self.get_scaled("R")
        z0 = self.z0
        if r > 0:
            f = self.temperature_k() / self.constants.t0 * 4.0 * r * z0 / (2.0 * z0 + r) ** 2
        else:
            f = 0.0
        self.stamps.n[...] = two_terminal_correlation(f)

    def __repr__(self) -> str:
        r = self.scaled.get("R", self.properties.get_double("R"))
        if r != 0 and math.isfinite(r):
            return f"Resistor({self.name!r}, nodes={self.nodes}, R={r:.4g})"
        return f"Resistor({self.name!r}, nodes={self.nodes}, short)"
