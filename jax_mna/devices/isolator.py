"""Ideal isolator (two-port nonreciprocal element) for jax-mna

An isolator passes waves from port 1 to port 2 and absorbs everything
travelling the other way. Each port is matched to its own impedance Z1,
Z2; against the reference impedance z0 that leaves a reflection

    s11 = (Z1 - z0) / (Z1 + z0)        s22 = (Z2 - z0) / (Z2 + z0)
    s21 = sqrt(1 - s11^2) * sqrt(1 - s22^2)
    s12 = 0

The element is frequency independent, so one MNA stamp serves DC, AC and
transient analysis. It comes in two formulations with the same terminal
behaviour:

- Isolator: reduced form, folded into the admittance block
      Y = [[1/Z1, 0], [-2/sqrt(Z1*Z2), 1/Z2]]
- AugmentedIsolator: two extra voltage-source unknowns carrying the port
  impedances in the D block

The two differ in the number of MNA unknowns, so a whole analysis uses one
or the other; see jax_mna.devices.registry.
"""

import logging
import math

import numpy as np

from jax_mna.config import DEFAULT_TEMPERATURE_C
from jax_mna.devices.base import Analysis, Device

logger = logging.getLogger(__name__)


class Isolator(Device):
    """Isolator, reduced (admittance-only) formulation.

    Parameters:
        Z1: Port 1 impedance in Ohms (default: 50)
        Z2: Port 2 impedance in Ohms (default: 50)
        Temp: Device temperature in Celsius, sets the noise of the
              absorbed reverse wave

    Terminals:
        port1, port2: Port terminals, each referenced to ground
    """

    terminals = ("port1", "port2")
    analyses = frozenset(Analysis)
    defaults = {"Z1": 50.0, "Z2": 50.0, "Temp": DEFAULT_TEMPERATURE_C}
    formulation = "reduced"

    def init_model(self) -> None:
        """Validate the port impedances and cache them as scaled properties.

        A non-positive impedance is replaced by z0 with a warning.
        """
        for name in ("Z1", "Z2"):
            value = self.properties.get_double(name)
            if value <= 0:
                logger.warning(
                    f"{self.name}: isolator port impedance {name} = {value:g} <= 0, "
                    f"using {self.z0:g}"
                )
                value = self.z0
            self.set_scaled(name, value)

    def port_impedances(self) -> tuple[float, float]:
        """Validated Z1 and Z2."""
        if "Z1" not in self.scaled:
            self.init_model()
        return self.get_scaled("Z1"), self.get_scaled("Z2")

    def init_sp(self) -> None:
        self.init_model()
        z1, z2 = self.port_impedances()
        z0 = self.z0
        s1 = (z1 - z0) / (z1 + z0)
        s2 = (z2 - z0) / (z2 + z0)
        s21 = math.sqrt(1.0 - s1 * s1) * math.sqrt(1.0 - s2 * s2)
        self.stamps.s[...] = np.array([[s1, 0.0], [s21, s2]], dtype=complex)

    def calc_noise_sp(self, frequency: float) -> None:
        z1, z2 = self.port_impedances()
        z0 = self.z0
        r = (z0 - z1) / (z0 + z2)
        f = 4.0 * z0 / (z1 + z0) ** 2 * self.temperature_k() / self.constants.t0
        n12 = f * math.sqrt(z1 * z2) * r
        self.stamps.n[...] = np.array([[f * z1, n12], [n12, f * z2 * r * r]], dtype=complex)

    def calc_noise_ac(self, frequency: float) -> None:
        z1, z2 = self.port_impedances()
        f = 4.0 * self.temperature_k() / self.constants.t0
        self.stamps.n[...] = np.array(
            [[f / z1, 0.0], [-2.0 * f / math.sqrt(z1 * z2), f / z2]], dtype=complex
        )

    def init_dc(self) -> None:
        self.init_model()
        z1, z2 = self.port_impedances()
        self.set_voltage_sources(0)
        self.stamps.clear_mna()
        self.stamps.y[...] = [[1.0 / z1, 0.0], [-2.0 / math.sqrt(z1 * z2), 1.0 / z2]]

    def init_ac(self) -> None:
        self.init_dc()

    def init_tr(self) -> None:
        self.init_dc()


class AugmentedIsolator(Isolator):
    """Isolator with two extra voltage-source unknowns.

    The branch equations are

        -V1 + Z1*J1                 = 0
        -V2 + 2*sqrt(Z1*Z2)*J1 + Z2*J2 = 0

    with J1, J2 flowing into the ports. Eliminating J gives back the
    reduced admittance of Isolator.
    """

    formulation = "augmented"

    def init_dc(self) -> None:
        self.init_model()
        z1, z2 = self.port_impedances()
        self.set_voltage_sources(2)
        self.stamps.clear_mna()
        self.stamps.b[...] = np.eye(2)
        self.stamps.c[...] = -np.eye(2)
        self.stamps.d[...] = [[z1, 0.0], [2.0 * math.sqrt(z1 * z2), z2]]
