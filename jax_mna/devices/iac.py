"""Ideal AC current source for jax-mna"""

import math

import numpy as np

from jax_mna.config import DEFAULT_TEMPERATURE_C
from jax_mna.devices.base import Analysis, Device


class CurrentSourceAC(Device):
    """Ideal sinusoidal current source.

    The source injects +i into terminal p and -i into terminal n. In
    S-parameter analysis it is transparent: an ideal current source has
    infinite impedance, so it passes waves unchanged (S = identity).

    Parameters:
        I: Peak current in Amperes (default: 1mA)
        f: Frequency in Hz, used in transient analysis (default: 1GHz)
        Phase: Phase in degrees (default: 0)
        Temp: Device temperature in Celsius

    Terminals:
        p: Terminal receiving the current
        n: Terminal the current is drawn from
    """

    terminals = ("p", "n")
    analyses = frozenset({Analysis.DC, Analysis.AC, Analysis.SP, Analysis.TR})
    defaults = {
        "I": 1e-3,
        "f": 1e9,
        "Phase": 0.0,
        "Temp": DEFAULT_TEMPERATURE_C,
    }

    def init_sp(self) -> None:
        self.stamps.s[...] = np.eye(2, dtype=complex)

    def init_dc(self) -> None:
        self.stamps.clear_mna()

    def init_ac(self) -> None:
        amplitude = self.properties.get_double("I")
        phase = math.radians(self.properties.get_double("Phase"))
        i = amplitude * complex(math.cos(phase), math.sin(phase))
        self.stamps.clear_mna()
        self.stamps.i[...] = [i, -i]

    def init_tr(self) -> None:
        self.stamps.clear_mna()

    def calc_tr(self, time: float) -> None:
        amplitude = self.properties.get_double("I")
        f = self.properties.get_double("f")
        phase = math.radians(self.properties.get_double("Phase"))
        i = amplitude * math.sin(2.0 * math.pi * f * time + phase)
        self.stamps.i[...] = [i, -i]
