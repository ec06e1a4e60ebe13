"""Capacitor device model for jax-mna

Two-terminal linear capacitor: open at DC, admittance jωC in AC and
S-parameter analysis, and a charge-based companion model in transient
analysis.
"""

import math
from enum import IntEnum

import numpy as np

from jax_mna.devices.base import Analysis, Device


class CapacitorState(IntEnum):
    CHARGE = 0
    CURRENT = 1


class Capacitor(Device):
    """Two-terminal capacitor device

    For DC analysis: open circuit (no current, no conductance)
    For AC analysis: Y = jωC between the terminals
    For transient: Q = C * V, integrated into a companion model

    Companion model (Norton equivalent), from the shared integration helper:
        G_eq = C * c0
        I = G_eq * V + I_eq

    A capacitor carrying the ``Controlled`` property belongs to another
    device's model and stamps nothing in transient analysis.

    Parameters:
        C: Capacitance in Farads (default: 1e-12, 1pF)

    Terminals:
        p: Positive terminal
        n: Negative terminal
    """

    terminals = ("p", "n")
    analyses = frozenset({Analysis.DC, Analysis.AC, Analysis.SP, Analysis.TR})
    defaults = {"C": 1e-12}
    state_slots = CapacitorState
    current_slots = (CapacitorState.CURRENT,)

    def init_dc(self) -> None:
        self.stamps.clear_mna()

    def init_ac(self) -> None:
        self.stamps.clear_mna()

    def calc_ac(self, frequency: float) -> None:
        c = self.properties.get_double("C")
        self.stamps.y[...] = 0
        self.stamps.add_conductance(0, 1, 1j * 2.0 * math.pi * frequency * c)

    def calc_sp(self, frequency: float) -> None:
        c = self.properties.get_double("C") * self.z0
        y = 2j * 2.0 * math.pi * frequency * c
        s11 = 1.0 / (1.0 + y)
        s21 = y / (1.0 + y)
        self.stamps.s[...] = np.array([[s11, s21], [s21, s11]], dtype=complex)

    def init_tr(self) -> None:
        self.alloc_states()
        self.stamps.clear_mna()

    def calc_tr(self, time: float) -> None:
        if self.is_controlled():
            return
        c = self.properties.get_double("C")
        v = self.voltage_between(0, 1)

        self.stamps.clear_mna()
        self.transient_capacitance(
            CapacitorState.CHARGE, CapacitorState.CURRENT, 0, 1, c, v, c * v
        )
