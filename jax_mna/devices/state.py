"""Per-device state history for transient analysis.

Each device declares its state slots as an IntEnum, so slot identity is by
name rather than by a bare integer. A slot keeps a short history ring:

    offset 0: value being computed in the present timestep
    offset 1: value at the last accepted timestep
    offset 2: value two accepted timesteps back

Offset 0 may change on every Newton iteration. The older offsets only move
when the driver accepts a timestep and calls commit().

Two integration helpers build on the history:

- integrate(): companion conductance and current of a charge slot, from
  backward-Euler, trapezoidal or Gear-2 coefficients
- integrate_charge(): charge of a capacitance-only model (Meyer gate
  capacitances) by the trapezoidal or Simpson rule over the stored
  capacitance history
"""

from enum import IntEnum
from typing import Type

import numpy as np

from jax_mna.analysis.integration import IntegrationCoeffs


class ChargeRule(IntEnum):
    """Rule used to turn a capacitance history into a charge."""

    TRAPEZOIDAL = 1
    SIMPSON = 2


class StateVector:
    """Named state slots with a fixed-depth history ring.

    Args:
        slots: IntEnum listing the device's state slots
        depth: Number of history entries per slot, including offset 0
    """

    def __init__(self, slots: Type[IntEnum], depth: int = 3):
        if depth < 1:
            raise ValueError(f"state history depth must be >= 1, got {depth}")
        self.slots = slots
        self.depth = depth
        self._values = np.zeros((depth, len(slots)))

    def _index(self, slot: IntEnum) -> int:
        if not isinstance(slot, self.slots):
            raise KeyError(f"{slot!r} is not a slot of {self.slots.__name__}")
        return int(slot)

    def get(self, slot: IntEnum, offset: int = 0) -> float:
        """Value of ``slot`` ``offset`` accepted steps back."""
        if not 0 <= offset < self.depth:
            raise IndexError(f"offset {offset} outside history depth {self.depth}")
        return float(self._values[offset, self._index(slot)])

    def set(self, slot: IntEnum, value: float) -> None:
        """Set the present (offset 0) value of ``slot``."""
        self._values[0, self._index(slot)] = value

    def fill(self, slot: IntEnum, value: float) -> None:
        """Set ``slot`` to ``value`` at every offset."""
        self._values[:, self._index(slot)] = value

    def fill_history(self) -> None:
        """Copy the present values into every history offset."""
        self._values[1:] = self._values[0]

    def commit(self) -> None:
        """Shift the history by one accepted timestep.

        The present values become offset 1 and also remain as the starting
        point for the next timestep's iteration.
        """
        self._values[1:] = self._values[:-1].copy()

    def __len__(self) -> int:
        return len(self.slots)

    def __repr__(self) -> str:
        present = ", ".join(f"{s.name}={self._values[0, int(s)]:.4g}" for s in self.slots)
        return f"StateVector({present})"


def integrate(
    states: StateVector,
    q_slot: IntEnum,
    i_slot: IntEnum,
    cap: float,
    voltage: float,
    coeffs: IntegrationCoeffs,
) -> tuple[float, float]:
    """Companion model of a charge-storage element.

    The present charge must already be stored in ``q_slot``. The current
    through the element is recovered from the charge history and stored in
    ``i_slot``; it is then split into a conductance and an equivalent
    current source linearised at ``voltage``.

    Args:
        states: Device state vector
        q_slot: Slot holding the element charge
        i_slot: Slot receiving the element current
        cap: Incremental capacitance dQ/dV at ``voltage``
        voltage: Present voltage across the element
        coeffs: Integration coefficients of the present timestep

    Returns:
        Tuple of (geq, ieq) with i = geq * V + ieq
    """
    current = coeffs.c0 * states.get(q_slot) + coeffs.c1 * states.get(q_slot, 1)
    if coeffs.history_depth >= 2:
        current += coeffs.c2 * states.get(q_slot, 2)
    if coeffs.d1 != 0.0:
        current += coeffs.d1 * states.get(i_slot, 1)
    states.set(i_slot, current)

    geq = cap * coeffs.c0
    return geq, current - geq * voltage


def integrate_charge(
    states: StateVector,
    q_slot: IntEnum,
    v_slot: IntEnum,
    c_slot: IntEnum,
    cap: float,
    voltage: float,
    overlap: float = 0.0,
    rule: ChargeRule = ChargeRule.TRAPEZOIDAL,
) -> tuple[float, float]:
    """Charge of a capacitance-only model over the last timestep.

    The capacitance is averaged over the stored history (present and
    previous for the trapezoidal rule, present and two previous weighted
    1:4:1 for Simpson's rule), a constant ``overlap`` capacitance is added,
    and the charge is advanced from the last accepted charge by the
    averaged capacitance times the voltage step.

    Returns:
        Tuple of (charge, averaged capacitance)
    """
    states.set(c_slot, cap)
    if rule == ChargeRule.SIMPSON:
        avg = (cap + 4.0 * states.get(c_slot, 1) + states.get(c_slot, 2)) / 6.0
    else:
        avg = (cap + states.get(c_slot, 1)) / 2.0
    avg += overlap
    states.set(v_slot, voltage)
    charge = avg * (voltage - states.get(v_slot, 1)) + states.get(q_slot, 1)
    return charge, avg
