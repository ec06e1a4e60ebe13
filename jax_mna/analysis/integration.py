"""Integration methods for transient companion models.

A reactive element with charge Q is replaced, within one timestep, by a
conductance in parallel with a current source. The current is recovered
from the charge history:
    i = c0 * Q + c1 * Q_prev + c2 * Q_prev2 + d1 * i_prev

Where:
    c0: Leading coefficient for the present charge (also dI/dQ)
    c1, c2: Coefficients for past charges
    d1: Coefficient for the past current (only for trap)

The equivalent conductance of a capacitance C is then ``C * c0``.
"""

from enum import Enum
from typing import NamedTuple


class IntegrationMethod(Enum):
    """Supported integration methods for transient analysis."""

    BACKWARD_EULER = "be"
    TRAPEZOIDAL = "trap"
    GEAR2 = "gear2"

    @classmethod
    def from_string(cls, s: str) -> "IntegrationMethod":
        """Parse integration method from string.

        Handles the aliases used in SPICE-like option lists.
        """
        s_lower = s.lower().strip().strip("\"'")
        aliases = {
            "be": cls.BACKWARD_EULER,
            "euler": cls.BACKWARD_EULER,
            "backward_euler": cls.BACKWARD_EULER,
            "trap": cls.TRAPEZOIDAL,
            "trapezoidal": cls.TRAPEZOIDAL,
            "am2": cls.TRAPEZOIDAL,  # Adams-Moulton order 2
            "gear2": cls.GEAR2,
            "gear": cls.GEAR2,
            "bdf2": cls.GEAR2,
            "bdf": cls.GEAR2,
        }
        if s_lower in aliases:
            return aliases[s_lower]
        raise ValueError(f"Unknown integration method: {s}. Supported: be, trap, gear2")


class IntegrationCoeffs(NamedTuple):
    """Integration coefficients for a specific method and timestep.

        BE:    i = (Q - Q_prev) / dt
               c0 = 1/dt, c1 = -1/dt, c2 = 0, d1 = 0

        Trap:  i = 2/dt * (Q - Q_prev) - i_prev
               c0 = 2/dt, c1 = -2/dt, c2 = 0, d1 = -1

        Gear2: i = (3*Q - 4*Q_prev + Q_prev2) / (2*dt)
               c0 = 3/(2*dt), c1 = -4/(2*dt), c2 = 1/(2*dt), d1 = 0
    """

    c0: float  # Coefficient for Q (leading coefficient)
    c1: float  # Coefficient for Q_prev
    c2: float  # Coefficient for Q_prev2 (only Gear2)
    d1: float  # Coefficient for i_prev (only trap)
    history_depth: int  # Number of past Q values needed (1 for BE/trap, 2 for Gear2)


def compute_coefficients(method: IntegrationMethod, dt: float) -> IntegrationCoeffs:
    """Compute integration coefficients for a given method and timestep.

    Args:
        method: Integration method to use
        dt: Timestep size, must be positive

    Returns:
        IntegrationCoeffs with all coefficients
    """
    if dt <= 0:
        raise ValueError(f"timestep must be positive, got {dt}")
    inv_dt = 1.0 / dt

    if method == IntegrationMethod.BACKWARD_EULER:
        return IntegrationCoeffs(c0=inv_dt, c1=-inv_dt, c2=0.0, d1=0.0, history_depth=1)
    elif method == IntegrationMethod.TRAPEZOIDAL:
        return IntegrationCoeffs(
            c0=2.0 * inv_dt, c1=-2.0 * inv_dt, c2=0.0, d1=-1.0, history_depth=1
        )
    elif method == IntegrationMethod.GEAR2:
        return IntegrationCoeffs(
            c0=1.5 * inv_dt, c1=-2.0 * inv_dt, c2=0.5 * inv_dt, d1=0.0, history_depth=2
        )
    else:
        raise ValueError(f"Unknown integration method: {method}")
