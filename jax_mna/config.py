"""Physical and reference constants for device models.

Module-level names are the plain values. ``Constants`` bundles them into an
immutable record that every device and helper accepts as an argument, so a
test or a sweep can vary the reference temperature or impedance without
touching shared state.
"""

import math
from dataclasses import dataclass, replace

# Physical constants (CODATA 2018 exact values)
K_BOLTZMANN = 1.380649e-23  # Boltzmann constant (J/K)
Q_ELECTRON = 1.602176634e-19  # Elementary charge (C)

# Permittivities
EPSILON_0 = 8.854187817e-12  # Vacuum permittivity (F/m)
EPSILON_SIO2 = 3.9  # Relative permittivity of silicon dioxide
EPSILON_SI = 11.7  # Relative permittivity of silicon

# Intrinsic carrier density of silicon (1/m^3)
NI_SI = 1.45e16

# Offset between Celsius and Kelvin
CELSIUS_OFFSET = 273.15

# Standard noise temperature (K); noise matrices are normalised to k*T0
T0_NOISE = 290.0

# Default device and nominal temperature (Celsius)
DEFAULT_TEMPERATURE_C = 26.85

# Reference impedance for S-parameters (ohm)
DEFAULT_Z0 = 50.0


@dataclass(frozen=True)
class Constants:
    """Immutable bundle of physical and reference constants.

    Attributes:
        k_boltzmann: Boltzmann constant (J/K)
        q_electron: Elementary charge (C)
        epsilon_0: Vacuum permittivity (F/m)
        epsilon_sio2: Relative permittivity of the gate oxide
        epsilon_si: Relative permittivity of silicon
        ni_si: Intrinsic carrier density (1/m^3)
        t0: Noise reference temperature (K)
        z0: S-parameter reference impedance (ohm)
    """

    k_boltzmann: float = K_BOLTZMANN
    q_electron: float = Q_ELECTRON
    epsilon_0: float = EPSILON_0
    epsilon_sio2: float = EPSILON_SIO2
    epsilon_si: float = EPSILON_SI
    ni_si: float = NI_SI
    t0: float = T0_NOISE
    z0: float = DEFAULT_Z0

    @property
    def k_over_q(self) -> float:
        """Thermal voltage per kelvin (V/K)."""
        return self.k_boltzmann / self.q_electron

    @property
    def q_over_k(self) -> float:
        return self.q_electron / self.k_boltzmann

    def kelvin(self, celsius: float) -> float:
        return celsius + CELSIUS_OFFSET

    def thermal_voltage(self, temperature_k: float) -> float:
        """kT/q at the given absolute temperature."""
        return temperature_k * self.k_over_q

    def with_updates(self, **changes) -> "Constants":
        return replace(self, **changes)


DEFAULT_CONSTANTS = Constants()

SQRT2 = math.sqrt(2.0)
