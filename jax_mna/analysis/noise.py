"""Noise spectral densities for device noise-correlation matrices.

Device noise matrices are normalised to k*T0 (T0 = 290K), the convention
of noise-wave analysis, so a resistor at T0 contributes a current
correlation of simply 4/R:

- Thermal (white noise): PSD = 4*k*T*G       -> 4 * (T/T0) * G
- Channel (MOS thermal): PSD = 8/3*k*T*gm    -> 8/3 * (T/T0) * gm
- Flicker (1/f noise):   PSD = Kf*I^Af/f^Ef  -> Kf*I^Af/f^Ef / (k*T0)
"""

import numpy as np

from jax_mna.config import DEFAULT_CONSTANTS, Constants


def thermal_noise(conductance, temperature_k, constants: Constants = DEFAULT_CONSTANTS):
    """Normalised thermal noise current PSD of a conductance.

    Args:
        conductance: Conductance in Siemens
        temperature_k: Temperature in Kelvin

    Returns:
        4 * (T/T0) * G, or 0 for a non-positive conductance
    """
    conductance = float(conductance)
    if conductance <= 0:
        return 0.0
    return 4.0 * float(temperature_k) / constants.t0 * conductance


def channel_noise(gm, temperature_k, constants: Constants = DEFAULT_CONSTANTS):
    """Normalised MOS channel thermal noise PSD (8/3 * kT * gm)."""
    return 8.0 * float(temperature_k) / constants.t0 * abs(float(gm)) / 3.0


def flicker_noise(
    current,
    frequency,
    kf=0.0,
    af=1.0,
    ffe=1.0,
    constants: Constants = DEFAULT_CONSTANTS,
):
    """Normalised flicker (1/f) noise PSD.

    Args:
        current: DC current in Amperes
        frequency: Frequency in Hz
        kf: Flicker noise coefficient
        af: Current exponent
        ffe: Frequency exponent

    Returns:
        Kf * |I|^Af / f^Ffe / (k*T0); zero at DC or for Kf <= 0
    """
    current = abs(float(current))
    frequency = float(frequency)
    if kf <= 0 or frequency <= 0 or current == 0:
        return 0.0
    return kf * current**af / frequency**ffe / constants.k_boltzmann / constants.t0


def two_terminal_correlation(psd, n: int = 2, pos: int = 0, neg: int = 1) -> np.ndarray:
    """Correlation matrix of a noise current between two terminals.

    Args:
        psd: Normalised spectral density of the current
        n: Number of device terminals
        pos, neg: Terminals the noise current flows between

    Returns:
        ``(n, n)`` complex matrix with +psd on the two diagonal entries and
        -psd on the two cross entries
    """
    cy = np.zeros((n, n), dtype=complex)
    cy[pos, pos] = cy[neg, neg] = psd
    cy[pos, neg] = cy[neg, pos] = -psd
    return cy
