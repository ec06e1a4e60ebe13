"""Junction physics shared by semiconductor device models.

Pure functions of voltages, temperatures and model parameters. They are
written with jnp.where like the limiting functions, so they work on scalars
and arrays and can be differentiated with jax.grad where the region
boundaries are continuous.

Temperatures are absolute (Kelvin). Every division by a derived physical
quantity is guarded; a degenerate parameter gives a finite result.
"""

import jax.numpy as jnp
from jax import Array

from jax_mna.config import DEFAULT_CONSTANTS, Constants

# Silicon bandgap model: Eg(T) = EG0 - EG_ALPHA * T^2 / (EG_BETA + T)
EG0 = 1.16
EG_ALPHA = 7.02e-4
EG_BETA = 1108.0

# Largest exponent before exp() overflows a double
EXP_LIMIT = 709.0


def egap(temperature_k: Array) -> Array:
    """Temperature-dependent silicon bandgap (eV)."""
    return EG0 - EG_ALPHA * temperature_k**2 / (EG_BETA + temperature_k)


def pn_potential_t(t1: Array, t2: Array, vj: Array, constants: Constants = DEFAULT_CONSTANTS) -> Array:
    """Scale a junction built-in potential from t1 to t2.

    Vj(T2) = (T2/T1)*Vj - 3*Ut(T2)*ln(T2/T1) - ((T2/T1)*Eg(T1) - Eg(T2))
    """
    t1 = jnp.maximum(t1, 1e-30)
    t2 = jnp.maximum(t2, 1e-30)
    tr = t2 / t1
    ut = constants.k_over_q * t2
    return tr * vj - 3.0 * ut * jnp.log(tr) - (tr * egap(t1) - egap(t2))


def pn_capacitance_f(t1: Array, t2: Array, m: Array, vr: Array) -> Array:
    """Temperature factor for a zero-bias junction capacitance.

    Args:
        t1, t2: Nominal and device temperature (K)
        m: Grading coefficient
        vr: Ratio of scaled to nominal built-in potential
    """
    return 1.0 + m * (4e-4 * (t2 - t1) - vr + 1.0)


def pn_current_f(t1: Array, t2: Array, constants: Constants = DEFAULT_CONSTANTS) -> Array:
    """Temperature factor for a junction saturation current."""
    t1 = jnp.maximum(t1, 1e-30)
    t2 = jnp.maximum(t2, 1e-30)
    exponent = -constants.q_over_k / t2 * (t2 / t1 * egap(t1) - egap(t2))
    return jnp.exp(jnp.minimum(exponent, EXP_LIMIT))


def pn_junction_mos(v: Array, isat: Array, nut: Array) -> tuple[Array, Array]:
    """Current and conductance of a MOS parasitic body diode.

    Reverse biased the diode is linearised around zero (I = Isat/nUt * V);
    forward biased it follows the exponential law with the exponent capped
    to avoid overflow.

    Callers add a floor conductance (gtiny) to keep the Jacobian regular.

    Returns:
        Tuple of (current, conductance)
    """
    nut = jnp.maximum(nut, 1e-30)
    e = jnp.exp(jnp.minimum(v / nut, EXP_LIMIT))
    current = jnp.where(v <= 0, isat / nut * v, isat * (e - 1.0))
    conductance = jnp.where(v <= 0, isat / nut, isat * e / nut)
    return current, conductance


def _power_term(x: Array, p: Array) -> Array:
    """(1 - x**p) / p, continuous at p == 0."""
    small = jnp.abs(p) < 1e-9
    p_safe = jnp.where(small, 1.0, p)
    return jnp.where(small, -jnp.log(x), (1.0 - x**p_safe) / p_safe)


def pn_capacitance(v: Array, cj: Array, vj: Array, m: Array, fc: Array) -> Array:
    """Depletion capacitance of a junction.

    Below Fc*Vj the usual Cj * (1 - V/Vj)^-M law applies; above it the
    capacitance is extrapolated linearly so it stays finite in forward bias.
    A non-positive built-in potential leaves the zero-bias value.
    """
    vj_ok = vj > 0
    vj_safe = jnp.where(vj_ok, vj, 1.0)
    one_minus_fc = jnp.maximum(1.0 - fc, 1e-12)

    depletion = cj * jnp.maximum(1.0 - v / vj_safe, 1e-30) ** (-m)
    extrapolated = cj / one_minus_fc ** (1.0 + m) * (1.0 - fc * (1.0 + m) + m * v / vj_safe)

    c = jnp.where(v <= fc * vj_safe, depletion, extrapolated)
    return jnp.where(vj_ok, c, cj)


def pn_charge(v: Array, cj: Array, vj: Array, m: Array, fc: Array) -> Array:
    """Depletion charge of a junction, the integral of pn_capacitance()."""
    vj_ok = vj > 0
    vj_safe = jnp.where(vj_ok, vj, 1.0)
    one_minus_fc = jnp.maximum(1.0 - fc, 1e-12)

    depletion = cj * vj_safe * _power_term(jnp.maximum(1.0 - v / vj_safe, 1e-30), 1.0 - m)

    a = one_minus_fc ** (1.0 + m)
    c = 1.0 - fc * (1.0 + m)
    d = fc * vj_safe
    e = vj_safe * _power_term(one_minus_fc, 1.0 - m)
    extrapolated = cj * (e + (c * (v - d) + m / 2.0 / vj_safe * (v * v - d * d)) / a)

    q = jnp.where(v <= fc * vj_safe, depletion, extrapolated)
    return jnp.where(vj_ok, q, cj * v)


def fet_capacitance_meyer(
    ugs: Array, ugd: Array, uth: Array, udsat: Array, phi: Array, cox: Array
) -> tuple[Array, Array, Array]:
    """Meyer gate capacitances of a MOS channel.

    Regions by gate overdrive Utst = Ugs - Uth:

    - accumulation (Utst <= -Phi): all of Cox to bulk
    - depletion (Utst <= -Phi/2): Cgb falls linearly
    - weak inversion (Utst <= 0): Cgs rises towards 2/3 Cox
    - saturation (Uds >= Udsat): Cgs = 2/3 Cox
    - linear: Cgs and Cgd from the quadratic channel charge split

    Args:
        ugs, ugd: Gate-source and gate-drain voltages (polarity-normalised)
        uth: Bias-dependent threshold voltage
        udsat: Saturation voltage
        phi: Surface potential
        cox: Total gate oxide capacitance (F)

    Returns:
        Tuple of (Cgs, Cgd, Cgb)
    """
    phi = jnp.maximum(phi, 1e-12)
    utst = ugs - uth
    uds = ugs - ugd
    zero = jnp.zeros_like(utst * cox)

    sqr1 = (udsat - uds) ** 2
    sqr2 = jnp.maximum((2.0 * udsat - uds) ** 2, 1e-30)
    saturated = udsat <= uds

    cgs_on = jnp.where(saturated, 2.0 * cox / 3.0, cox * (1.0 - sqr1 / sqr2) * 2.0 / 3.0)
    cgd_on = jnp.where(saturated, zero, cox * (1.0 - udsat * udsat / sqr2) * 2.0 / 3.0)

    cgb_dep = -utst * cox / phi
    cgs_weak = utst * cox * 4.0 / 3.0 / phi + 2.0 * cox / 3.0

    cgb = jnp.where(
        utst <= -phi, cox + zero, jnp.where(utst <= 0, cgb_dep, zero)
    )
    cgs = jnp.where(
        utst <= -phi / 2.0, zero, jnp.where(utst <= 0, cgs_weak, cgs_on)
    )
    cgd = jnp.where(utst <= 0, zero, cgd_on)
    return cgs, cgd, cgb
