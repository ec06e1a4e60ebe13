"""Voltage limiting functions for Newton-Raphson convergence.

These functions compress large voltage changes between Newton iterations
so that device models are never evaluated at unrealistic operating points.
They bound the step; they never report a convergence failure, which is the
driver's decision.

PN junction currents are exponential in voltage:
    I = Is * (exp(V/nUt) - 1)

A 1V change in junction voltage can change the current by a factor of
e^(1/0.026) ≈ 2e16. Above the critical voltage the step is replaced by
the step along the junction's own exponential, which grows only
logarithmically with the requested change.

FET limiting works on the gate voltage relative to the threshold and on
the drain-source voltage relative to fixed bands, as in SPICE's fetlim and
limvds.

All functions are written with jnp.where so they accept scalars or arrays.
"""

import jax.numpy as jnp
from jax import Array

from jax_mna.config import SQRT2


def pn_critical_voltage(isat: Array, nut: Array) -> Array:
    """Junction voltage above which pn limiting engages.

    Vcrit = nUt * ln(nUt / (sqrt(2) * Isat)). A non-positive saturation
    current has no meaningful critical voltage; a large value is returned
    so that limiting never engages.
    """
    nut = jnp.maximum(nut, 1e-30)
    safe_isat = jnp.maximum(isat, 1e-300)
    vcrit = nut * jnp.log(nut / (SQRT2 * safe_isat))
    return jnp.where(isat > 0, vcrit, 1e3)


def pn_voltage(vnew: Array, vold: Array, nut: Array, vcrit: Array) -> Array:
    """PN junction voltage limiting.

    Three cases:

    1. vnew > vcrit AND |vnew - vold| > 2*nUt (forward, large change):
       - vold > 0, rising:  vold + nUt * ln(1 + arg)
       - vold > 0, falling: vold - nUt * ln(1 - arg)
         with arg = (vnew - vold) / nUt
       - vold < 0: nUt * ln(vnew / nUt)
       - vold == 0: vcrit
    2. vnew < 0 (reverse bias clamping):
       - vold > 0: clamp to max(vnew, -1 - vold)
       - vold <= 0: clamp to max(vnew, 2*vold - 1)
    3. Otherwise: vnew unchanged

    Both forward branches land strictly between vold and vnew, so repeated
    application with the same target approaches it monotonically and
    reaches it once the step falls within 2*nUt.

    Args:
        vnew: Proposed junction voltage from the Newton step
        vold: Junction voltage of the previous iterate
        nut: Emission coefficient times thermal voltage
        vcrit: Critical voltage from pn_critical_voltage()

    Returns:
        Limited junction voltage
    """
    nut = jnp.maximum(nut, 1e-30)
    delta_v = vnew - vold
    arg = delta_v / nut

    fwd_condition = (vnew > vcrit) & (jnp.abs(delta_v) > 2 * nut)

    limited_rise = vold + nut * jnp.log(jnp.maximum(1.0 + arg, 1e-30))
    limited_fall = vold - nut * jnp.log(jnp.maximum(1.0 - arg, 1e-30))
    limited_forward = jnp.where(arg > 0, limited_rise, limited_fall)

    limited_reverse = jnp.where(
        vold < 0,
        nut * jnp.log(jnp.maximum(vnew / nut, 1e-30)),
        vcrit,
    )
    limited_fwd = jnp.where(vold > 0, limited_forward, limited_reverse)

    neg_clamp = jnp.where(vold > 0, -1.0 - vold, 2.0 * vold - 1.0)
    limited_neg = jnp.maximum(vnew, neg_clamp)

    return jnp.where(
        fwd_condition,
        limited_fwd,
        jnp.where(vnew < 0, limited_neg, vnew),
    )


def fet_voltage(vnew: Array, vold: Array, vth: Array) -> Array:
    """FET gate voltage limiting (region based).

    The allowed step depends on where the previous iterate sits relative
    to the threshold ``vth``:

    - fully on (vold >= vth + 3.5): falling steps are bounded by half the
      overdrive band and stop at vth + 2 when leaving the band; rising
      steps are bounded by the full band
    - near threshold (vth <= vold < vth + 3.5): clamp to [vth - 0.5, vth + 4]
    - off (vold < vth): falling steps are bounded by the band; rising steps
      are bounded by half of it and never pass vth + 0.5

    Args:
        vnew: Proposed gate-source (or gate-drain) voltage
        vold: Previous iterate
        vth: Threshold voltage, polarity-normalised

    Returns:
        Limited voltage
    """
    vtsthi = jnp.abs(2.0 * (vold - vth)) + 2.0
    vtstlo = vtsthi / 2.0
    vtox = vth + 3.5
    delta = vnew - vold

    on_fall = jnp.where(
        vnew >= vtox,
        jnp.where(-delta > vtstlo, vold - vtstlo, vnew),
        jnp.maximum(vnew, vth + 2.0),
    )
    on_rise = jnp.where(delta >= vtsthi, vold + vtsthi, vnew)
    strong = jnp.where(delta <= 0, on_fall, on_rise)

    middle = jnp.where(delta <= 0, jnp.maximum(vnew, vth - 0.5), jnp.minimum(vnew, vth + 4.0))
    on = jnp.where(vold >= vtox, strong, middle)

    off_fall = jnp.where(-delta > vtsthi, vold - vtsthi, vnew)
    off_rise = jnp.where(
        vnew <= vth + 0.5,
        jnp.where(delta > vtstlo, vold + vtstlo, vnew),
        vth + 0.5,
    )
    off = jnp.where(delta <= 0, off_fall, off_rise)

    return jnp.where(vold >= vth, on, off)


def fet_voltage_ds(vnew: Array, vold: Array) -> Array:
    """FET drain-source voltage limiting.

    Above 3.5V rising steps may at most reach 3*vold + 2 and falling steps
    stop at 2V once they leave the band; below 3.5V the voltage is kept in
    [-0.5, 4] when moving away from vold.
    """
    high = jnp.where(
        vnew > vold,
        jnp.minimum(vnew, 3.0 * vold + 2.0),
        jnp.where(vnew < 3.5, jnp.maximum(vnew, 2.0), vnew),
    )
    low = jnp.where(vnew > vold, jnp.minimum(vnew, 4.0), jnp.maximum(vnew, -0.5))
    return jnp.where(vold >= 3.5, high, low)
