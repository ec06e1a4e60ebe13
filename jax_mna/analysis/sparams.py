"""Network-parameter conversions between admittance and scattering form.

All matrices are referenced to a single real impedance ``z0`` at every
port. Noise matrices are normalised to k*T0, so a current-correlation
matrix scaled by z0 converts to a dimensionless wave-correlation matrix.
"""

import jax
import jax.numpy as jnp


@jax.jit
def y_to_s(Y: jax.Array, z0: float = 50.0) -> jax.Array:
    """Convert an admittance (Y) matrix to an S-parameter matrix.

    Uses ``S = (I - z0*Y) @ (I + z0*Y)^-1``.

    Args:
        Y: Admittance matrix of shape ``(n, n)``.
        z0: Reference impedance in ohms.

    Returns:
        Complex S-matrix of shape ``(n, n)``.
    """
    Y = jnp.asarray(Y, dtype=jnp.complex128)
    eye = jnp.eye(Y.shape[-1], dtype=Y.dtype)
    return (eye - z0 * Y) @ jnp.linalg.inv(eye + z0 * Y)


@jax.jit
def s_to_y(S: jax.Array, z0: float = 50.0) -> jax.Array:
    """Convert an S-parameter matrix to an admittance (Y) matrix.

    Uses ``Y = (1/z0) * (I - S) @ (I + S)^-1``.
    """
    S = jnp.asarray(S, dtype=jnp.complex128)
    eye = jnp.eye(S.shape[-1], dtype=S.dtype)
    return (1.0 / z0) * (eye - S) @ jnp.linalg.inv(eye + S)


@jax.jit
def cy_to_cs(Cy: jax.Array, S: jax.Array) -> jax.Array:
    """Convert a normalised noise-current correlation matrix to wave form.

    ``Cs = (I + S) @ Cy @ (I + S)^H / 4``, where ``Cy`` has already been
    multiplied by z0.
    """
    Cy = jnp.asarray(Cy, dtype=jnp.complex128)
    S = jnp.asarray(S, dtype=jnp.complex128)
    t = jnp.eye(S.shape[-1], dtype=S.dtype) + S
    return t @ Cy @ jnp.conj(t).T / 4.0
