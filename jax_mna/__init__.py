"""jax-mna: device models and MNA stamps for circuit analysis"""

import jax

from jax_mna.logging import logger

__version__ = "0.1.0"


def configure_precision(enable_x64: bool = True) -> bool:
    """Configure JAX float precision.

    Device stamps are accumulated in double precision; junction currents
    span many decades and single precision loses the small-signal terms.

    Args:
        enable_x64: If False, fall back to 32-bit floats.

    Returns:
        True if x64 is enabled, False otherwise.

    This function is called automatically on import.
    """
    if enable_x64:
        logger.debug("Using 64-bit float precision")
    else:
        logger.warning("Using 32-bit float precision")

    jax.config.update("jax_enable_x64", enable_x64)
    return enable_x64


_x64_enabled = configure_precision()


from jax_mna.config import DEFAULT_CONSTANTS, Constants  # noqa: E402
from jax_mna.devices import (  # noqa: E402
    MOSFET,
    AugmentedIsolator,
    Capacitor,
    CurrentSourceAC,
    Device,
    Isolator,
    Resistor,
    create_device,
)

__all__ = [
    "Constants",
    "DEFAULT_CONSTANTS",
    "Device",
    "Resistor",
    "Capacitor",
    "CurrentSourceAC",
    "Isolator",
    "AugmentedIsolator",
    "MOSFET",
    "create_device",
    "configure_precision",
]
