"""Device models for jax-mna"""

from jax_mna.devices.base import Analysis, Device, MatrixStamps, Properties
from jax_mna.devices.capacitor import Capacitor
from jax_mna.devices.iac import CurrentSourceAC
from jax_mna.devices.isolator import AugmentedIsolator, Isolator
from jax_mna.devices.mosfet import MOSFET
from jax_mna.devices.registry import create_device, device_class
from jax_mna.devices.resistor import Resistor
from jax_mna.devices.state import ChargeRule, StateVector

__all__ = [
    "Analysis",
    "Device",
    "MatrixStamps",
    "Properties",
    "StateVector",
    "ChargeRule",
    "Resistor",
    "Capacitor",
    "CurrentSourceAC",
    "Isolator",
    "AugmentedIsolator",
    "MOSFET",
    "create_device",
    "device_class",
]
