"""Device factory.

Creates devices by type name with defaults taken from SimulationOptions.
This is also where the isolator formulation is chosen: every isolator of
one analysis gets the same class, so the number of MNA unknowns is
consistent across the circuit.
"""

import logging
from typing import Dict, Optional, Sequence, Type

from jax_mna.analysis.options import SimulationOptions
from jax_mna.config import DEFAULT_CONSTANTS, Constants
from jax_mna.devices.base import Device, PropertyValue
from jax_mna.devices.capacitor import Capacitor
from jax_mna.devices.iac import CurrentSourceAC
from jax_mna.devices.isolator import AugmentedIsolator, Isolator
from jax_mna.devices.mosfet import MOSFET
from jax_mna.devices.resistor import Resistor

logger = logging.getLogger(__name__)

DEVICE_TYPES: Dict[str, Type[Device]] = {
    "resistor": Resistor,
    "r": Resistor,
    "capacitor": Capacitor,
    "c": Capacitor,
    "iac": CurrentSourceAC,
    "isolator": Isolator,
    "mosfet": MOSFET,
    "nmos": MOSFET,
    "pmos": MOSFET,
}

ISOLATOR_CLASSES: Dict[str, Type[Isolator]] = {
    "reduced": Isolator,
    "augmented": AugmentedIsolator,
}


def device_class(type_name: str, options: Optional[SimulationOptions] = None) -> Type[Device]:
    """Resolve a device type name to its class under ``options``."""
    key = type_name.lower()
    if key not in DEVICE_TYPES:
        raise ValueError(f"Unknown device type: {type_name}. Supported: {sorted(DEVICE_TYPES)}")
    cls = DEVICE_TYPES[key]
    if cls is Isolator:
        formulation = options.isolator if options is not None else "reduced"
        cls = ISOLATOR_CLASSES[formulation]
    return cls


def create_device(
    type_name: str,
    name: str,
    nodes: Sequence[str],
    options: Optional[SimulationOptions] = None,
    constants: Optional[Constants] = None,
    **properties: PropertyValue,
) -> Device:
    """Create a device with option-derived defaults.

    Args:
        type_name: Device type, e.g. 'mosfet', 'capacitor', 'isolator'
        name: Instance name
        nodes: Node names, one per terminal
        options: Analysis options; supply temperatures, z0, the Meyer charge
                 rule and the isolator formulation
        constants: Base constants; z0 is replaced by the option value
        **properties: Device parameters

    Returns:
        The new device

    Raises:
        ValueError: Unknown type name or wrong number of nodes
        KeyError: Unknown property name for the device type
    """
    options = options if options is not None else SimulationOptions()
    constants = options.constants(constants if constants is not None else DEFAULT_CONSTANTS)
    cls = device_class(type_name, options)

    if type_name.lower() in ("nmos", "pmos"):
        properties.setdefault("Type", "nfet" if type_name.lower() == "nmos" else "pfet")

    option_defaults = {"Temp": options.temp, "Tnom": options.tnom, "capModel": options.cap_model}
    for prop, value in option_defaults.items():
        if prop in cls.defaults:
            properties.setdefault(prop, value)

    device = cls(name, nodes, constants, **properties)
    logger.debug(f"created {device!r}")
    return device
