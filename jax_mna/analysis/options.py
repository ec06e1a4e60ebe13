"""Simulation options shared by every device of one analysis.

Options carry the analysis-wide choices a device cannot make for itself:
default device temperature, nominal temperature, reference impedance,
transient integration method, the Meyer charge rule and the isolator
formulation. The isolator formulation changes the number of MNA unknowns,
so it is fixed here for a whole analysis and never per device.

Example usage:
    options = SimulationOptions(temp=85.0)
    options.tran_method = IntegrationMethod.GEAR2
    options.update_from_dict({"z0": "75", "isolator": "augmented"})
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict

from jax_mna.analysis.integration import (
    IntegrationCoeffs,
    IntegrationMethod,
    compute_coefficients,
)
from jax_mna.config import DEFAULT_CONSTANTS, DEFAULT_TEMPERATURE_C, DEFAULT_Z0, Constants

logger = logging.getLogger(__name__)

ISOLATOR_FORMULATIONS = ("reduced", "augmented")
CAP_MODELS = (1, 2)


@dataclass
class SimulationOptions:
    """Analysis-wide options.

    Options are validated on assignment. Invalid values raise ValueError.

    Temperatures are in Celsius; devices convert to Kelvin internally.
    """

    temp: float = DEFAULT_TEMPERATURE_C
    """Default device temperature (°C) for devices without a Temp property."""

    tnom: float = DEFAULT_TEMPERATURE_C
    """Nominal temperature (°C) at which model parameters were extracted."""

    z0: float = DEFAULT_Z0
    """S-parameter reference impedance (ohm)."""

    tran_method: IntegrationMethod = IntegrationMethod.TRAPEZOIDAL
    """Transient integration method (be, trap, gear2)."""

    cap_model: int = 1
    """Meyer charge approximation: 1 = trapezoidal, 2 = Simpson."""

    isolator: str = "reduced"
    """Isolator formulation: 'reduced' (admittance only) or 'augmented'."""

    def __post_init__(self):
        """Validate all options after initialization."""
        self._validate_all()

    def __setattr__(self, name: str, value: Any) -> None:
        """Set attribute with validation."""
        if name in ("temp", "tnom") and value <= -273.15:
            raise ValueError(f"{name} must be > -273.15°C (absolute zero), got {value}")
        if name == "z0" and value <= 0:
            raise ValueError(f"z0 must be positive, got {value}")
        if name == "cap_model" and value not in CAP_MODELS:
            raise ValueError(f"cap_model must be 1 or 2, got {value}")
        if name == "isolator" and value not in ISOLATOR_FORMULATIONS:
            raise ValueError(f"isolator must be 'reduced' or 'augmented', got {value}")

        object.__setattr__(self, name, value)

    def _validate_all(self):
        """Validate all option values."""
        if self.temp <= -273.15:
            raise ValueError(f"temp must be > -273.15°C, got {self.temp}")
        if self.tnom <= -273.15:
            raise ValueError(f"tnom must be > -273.15°C, got {self.tnom}")
        if self.z0 <= 0:
            raise ValueError(f"z0 must be positive, got {self.z0}")
        if not isinstance(self.tran_method, IntegrationMethod):
            raise ValueError(f"tran_method must be an IntegrationMethod, got {self.tran_method}")
        if self.cap_model not in CAP_MODELS:
            raise ValueError(f"cap_model must be 1 or 2, got {self.cap_model}")
        if self.isolator not in ISOLATOR_FORMULATIONS:
            raise ValueError(f"isolator must be 'reduced' or 'augmented', got {self.isolator}")

    def set(self, name: str, value: Any) -> None:
        """Set an option by name with validation.

        Args:
            name: Option name (e.g., 'z0')
            value: Option value (will be converted to appropriate type)

        Raises:
            ValueError: If option name is unknown or value is invalid
        """
        if not hasattr(self, name):
            raise ValueError(f"Unknown option: {name}")

        field_type = None
        for f in fields(self):
            if f.name == name:
                field_type = f.type
                break

        if field_type == float:
            value = float(value)
        elif field_type == int:
            value = int(value)
        elif field_type == str:
            value = str(value).strip("\"'").lower()
        elif field_type == IntegrationMethod:
            if isinstance(value, str):
                value = IntegrationMethod.from_string(value)

        setattr(self, name, value)
        self._validate_all()

    def get(self, name: str, default: Any = None) -> Any:
        """Get an option value by name, or ``default`` if unset."""
        value = getattr(self, name, default)
        return default if value is None else value

    def update_from_dict(
        self, opts: Dict[str, Any], parse_number: Callable[[str], float] = float
    ) -> None:
        """Update options from a name -> value mapping.

        Unknown names are ignored. Values that fail to parse or validate are
        logged and skipped, leaving the previous value in place.

        Args:
            opts: Option values, typically strings from a configuration file
            parse_number: Function to parse numbers (e.g., '1u' -> 1e-6)
        """
        _float_fields = {"temp", "tnom", "z0"}
        _int_fields = {"cap_model"}

        for opt_name, opt_value in opts.items():
            if not hasattr(self, opt_name):
                logger.debug(f"Ignoring unknown option {opt_name}")
                continue

            try:
                if opt_name in _float_fields and isinstance(opt_value, str):
                    opt_value = parse_number(opt_value)
                elif opt_name in _int_fields and isinstance(opt_value, str):
                    opt_value = int(parse_number(opt_value))

                self.set(opt_name, opt_value)
            except (ValueError, TypeError) as e:
                logger.warning(f"Failed to parse option {opt_name}={opt_value}: {e}")

    def integration_coefficients(self, dt: float) -> IntegrationCoeffs:
        """Companion-model coefficients for a timestep of ``dt`` seconds."""
        return compute_coefficients(self.tran_method, dt)

    def constants(self, base: Constants = DEFAULT_CONSTANTS) -> Constants:
        """Constants with the reference impedance taken from these options."""
        return base.with_updates(z0=self.z0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert options to a plain dictionary."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, IntegrationMethod):
                value = value.value
            result[f.name] = value
        return result

    def copy(self) -> "SimulationOptions":
        return SimulationOptions(**{f.name: getattr(self, f.name) for f in fields(self)})
