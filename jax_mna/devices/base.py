"""Base device interface for jax-mna

Every device model produces stamps for a modified nodal analysis (MNA)
system: entries of the admittance matrix Y and the current vector I, the
scattering matrix S, the noise correlation matrix N and, for devices that
add voltage-source unknowns, the B/C/D/E blocks. Stamps are addressed by
the device's own terminal indices; mapping them into the global system is
the driver's job.

The driver talks to devices through a fixed set of analysis hooks:

    init_dc()  calc_dc()
    init_ac()  calc_ac(frequency)
    init_sp()  calc_sp(frequency)
    init_tr()  calc_tr(time)
    calc_noise_ac(frequency)  calc_noise_sp(frequency)

Every hook has a no-op default here. A device overrides the hooks it
implements and lists the analyses it supports in ``analyses``.

Example:
    ```python
    cap = Capacitor("C1", ["in", "out"], C=1e-12)
    cap.init_sp()
    cap.calc_sp(1e9)
    print(cap.stamps.s)
    ```
"""

import logging
from enum import Enum, IntEnum
from typing import ClassVar, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Type, Union

import numpy as np

from jax_mna.analysis.integration import IntegrationCoeffs
from jax_mna.config import DEFAULT_CONSTANTS, Constants
from jax_mna.devices.state import StateVector, integrate

logger = logging.getLogger(__name__)

PropertyValue = Union[float, int, str]


class Analysis(Enum):
    """Analysis modes a device can take part in."""

    DC = "dc"
    AC = "ac"
    SP = "sp"
    TR = "tr"
    NOISE_AC = "noise_ac"
    NOISE_SP = "noise_sp"


class Properties:
    """Device parameters as given by the user.

    Values are real, integer or string. They are set at construction (or by
    a parent device) and treated as read-only while an analysis runs.
    """

    def __init__(self, defaults: Mapping[str, PropertyValue], values: Mapping[str, PropertyValue]):
        self._values: Dict[str, PropertyValue] = dict(defaults)
        self._values.update(values)

    def get(self, name: str) -> PropertyValue:
        try:
            return self._values[name]
        except KeyError:
            raise KeyError(f"Unknown property: {name}") from None

    def get_double(self, name: str) -> float:
        return float(self.get(name))

    def get_integer(self, name: str) -> int:
        return int(self.get(name))

    def get_string(self, name: str) -> str:
        return str(self.get(name))

    def set(self, name: str, value: PropertyValue) -> None:
        self._values[name] = value

    def has(self, name: str) -> bool:
        return name in self._values

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def to_dict(self) -> Dict[str, PropertyValue]:
        return dict(self._values)


class MatrixStamps:
    """Matrix and vector contributions of one device.

    Attributes:
        y: (n, n) admittance matrix
        i: (n,) independent current vector (currents into the terminals)
        s: (n, n) scattering matrix
        n: (n, n) noise correlation matrix, normalised to k*T0
        b, c, d, e: voltage-source blocks of shape (n, m), (m, n), (m, m), (m,)
    """

    def __init__(self, size: int):
        self.size = size
        self.y = np.zeros((size, size), dtype=complex)
        self.i = np.zeros(size, dtype=complex)
        self.s = np.zeros((size, size), dtype=complex)
        self.n = np.zeros((size, size), dtype=complex)
        self.set_voltage_sources(0)

    @property
    def voltage_sources(self) -> int:
        return self.e.shape[0]

    def set_voltage_sources(self, count: int) -> None:
        """Declare ``count`` extra unknowns and reset the B/C/D/E blocks."""
        n = self.size
        self.b = np.zeros((n, count), dtype=complex)
        self.c = np.zeros((count, n), dtype=complex)
        self.d = np.zeros((count, count), dtype=complex)
        self.e = np.zeros(count, dtype=complex)

    def clear_mna(self) -> None:
        """Zero Y, I and the voltage-source blocks."""
        for block in (self.y, self.i, self.b, self.c, self.d, self.e):
            block[...] = 0

    def add_conductance(self, pos: int, neg: int, g: complex) -> None:
        """Add a two-terminal admittance between ``pos`` and ``neg``."""
        self.y[pos, pos] += g
        self.y[neg, neg] += g
        self.y[pos, neg] -= g
        self.y[neg, pos] -= g

    def add_current(self, pos: int, neg: int, current: complex) -> None:
        """Add a current flowing out of ``neg`` and into ``pos``."""
        self.i[pos] += current
        self.i[neg] -= current


class Device:
    """Base class for all device models.

    Args:
        name: Instance name, also used to name internal nodes
        nodes: Node names, one per entry of ``terminals``
        constants: Physical and reference constants
        **properties: Device parameters, overriding ``defaults``

    Class attributes set by subclasses:
        terminals: Terminal names, in stamp index order
        analyses: Analyses the device implements
        defaults: Parameter names and default values
        state_slots: IntEnum of transient state slots, if any
        current_slots: State slots that hold element currents
    """

    terminals: ClassVar[Tuple[str, ...]] = ()
    analyses: ClassVar[frozenset] = frozenset()
    defaults: ClassVar[Dict[str, PropertyValue]] = {}
    optional_properties: ClassVar[Tuple[str, ...]] = ("Controlled",)
    state_slots: ClassVar[Optional[Type[IntEnum]]] = None
    current_slots: ClassVar[Tuple[IntEnum, ...]] = ()

    def __init__(
        self,
        name: str,
        nodes: Sequence[str],
        constants: Constants = DEFAULT_CONSTANTS,
        **properties: PropertyValue,
    ):
        if len(nodes) != len(self.terminals):
            raise ValueError(
                f"{type(self).__name__} {name!r} needs {len(self.terminals)} nodes "
                f"{self.terminals}, got {len(nodes)}"
            )
        unknown = set(properties) - set(self.defaults) - set(self.optional_properties)
        if unknown:
            raise KeyError(f"{type(self).__name__} {name!r}: unknown properties {sorted(unknown)}")

        self.name = name
        self.nodes = list(nodes)
        self.constants = constants
        self.properties = Properties(self.defaults, properties)
        self.scaled: Dict[str, float] = {}
        self.operating_points: Dict[str, float] = {}
        self.states: Optional[StateVector] = None
        self.coefficients: Optional[IntegrationCoeffs] = None
        self.stamps = MatrixStamps(len(self.terminals))
        self.voltages = np.zeros(len(self.terminals), dtype=complex)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, nodes={self.nodes})"

    # -- capability set ------------------------------------------------

    def supports(self, analysis: Analysis) -> bool:
        return analysis in self.analyses

    # -- property, scaled-property and operating-point access ---------

    @property
    def z0(self) -> float:
        return self.constants.z0

    def get_scaled(self, name: str) -> float:
        """Scaled value of a property, or the property itself if not scaled."""
        if name in self.scaled:
            return self.scaled[name]
        return self.properties.get_double(name)

    def set_scaled(self, name: str, value: float) -> None:
        self.scaled[name] = float(value)

    def get_operating_point(self, name: str) -> float:
        try:
            return self.operating_points[name]
        except KeyError:
            raise KeyError(f"{self.name}: no operating point {name!r}") from None

    def set_operating_point(self, name: str, value: float) -> None:
        self.operating_points[name] = float(value)

    def temperature_k(self) -> float:
        return self.constants.kelvin(self.properties.get_double("Temp"))

    def is_controlled(self) -> bool:
        """True when this device is part of another device's model."""
        return self.properties.has("Controlled")

    # -- terminal voltages --------------------------------------------

    def set_voltage(self, terminal: int, value: complex) -> None:
        """Set a terminal voltage from the present solution."""
        self.voltages[terminal] = value

    def get_voltage(self, terminal: int) -> complex:
        return self.voltages[terminal]

    def voltage_between(self, pos: int, neg: int) -> float:
        """Real part of V(pos) - V(neg)."""
        return float((self.voltages[pos] - self.voltages[neg]).real)

    # -- MNA shape ----------------------------------------------------

    @property
    def voltage_sources(self) -> int:
        return self.stamps.voltage_sources

    def set_voltage_sources(self, count: int) -> None:
        self.stamps.set_voltage_sources(count)

    def reduced_admittance(self) -> np.ndarray:
        """Admittance seen at the terminals with extra unknowns eliminated.

        Returns ``Y - B @ D^-1 @ C``. For a device without voltage sources
        this is Y itself. A singular D (an ideal short) has no admittance
        form and raises numpy.linalg.LinAlgError.
        """
        st = self.stamps
        if st.voltage_sources == 0:
            return st.y.copy()
        return st.y - st.b @ np.linalg.solve(st.d, st.c)

    # -- transient state ----------------------------------------------

    def alloc_states(self) -> None:
        """Allocate the state vector declared by ``state_slots``."""
        if self.state_slots is not None:
            self.states = StateVector(self.state_slots)
            logger.debug(f"{self.name}: {len(self.states)} state slots")

    def set_coefficients(self, coeffs: IntegrationCoeffs) -> None:
        """Set the integration coefficients of the present timestep."""
        self.coefficients = coeffs
        for aux in self.auxiliary_devices():
            aux.set_coefficients(coeffs)

    def prime_states(self) -> None:
        """Start the history from the present state, with zero element currents."""
        if self.states is not None:
            self.states.fill_history()
            for slot in self.current_slots:
                self.states.fill(slot, 0.0)
        for aux in self.auxiliary_devices():
            aux.prime_states()

    def commit_states(self) -> None:
        """Shift the state history after the driver accepts a timestep."""
        if self.states is not None:
            self.states.commit()
        for aux in self.auxiliary_devices():
            aux.commit_states()

    def integrate(self, q_slot: IntEnum, i_slot: IntEnum, cap: float, voltage: float):
        """Companion (geq, ieq) of a charge slot; see state.integrate()."""
        if self.coefficients is None:
            raise RuntimeError(f"{self.name}: integration coefficients not set")
        return integrate(self.states, q_slot, i_slot, cap, voltage, self.coefficients)

    def transient_capacitance(
        self,
        q_slot: IntEnum,
        i_slot: IntEnum,
        pos: int,
        neg: int,
        cap: float,
        voltage: float,
        charge: float,
        sign: float = 1.0,
    ) -> None:
        """Stamp the companion model of a charge between two terminals.

        Args:
            q_slot, i_slot: Charge and current state slots
            pos, neg: Terminal indices
            cap: Incremental capacitance at ``voltage``
            voltage: Voltage across the element
            charge: Element charge at ``voltage``
            sign: Polarity applied to the equivalent current
        """
        self.states.set(q_slot, charge)
        geq, ieq = self.integrate(q_slot, i_slot, cap, voltage)
        self.stamps.add_conductance(pos, neg, geq)
        self.stamps.add_current(pos, neg, -ieq * sign)

    # -- sub-devices --------------------------------------------------

    def auxiliary_devices(self) -> Tuple["Device", ...]:
        """Sub-devices owned by this device that the driver must also stamp."""
        return ()

    # -- analysis hooks -----------------------------------------------

    def init_dc(self) -> None:
        pass

    def restart_dc(self) -> None:
        pass

    def calc_dc(self) -> None:
        pass

    def save_operating_points(self) -> None:
        pass

    def init_ac(self) -> None:
        pass

    def calc_ac(self, frequency: float) -> None:
        pass

    def init_sp(self) -> None:
        pass

    def calc_sp(self, frequency: float) -> None:
        pass

    def init_tr(self) -> None:
        pass

    def calc_tr(self, time: float) -> None:
        pass

    def calc_noise_ac(self, frequency: float) -> None:
        pass

    def calc_noise_sp(self, frequency: float) -> None:
        pass
