"""Level-1 MOSFET model for jax-mna

Square-law MOSFET with body effect and channel-length modulation, two
parasitic body diodes, Meyer gate capacitances and optional series
resistances at gate, drain and source.

Drain current (polarity-normalised, forward mode):
    Utst = Vgs - Vth
    Cutoff (Utst <= 0):     Ids = 0
    Saturation (Vds >= Utst): Ids = beta/2 * Utst^2 * (1 + lambda*Vds)
    Linear:                 Ids = beta * Vds * (Utst - Vds/2) * (1 + lambda*Vds)

Threshold with body effect:
    Vth = Vto + gamma * (sqrt(Phi - Vbs) - sqrt(Phi))

For Vds < 0 the device runs in reverse mode: drain and source swap roles
in the equations and in the Jacobian, while the terminals stay in place.

Terminals are ordered gate, drain, source, bulk.
"""

import logging
import math
from enum import IntEnum

import jax.numpy as jnp
import numpy as np
from jax import Array

from jax_mna.analysis.limiting import (
    fet_voltage,
    fet_voltage_ds,
    pn_critical_voltage,
    pn_voltage,
)
from jax_mna.analysis.noise import channel_noise, flicker_noise, two_terminal_correlation
from jax_mna.analysis.sparams import cy_to_cs, y_to_s
from jax_mna.config import DEFAULT_CONSTANTS, DEFAULT_TEMPERATURE_C
from jax_mna.devices.base import Analysis, Device
from jax_mna.devices.junction import (
    egap,
    fet_capacitance_meyer,
    pn_capacitance,
    pn_capacitance_f,
    pn_charge,
    pn_current_f,
    pn_junction_mos,
    pn_potential_t,
)
from jax_mna.devices.resistor import Resistor
from jax_mna.devices.state import ChargeRule, StateVector, integrate_charge

logger = logging.getLogger(__name__)

GATE, DRAIN, SOURCE, BULK = range(4)

# Channel length used when neither L - 2*Ld nor L is positive (m)
DEFAULT_LENGTH = 1e-6


class MosfetState(IntEnum):
    """Transient state slots: charge, current, voltage and capacitance."""

    QGD = 0
    IGD = 1
    VGD = 2
    CGD = 3
    QGS = 4
    IGS = 5
    VGS = 6
    CGS = 7
    QBD = 8
    IBD = 9
    QBS = 10
    IBS = 11
    QGB = 12
    IGB = 13
    VGB = 14
    CGB = 15


class MosfetIterate(IntEnum):
    """Junction voltages of the previous Newton iterate."""

    UGS = 0
    UGD = 1
    UBS = 2
    UBD = 3
    UDS = 4


def channel_current(utst: Array, vds: Array, beta: Array, lam: Array) -> Array:
    """Square-law drain current magnitude in forward mode.

    Args:
        utst: Gate overdrive Vgs - Vth
        vds: Drain-source voltage, non-negative
        beta: Transconductance coefficient (A/V^2)
        lam: Channel-length modulation (1/V)
    """
    b = beta * (1.0 + lam * vds)
    saturation = b * utst * utst / 2.0
    linear = b * vds * (utst - vds / 2.0)
    ids = jnp.where(utst <= vds, saturation, linear)
    return jnp.where(utst <= 0, 0.0, ids)


def channel_conductances(
    utst: Array, vds: Array, beta: Array, lam: Array
) -> tuple[Array, Array, Array]:
    """Drain current with its analytic derivatives.

    Returns:
        Tuple of (Ids, gm = dIds/dUtst, gds = dIds/dVds), all exactly zero
        in cutoff
    """
    b = beta * (1.0 + lam * vds)
    sat = utst <= vds

    ids = channel_current(utst, vds, beta, lam)
    gm = jnp.where(sat, b * utst, b * vds)
    gds = jnp.where(
        sat,
        lam * beta * utst * utst / 2.0,
        b * (utst - vds) + lam * beta * vds * (utst - vds / 2.0),
    )
    off = utst <= 0
    return ids, jnp.where(off, 0.0, gm), jnp.where(off, 0.0, gds)


class MOSFET(Device):
    """Four-terminal MOSFET device

    Parameters (SPICE level 1 names):
        Type: 'nfet' or 'pfet'
        Vt0: Zero-bias threshold voltage; 0 derives it from Tpg, Nss, Nsub
        Kp: Transconductance parameter (A/V^2); 0 derives it from Uo and Tox
        Gamma: Bulk threshold parameter (sqrt(V)); negative derives it from Nsub
        Phi: Surface potential (V); 0 derives it from Nsub
        Lambda: Channel-length modulation (1/V)
        Rd, Rs, Rg: Series resistances (Ohm); Rsh*Nrd and Rsh*Nrs add to Rd, Rs
        Is, Js: Bulk junction saturation current (A) and density (A/m^2)
        N: Bulk junction emission coefficient
        W, L, Ld: Channel width, length and lateral diffusion (m)
        Tox: Oxide thickness (m)
        Cgso, Cgdo, Cgbo: Overlap capacitances per unit width/length (F/m)
        Cbd, Cbs, Cj, Cjsw: Junction capacitances (F, F/m^2, F/m)
        Pb, Mj, Mjsw, Fc: Junction potential, grading coefficients, forward bias
                          depletion coefficient
        Tt: Bulk transit time (s)
        Nsub, Nss: Substrate doping (1/cm^3) and surface state density (1/cm^2)
        Tpg: Gate material: +1 opposite to substrate, -1 same, 0 aluminium
        Uo: Surface mobility (cm^2/Vs)
        Ad, As, Pd, Ps: Drain/source areas (m^2) and perimeters (m)
        Kf, Af, Ffe: Flicker noise coefficient and exponents
        Temp, Tnom: Device and nominal temperature (Celsius)
        capModel: Meyer charge rule in transient analysis, 1 trapezoidal or 2 Simpson

    Terminals:
        gate, drain, source, bulk
    """

    terminals = ("gate", "drain", "source", "bulk")
    analyses = frozenset(Analysis)
    state_slots = MosfetState
    current_slots = (
        MosfetState.IGD,
        MosfetState.IGS,
        MosfetState.IBD,
        MosfetState.IBS,
        MosfetState.IGB,
    )
    defaults = {
        "Type": "nfet",
        "Vt0": 1.0,
        "Kp": 2e-5,
        "Gamma": 0.0,
        "Phi": 0.6,
        "Lambda": 0.0,
        "Rd": 0.0,
        "Rs": 0.0,
        "Rg": 0.0,
        "Is": 1e-14,
        "N": 1.0,
        "W": 1e-6,
        "L": 1e-6,
        "Ld": 0.0,
        "Tox": 1e-7,
        "Cgso": 0.0,
        "Cgdo": 0.0,
        "Cgbo": 0.0,
        "Cbd": 0.0,
        "Cbs": 0.0,
        "Pb": 0.8,
        "Mj": 0.5,
        "Fc": 0.5,
        "Cjsw": 0.0,
        "Mjsw": 0.33,
        "Tt": 0.0,
        "Nsub": 0.0,
        "Nss": 0.0,
        "Tpg": 1,
        "Uo": 600.0,
        "Rsh": 0.0,
        "Nrd": 1.0,
        "Nrs": 1.0,
        "Cj": 0.0,
        "Js": 0.0,
        "Ad": 0.0,
        "As": 0.0,
        "Pd": 0.0,
        "Ps": 0.0,
        "Kf": 0.0,
        "Af": 1.0,
        "Ffe": 1.0,
        "Temp": DEFAULT_TEMPERATURE_C,
        "Tnom": DEFAULT_TEMPERATURE_C,
        "capModel": 1,
    }

    # (terminal, resistance name, internal node suffix), in insertion order
    _series_resistances = (
        (SOURCE, "Rs", "source"),
        (GATE, "Rg", "gate"),
        (DRAIN, "Rd", "drain"),
    )

    def __init__(self, name, nodes, constants=DEFAULT_CONSTANTS, **properties):
        super().__init__(name, nodes, constants, **properties)
        self.iterate = StateVector(MosfetIterate, depth=1)
        self._series: dict[int, Resistor] = {}

        # model constants, set by init_model()
        self.pol = 1.0
        self.leff = self.properties.get_double("L")
        self.cox = 0.0
        self.beta = 0.0
        self.phi = 0.6
        self.ga = 0.0
        self.vto = 0.0

        # results of the last calc_dc()
        self._mosdir = 1
        self._ugs = self._ugd = self._ubs = self._ubd = self._uds = self._ugb = 0.0
        self._ids = self._gm = self._gds = self._gmb = 0.0
        self._ibs = self._ibd = self._gbs = self._gbd = 0.0
        self._uon = 0.0
        self._udsat = 0.0
        self._source_control = self._drain_control = 0.0

    def __repr__(self):
        w = self.properties.get_double("W")
        l = self.properties.get_double("L")
        kind = self.properties.get_string("Type")
        return f"MOSFET({self.name!r}, {kind}, W={w*1e6:.2f}um, L={l*1e6:.2f}um)"

    # -- model initialisation -----------------------------------------

    def _absolute_temperature(self, name: str) -> float:
        """Kelvin value of a Celsius temperature property, defaulted when at or below absolute zero."""
        value = self.properties.get_double(name)
        kelvin = self.constants.kelvin(value)
        if kelvin <= 0:
            logger.warning(
                f"{self.name}: {name} = {value:g} C is at or below absolute zero, "
                f"set to {DEFAULT_TEMPERATURE_C:g} C"
            )
            kelvin = self.constants.kelvin(DEFAULT_TEMPERATURE_C)
        return kelvin

    def init_model(self) -> None:
        """Derive model constants and scaled properties at the device temperature.

        Each derived quantity prefers an explicit parameter, then a value
        computed from physical parameters, then a conservative default with
        a warning.
        """
        p = self.properties
        c = self.constants
        t2 = self._absolute_temperature("Temp")
        t1 = self._absolute_temperature("Tnom")

        self.pol = -1.0 if p.get_string("Type") == "pfet" else 1.0

        l = p.get_double("L")
        self.leff = l - 2.0 * p.get_double("Ld")
        if self.leff <= 0:
            logger.warning(
                f"{self.name}: effective MOSFET channel length {self.leff:g} <= 0, "
                f"set to L = {l:g}"
            )
            self.leff = l
        if self.leff <= 0:
            logger.warning(
                f"{self.name}: MOSFET channel length L = {l:g} <= 0, set to {DEFAULT_LENGTH:g}"
            )
            self.leff = DEFAULT_LENGTH

        w = p.get_double("W")
        tox = p.get_double("Tox")
        if tox <= 0:
            logger.warning(f"{self.name}: disabling gate oxide capacitance, Cox = 0")
            cox = 0.0
        else:
            cox = c.epsilon_sio2 * c.epsilon_0 / tox

        # transconductance coefficient
        f1 = (t1 / t2) ** 1.5
        kp = p.get_double("Kp") * f1
        uo = p.get_double("Uo") * f1
        self.set_scaled("Kp", kp)
        self.set_scaled("Uo", uo)
        if kp > 0:
            self.beta = kp * w / self.leff
        elif cox > 0 and uo > 0:
            self.beta = uo * 1e-4 * cox * w / self.leff
        else:
            logger.warning(
                f"{self.name}: adjust Tox, Uo or Kp to get a valid transconductance coefficient"
            )
            self.beta = 2e-5 * w / self.leff

        # surface potential
        nsub = p.get_double("Nsub")
        ut0 = c.t0 * c.k_over_q
        phi = float(pn_potential_t(t1, t2, p.get_double("Phi"), c))
        self.set_scaled("Phi", phi)
        if phi <= 0:
            if nsub > 0 and nsub * 1e6 >= c.ni_si:
                phi = 2.0 * ut0 * math.log(nsub * 1e6 / c.ni_si)
            elif nsub > 0:
                logger.warning(
                    f"{self.name}: substrate doping less than intrinsic density, "
                    f"adjust Nsub >= {c.ni_si / 1e6:g}"
                )
                phi = 0.6
            else:
                logger.warning(f"{self.name}: adjust Nsub or Phi to get a valid surface potential")
                phi = 0.6
        self.phi = phi

        # bulk threshold
        self.ga = p.get_double("Gamma")
        if self.ga < 0:
            if cox > 0 and nsub > 0:
                self.ga = math.sqrt(2.0 * c.q_electron * c.epsilon_si * c.epsilon_0 * nsub * 1e6) / cox
            else:
                logger.warning(
                    f"{self.name}: adjust Tox, Nsub or Gamma to get a valid bulk threshold"
                )
                self.ga = 0.0

        # threshold voltage
        self.vto = p.get_double("Vt0")
        if self.vto == 0.0:
            tpg = p.get_double("Tpg")
            nss = p.get_double("Nss")
            eg = float(egap(t2))
            if tpg != 0.0:
                phi_g = 4.15 + eg / 2.0 - self.pol * tpg * eg / 2.0
            else:
                phi_g = 4.1
            phi_ms = phi_g - (4.15 + eg / 2.0 + self.pol * self.phi / 2.0)
            if nss >= 0 and cox > 0:
                self.vto = (
                    phi_ms
                    - c.q_electron * nss * 1e4 / cox
                    + self.pol * (self.phi + self.ga * math.sqrt(self.phi))
                )
            else:
                logger.warning(f"{self.name}: adjust Tox, Nss or Vt0 to get a valid threshold voltage")
                self.vto = 0.0

        self.cox = cox * w * self.leff

        # drain and source resistance
        rsh = p.get_double("Rsh")
        rd = p.get_double("Rd")
        rs = p.get_double("Rs")
        if rsh > 0:
            if p.get_double("Nrd") > 0:
                rd += rsh * p.get_double("Nrd")
            if p.get_double("Nrs") > 0:
                rs += rsh * p.get_double("Nrs")
        self.set_scaled("Rd", rd)
        self.set_scaled("Rs", rs)

        # zero-bias junction capacitances
        pb = p.get_double("Pb")
        pb_t = float(pn_potential_t(t1, t2, pb, c))
        vr = pb_t / pb if pb > 0 else 1.0
        f2 = float(pn_capacitance_f(t1, t2, p.get_double("Mj"), vr))
        f3 = float(pn_capacitance_f(t1, t2, p.get_double("Mjsw"), vr))
        self.set_scaled("Pb", pb_t)

        cj = p.get_double("Cj")
        if cj <= 0:
            if pb_t > 0 and nsub >= 0:
                cj = math.sqrt(c.epsilon_si * c.epsilon_0 * c.q_electron * nsub * 1e6 / 2.0 / pb_t)
            else:
                logger.warning(
                    f"{self.name}: adjust Pb, Nsub or Cj to get a valid square junction capacitance"
                )
                cj = 0.0
        cj *= f2
        self.set_scaled("Cj", cj)

        ad = p.get_double("Ad")
        as_ = p.get_double("As")
        cbd = p.get_double("Cbd") * f2
        if cbd <= 0:
            cbd = cj * ad
        cbs = p.get_double("Cbs") * f2
        if cbs <= 0:
            cbs = cj * as_
        self.set_scaled("Cbd", cbd)
        self.set_scaled("Cbs", cbs)

        cjsw = p.get_double("Cjsw") * f3
        self.set_scaled("Cbds", cjsw * p.get_double("Pd"))
        self.set_scaled("Cbss", cjsw * p.get_double("Ps"))

        # saturation currents of the body diodes
        f4 = float(pn_current_f(t1, t2, c))
        is_ = p.get_double("Is") * f4
        js = p.get_double("Js") * f4
        self.set_scaled("Isd", js * ad if ad > 0 else is_)
        self.set_scaled("Iss", js * as_ if as_ > 0 else is_)

        n = p.get_double("N")
        if n <= 0:
            logger.warning(f"{self.name}: emission coefficient N = {n:g} <= 0, set to 1")
            n = 1.0
        self.set_scaled("NUt", c.thermal_voltage(t2) * n)

        logger.debug(
            f"{self.name}: Cox={self.cox:g}, Beta={self.beta:g}, Ga={self.ga:g}, "
            f"Phi={self.phi:g}, Vto={self.vto:g}"
        )

    # -- series resistances -------------------------------------------

    def split_resistor(self, terminal: int, suffix: str, resistance_name: str) -> Resistor:
        """Insert (or reuse) a series resistor at ``terminal``.

        The resistor connects the terminal's external node to an internal
        node ``<name>.<suffix>``, and the terminal is rebound to the
        internal node. Calling it again reuses the same resistor and node.
        """
        res = self._series.get(terminal)
        if res is None:
            internal = f"{self.name}.{suffix}"
            res = Resistor(
                f"{self.name}.{resistance_name}",
                [self.nodes[terminal], internal],
                self.constants,
                Controlled=self.name,
            )
            self._series[terminal] = res
            logger.debug(f"{self.name}: inserted {res!r} at {self.terminals[terminal]}")
        self.nodes[terminal] = res.nodes[1]
        return res

    def disable_resistor(self, terminal: int) -> None:
        """Detach the series resistor at ``terminal``, restoring the external node."""
        res = self._series.get(terminal)
        if res is not None and self.nodes[terminal] == res.nodes[1]:
            self.nodes[terminal] = res.nodes[0]
            logger.debug(f"{self.name}: removed {res!r} from {self.terminals[terminal]}")

    def auxiliary_devices(self) -> tuple:
        return tuple(
            res for terminal, res in self._series.items() if self.nodes[terminal] == res.nodes[1]
        )

    # -- DC -----------------------------------------------------------

    def restart_dc(self) -> None:
        """Seed the previous iterate from the present terminal voltages."""
        ugd = self.voltage_between(GATE, DRAIN) * self.pol
        ugs = self.voltage_between(GATE, SOURCE) * self.pol
        self.iterate.set(MosfetIterate.UGD, ugd)
        self.iterate.set(MosfetIterate.UGS, ugs)
        self.iterate.set(MosfetIterate.UBS, self.voltage_between(BULK, SOURCE) * self.pol)
        self.iterate.set(MosfetIterate.UBD, self.voltage_between(BULK, DRAIN) * self.pol)
        self.iterate.set(MosfetIterate.UDS, ugs - ugd)

    def init_dc(self) -> None:
        self.set_voltage_sources(0)
        self.stamps.clear_mna()
        self.init_model()
        self.restart_dc()

        temp = self.properties.get_double("Temp")
        for terminal, rname, suffix in self._series_resistances:
            if rname == "Rg":
                r = self.properties.get_double("Rg")
            else:
                r = self.get_scaled(rname)
            if r != 0.0:
                res = self.split_resistor(terminal, suffix, rname)
                res.properties.set("Temp", temp)
                res.properties.set("R", r)
                res.properties.set("Controlled", self.name)
                res.init_dc()
            else:
                self.disable_resistor(terminal)

    def calc_dc(self) -> None:
        p = self.properties
        isd = self.get_scaled("Isd")
        iss = self.get_scaled("Iss")
        lam = p.get_double("Lambda")
        pol = self.pol
        nut = self.get_scaled("NUt")

        ugd = self.voltage_between(GATE, DRAIN) * pol
        ugs = self.voltage_between(GATE, SOURCE) * pol
        ubs = self.voltage_between(BULK, SOURCE) * pol
        ubd = self.voltage_between(BULK, DRAIN) * pol
        uds = ugs - ugd

        ubs_crit = float(pn_critical_voltage(iss, nut))
        ubd_crit = float(pn_critical_voltage(isd, nut))

        prev = self.iterate
        vto = self.vto * pol
        if uds >= 0:
            ugs = float(fet_voltage(ugs, prev.get(MosfetIterate.UGS), vto))
            uds = ugs - ugd
            uds = float(fet_voltage_ds(uds, prev.get(MosfetIterate.UDS)))
            ugd = ugs - uds
        else:
            ugd = float(fet_voltage(ugd, prev.get(MosfetIterate.UGD), vto))
            uds = ugs - ugd
            uds = -float(fet_voltage_ds(-uds, -prev.get(MosfetIterate.UDS)))
            ugs = ugd + uds
        if uds >= 0:
            ubs = float(pn_voltage(ubs, prev.get(MosfetIterate.UBS), nut, ubs_crit))
            ubd = ubs - uds
        else:
            ubd = float(pn_voltage(ubd, prev.get(MosfetIterate.UBD), nut, ubd_crit))
            ubs = ubd + uds
        prev.set(MosfetIterate.UGS, ugs)
        prev.set(MosfetIterate.UGD, ugd)
        prev.set(MosfetIterate.UBS, ubs)
        prev.set(MosfetIterate.UBD, ubd)
        prev.set(MosfetIterate.UDS, uds)

        # parasitic body diodes, with gtiny = Isat as floor conductance
        ibs, gbs = (float(x) for x in pn_junction_mos(ubs, iss, nut))
        ibs += iss * ubs
        gbs += iss
        ibd, gbd = (float(x) for x in pn_junction_mos(ubd, isd, nut))
        ibd += isd * ubd
        gbd += isd

        mosdir = 1 if uds >= 0 else -1

        # sqrt(Phi - Upn), Taylor-extended for forward bias so the
        # threshold stays continuous at Upn = 0
        upn = ubs if mosdir > 0 else ubd
        sphi = math.sqrt(self.phi)
        if upn <= 0:
            sarg = math.sqrt(self.phi - upn)
        else:
            sarg = max(sphi - upn / sphi / 2.0, 0.0)

        uon = vto + self.ga * (sarg - sphi)
        utst = (ugs if mosdir > 0 else ugd) - uon
        # no infinite backgate transconductance
        arg = self.ga / sarg / 2.0 if sarg != 0.0 else 0.0

        ids, gm, gds = (
            float(x) for x in channel_conductances(utst, uds * mosdir, self.beta, lam)
        )
        gmb = gm * arg

        self._udsat = max(utst, 0.0)
        self._uon = uon
        ids *= mosdir

        ieq_bd = ibd - gbd * ubd
        ieq_bs = ibs - gbs * ubs

        # drain/source exchange of the controlling terminal
        source_control = gm + gmb if mosdir > 0 else 0.0
        drain_control = gm + gmb if mosdir < 0 else 0.0
        if mosdir > 0:
            ieq_ds = ids - gm * ugs - gmb * ubs - gds * uds
        else:
            ieq_ds = ids - gm * ugd - gmb * ubd - gds * uds

        self.stamps.i[...] = [
            0.0,
            (ieq_bd - ieq_ds) * pol,
            (ieq_bs + ieq_ds) * pol,
            (-ieq_bd - ieq_bs) * pol,
        ]
        self.stamps.y[...] = [
            [0.0, 0.0, 0.0, 0.0],
            [gm, gds + gbd - drain_control, -gds - source_control, gmb - gbd],
            [-gm, -gds + drain_control, gbs + gds + source_control, -gbs - gmb],
            [0.0, -gbd, -gbs, gbs + gbd],
        ]

        self._mosdir = mosdir
        self._ugs, self._ugd, self._ubs, self._ubd, self._uds = ugs, ugd, ubs, ubd, uds
        self._ids, self._gm, self._gds, self._gmb = ids, gm, gds, gmb
        self._ibs, self._ibd, self._gbs, self._gbd = ibs, ibd, gbs, gbd
        self._source_control, self._drain_control = source_control, drain_control

    # -- operating points ---------------------------------------------

    def _save_voltages(self) -> None:
        pol = self.pol
        vgd = self.voltage_between(GATE, DRAIN) * pol
        vgs = self.voltage_between(GATE, SOURCE) * pol
        vbs = self.voltage_between(BULK, SOURCE) * pol
        vbd = self.voltage_between(BULK, DRAIN) * pol
        self.set_operating_point("Vgs", vgs)
        self.set_operating_point("Vgd", vgd)
        self.set_operating_point("Vbs", vbs)
        self.set_operating_point("Vbd", vbd)
        self.set_operating_point("Vds", vgs - vgd)
        self.set_operating_point("Vgb", vgs - vbs)

    def _load_voltages(self) -> None:
        op = self.get_operating_point
        self._ugs = op("Vgs")
        self._ugd = op("Vgd")
        self._ubs = op("Vbs")
        self._ubd = op("Vbd")
        self._uds = op("Vds")
        self._ugb = op("Vgb")

    def _calc_operating_points(self, rule: ChargeRule | None = None) -> dict:
        """Capacitances and charges at the loaded operating voltages.

        With a charge rule the Meyer charges are integrated over the state
        history and the reported capacitances are the averaged ones;
        otherwise the overlap capacitances are simply added.

        Returns:
            Charges keyed by element: 'bd', 'bs', 'gs', 'gd', 'gb'
        """
        p = self.properties
        cbd0 = self.get_scaled("Cbd")
        cbs0 = self.get_scaled("Cbs")
        cbds = self.get_scaled("Cbds")
        cbss = self.get_scaled("Cbss")
        pb = self.get_scaled("Pb")
        m = p.get_double("Mj")
        ms = p.get_double("Mjsw")
        fc = p.get_double("Fc")
        tt = p.get_double("Tt")
        w = p.get_double("W")
        cgs_overlap = p.get_double("Cgso") * w
        cgd_overlap = p.get_double("Cgdo") * w
        cgb_overlap = p.get_double("Cgbo") * self.leff

        ubd, ubs = self._ubd, self._ubs
        cbd = self._gbd * tt + float(pn_capacitance(ubd, cbd0, pb, m, fc) + pn_capacitance(ubd, cbds, pb, ms, fc))
        qbd = self._ibd * tt + float(pn_charge(ubd, cbd0, pb, m, fc) + pn_charge(ubd, cbds, pb, ms, fc))
        cbs = self._gbs * tt + float(pn_capacitance(ubs, cbs0, pb, m, fc) + pn_capacitance(ubs, cbss, pb, ms, fc))
        qbs = self._ibs * tt + float(pn_charge(ubs, cbs0, pb, m, fc) + pn_charge(ubs, cbss, pb, ms, fc))

        if self._mosdir > 0:
            cgs, cgd, cgb = fet_capacitance_meyer(
                self._ugs, self._ugd, self._uon, self._udsat, self.phi, self.cox
            )
        else:
            cgd, cgs, cgb = fet_capacitance_meyer(
                self._ugd, self._ugs, self._uon, self._udsat, self.phi, self.cox
            )
        cgs, cgd, cgb = float(cgs), float(cgd), float(cgb)

        charges = {"bd": qbd, "bs": qbs, "gs": 0.0, "gd": 0.0, "gb": 0.0}
        if rule is not None:
            s = MosfetState
            charges["gs"], cgs = integrate_charge(
                self.states, s.QGS, s.VGS, s.CGS, cgs, self._ugs, cgs_overlap, rule
            )
            charges["gd"], cgd = integrate_charge(
                self.states, s.QGD, s.VGD, s.CGD, cgd, self._ugd, cgd_overlap, rule
            )
            charges["gb"], cgb = integrate_charge(
                self.states, s.QGB, s.VGB, s.CGB, cgb, self._ugb, cgb_overlap, rule
            )
        else:
            cgs += cgs_overlap
            cgd += cgd_overlap
            cgb += cgb_overlap

        self.set_operating_point("Id", self._ids)
        self.set_operating_point("gm", self._gm)
        self.set_operating_point("gmb", self._gmb)
        self.set_operating_point("gds", self._gds)
        self.set_operating_point("Vth", self.vto)
        self.set_operating_point("Vdsat", self.pol * self._udsat)
        self.set_operating_point("gbs", self._gbs)
        self.set_operating_point("gbd", self._gbd)
        self.set_operating_point("Cbd", cbd)
        self.set_operating_point("Cbs", cbs)
        self.set_operating_point("Cgs", cgs)
        self.set_operating_point("Cgd", cgd)
        self.set_operating_point("Cgb", cgb)
        return charges

    def save_operating_points(self) -> None:
        """Record operating voltages, conductances and capacitances of the last DC solve."""
        self._save_voltages()
        self._load_voltages()
        self._calc_operating_points()

    # -- AC, SP and noise ---------------------------------------------

    def admittance(self, frequency: float) -> np.ndarray:
        """Small-signal 4x4 admittance matrix from the saved operating point."""
        op = self.get_operating_point
        omega = 2.0 * math.pi * frequency
        ygd = 1j * omega * op("Cgd")
        ygs = 1j * omega * op("Cgs")
        yds = op("gds")
        ybd = op("gbd") + 1j * omega * op("Cbd")
        ybs = op("gbs") + 1j * omega * op("Cbs")
        ygb = 1j * omega * op("Cgb")
        gm = op("gm")
        gmb = op("gmb")
        dc = self._drain_control
        sc = self._source_control

        return np.array(
            [
                [ygd + ygs + ygb, -ygd, -ygs, -ygb],
                [gm - ygd, ygd + yds + ybd - dc, -yds - sc, -ybd + gmb],
                [-ygs - gm, -yds + dc, ygs + yds + ybs + sc, -ybs - gmb],
                [-ygb, -ybd, -ybs, ybd + ybs + ygb],
            ],
            dtype=complex,
        )

    def noise_correlation(self, frequency: float) -> np.ndarray:
        """Drain-source noise current correlation (channel plus flicker noise)."""
        p = self.properties
        i = channel_noise(self.get_operating_point("gm"), self.temperature_k(), self.constants)
        i += flicker_noise(
            self.get_operating_point("Id"),
            frequency,
            p.get_double("Kf"),
            p.get_double("Af"),
            p.get_double("Ffe"),
            self.constants,
        )
        return two_terminal_correlation(i, n=4, pos=DRAIN, neg=SOURCE)

    def init_ac(self) -> None:
        self.stamps.clear_mna()

    def calc_ac(self, frequency: float) -> None:
        self.stamps.y[...] = self.admittance(frequency)

    def init_sp(self) -> None:
        self.stamps.s[...] = 0

    def calc_sp(self, frequency: float) -> None:
        self.stamps.s[...] = np.asarray(y_to_s(self.admittance(frequency), self.z0))

    def calc_noise_ac(self, frequency: float) -> None:
        self.stamps.n[...] = self.noise_correlation(frequency)

    def calc_noise_sp(self, frequency: float) -> None:
        cy = self.noise_correlation(frequency) * self.z0
        self.stamps.n[...] = np.asarray(cy_to_cs(cy, self.stamps.s))

    # -- transient ----------------------------------------------------

    def init_tr(self) -> None:
        self.alloc_states()
        self.init_dc()

    def _charge_rule(self) -> ChargeRule:
        cap_model = self.properties.get_integer("capModel")
        try:
            return ChargeRule(cap_model)
        except ValueError:
            logger.warning(f"{self.name}: unknown capModel {cap_model}, using trapezoidal rule")
            return ChargeRule.TRAPEZOIDAL

    def calc_tr(self, time: float) -> None:
        self.calc_dc()
        self._save_voltages()
        self._load_voltages()
        charges = self._calc_operating_points(self._charge_rule())

        op = self.get_operating_point
        s = MosfetState
        pol = self.pol
        ugs, ugd, ubs, ubd = self._ugs, self._ugd, self._ubs, self._ubd
        ugb = ugs - ubs

        self.transient_capacitance(s.QBD, s.IBD, BULK, DRAIN, op("Cbd"), ubd, charges["bd"], pol)
        self.transient_capacitance(s.QBS, s.IBS, BULK, SOURCE, op("Cbs"), ubs, charges["bs"], pol)

        # Meyer charges and capacitances
        self.transient_capacitance(s.QGD, s.IGD, GATE, DRAIN, op("Cgd"), ugd, charges["gd"], pol)
        self.transient_capacitance(s.QGS, s.IGS, GATE, SOURCE, op("Cgs"), ugs, charges["gs"], pol)
        self.transient_capacitance(s.QGB, s.IGB, GATE, BULK, op("Cgb"), ugb, charges["gb"], pol)
