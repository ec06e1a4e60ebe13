"""Tests for the level-1 MOSFET model."""

import logging
import math

import jax
import numpy as np
import pytest

from jax_mna.analysis.integration import IntegrationMethod, compute_coefficients
from jax_mna.analysis.sparams import s_to_y, y_to_s
from jax_mna.devices.mosfet import (
    BULK,
    DRAIN,
    GATE,
    MOSFET,
    SOURCE,
    MosfetState,
    channel_conductances,
    channel_current,
)

NODES = ["g", "d", "s", "b"]
PARAMS = dict(Vt0=0.7, Kp=2e-5, W=10e-6, L=1e-6, Lambda=0.02)


def make_nmos(**overrides):
    return MOSFET("M1", NODES, **{**PARAMS, **overrides})


def solve_at(dev, bias, vg, vd, vs, vb=0.0):
    """Run one DC evaluation with the previous iterate at the same bias."""
    bias(dev, vg, vd, vs, vb)
    dev.init_dc()
    dev.calc_dc()
    dev.save_operating_points()
    return dev


class TestChannelCurrent:
    """Analytic conductances against automatic differentiation."""

    @pytest.mark.parametrize("utst,vds", [(1.3, 3.0), (1.3, 0.4), (0.5, 0.5), (2.0, 0.01)])
    def test_conductances_match_gradient(self, utst, vds):
        beta, lam = 2e-4, 0.02
        ids, gm, gds = channel_conductances(utst, vds, beta, lam)
        assert float(ids) == pytest.approx(float(channel_current(utst, vds, beta, lam)))
        grad_gm = jax.grad(channel_current, argnums=0)(utst, vds, beta, lam)
        grad_gds = jax.grad(channel_current, argnums=1)(utst, vds, beta, lam)
        assert float(gm) == pytest.approx(float(grad_gm), rel=1e-10)
        assert float(gds) == pytest.approx(float(grad_gds), rel=1e-10)

    def test_exactly_zero_in_cutoff(self):
        ids, gm, gds = channel_conductances(-0.2, 2.0, 2e-4, 0.02)
        assert (float(ids), float(gm), float(gds)) == (0.0, 0.0, 0.0)

    def test_continuous_at_saturation_edge(self):
        below = float(channel_current(1.0, 1.0 - 1e-9, 2e-4, 0.02))
        above = float(channel_current(1.0, 1.0 + 1e-9, 2e-4, 0.02))
        assert above == pytest.approx(below, rel=1e-6)


class TestModelInit:
    """Derived model constants and parameter fallbacks."""

    def test_basic_constants(self):
        dev = make_nmos()
        dev.init_model()
        cox_area = 3.9 * 8.854187817e-12 / 1e-7
        assert dev.pol == 1.0
        assert dev.leff == pytest.approx(1e-6)
        assert dev.beta == pytest.approx(2e-5 * 10.0)
        assert dev.cox == pytest.approx(cox_area * 10e-6 * 1e-6)
        assert dev.vto == pytest.approx(0.7)
        assert dev.phi == pytest.approx(0.6, rel=1e-12)

    def test_pfet_polarity(self):
        dev = make_nmos(Type="pfet", Vt0=-0.7)
        dev.init_model()
        assert dev.pol == -1.0
        assert dev.vto == pytest.approx(-0.7)

    def test_lateral_diffusion(self):
        dev = make_nmos(Ld=0.1e-6)
        dev.init_model()
        assert dev.leff == pytest.approx(0.8e-6)
        assert dev.beta == pytest.approx(2e-5 * 10e-6 / 0.8e-6)

    def test_non_positive_channel_length_warns(self, caplog):
        dev = make_nmos(Ld=1e-6)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_model()
        assert dev.leff == pytest.approx(1e-6)
        assert "channel length" in caplog.text

    def test_zero_drawn_length_uses_default(self, caplog):
        dev = make_nmos(L=0.0)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_dc()
        assert dev.leff == pytest.approx(1e-6)
        assert math.isfinite(dev.beta)
        assert dev.beta == pytest.approx(2e-5 * 10.0)
        assert "channel length L = 0" in caplog.text

    @pytest.mark.parametrize("kp,uo", [(2e-5, 600.0), (0.0, 600.0), (0.0, 0.0)])
    def test_negative_length_never_divides_by_zero(self, kp, uo):
        dev = make_nmos(L=-1e-6, Kp=kp, Uo=uo)
        dev.init_model()
        assert dev.leff > 0
        assert math.isfinite(dev.beta) and dev.beta > 0

    def test_zero_emission_coefficient_uses_default(self, bias, caplog):
        dev = make_nmos(N=0.0, Is=1e-14)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            solve_at(dev, bias, 2.0, 0.0, 0.0, vb=0.5)
        assert "emission coefficient" in caplog.text
        ut = 300.15 * 1.380649e-23 / 1.602176634e-19
        assert dev.get_scaled("NUt") == pytest.approx(ut, rel=1e-6)
        gbd = dev.get_operating_point("gbd")
        assert math.isfinite(gbd)
        assert gbd == pytest.approx(1e-14 * math.exp(0.5 / ut) / ut, rel=1e-3)

    @pytest.mark.parametrize("name", ["Tnom", "Temp"])
    def test_absolute_zero_temperature_uses_default(self, bias, caplog, name):
        dev = make_nmos(**{name: -273.15})
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            solve_at(dev, bias, 2.0, 3.0, 0.0)
        assert "absolute zero" in caplog.text
        reference = solve_at(make_nmos(), bias, 2.0, 3.0, 0.0)
        assert dev.beta == pytest.approx(reference.beta)
        assert dev.get_operating_point("Id") == pytest.approx(reference.get_operating_point("Id"))

    def test_zero_oxide_thickness_disables_cox(self, caplog):
        dev = make_nmos(Tox=0.0)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_model()
        assert dev.cox == 0.0
        assert "Cox = 0" in caplog.text

    def test_beta_from_mobility(self):
        dev = make_nmos(Kp=0.0, Uo=600.0)
        dev.init_model()
        cox_area = 3.9 * 8.854187817e-12 / 1e-7
        assert dev.beta == pytest.approx(600.0 * 1e-4 * cox_area * 10.0)

    def test_beta_fallback_warns(self, caplog):
        dev = make_nmos(Kp=0.0, Uo=0.0)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_model()
        assert dev.beta == pytest.approx(2e-5 * 10.0)
        assert "transconductance" in caplog.text

    def test_surface_potential_from_doping(self):
        dev = make_nmos(Phi=0.0, Nsub=1e15)
        dev.init_model()
        ut0 = 290.0 * 1.380649e-23 / 1.602176634e-19
        assert dev.phi == pytest.approx(2.0 * ut0 * math.log(1e21 / 1.45e16))

    def test_surface_potential_fallback_warns(self, caplog):
        dev = make_nmos(Phi=0.0)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_model()
        assert dev.phi == 0.6
        assert "surface potential" in caplog.text

    def test_gamma_from_doping(self):
        dev = make_nmos(Gamma=-1.0, Nsub=1e15)
        dev.init_model()
        cox_area = 3.9 * 8.854187817e-12 / 1e-7
        expected = math.sqrt(2.0 * 1.602176634e-19 * 11.7 * 8.854187817e-12 * 1e21) / cox_area
        assert dev.ga == pytest.approx(expected)

    def test_gamma_fallback_warns(self, caplog):
        dev = make_nmos(Gamma=-1.0)
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            dev.init_model()
        assert dev.ga == 0.0
        assert "bulk threshold" in caplog.text

    def test_threshold_from_process(self):
        dev = make_nmos(Vt0=0.0, Nsub=1e15, Nss=1e10)
        dev.init_model()
        assert math.isfinite(dev.vto)
        assert dev.vto != 0.0

    def test_sheet_resistance(self):
        dev = make_nmos(Rsh=2.0, Nrd=3.0, Nrs=4.0, Rd=1.0)
        dev.init_model()
        assert dev.get_scaled("Rd") == pytest.approx(7.0)
        assert dev.get_scaled("Rs") == pytest.approx(8.0)

    def test_junction_capacitance_from_area(self):
        dev = make_nmos(Cj=1e-4, Ad=2e-12, As=3e-12, Cjsw=1e-10, Pd=4e-6)
        dev.init_model()
        assert dev.get_scaled("Cbd") == pytest.approx(2e-16, rel=1e-9)
        assert dev.get_scaled("Cbs") == pytest.approx(3e-16, rel=1e-9)
        assert dev.get_scaled("Cbds") == pytest.approx(4e-16, rel=1e-9)

    def test_saturation_current_from_density(self):
        dev = make_nmos(Js=1e-3, Ad=2e-12)
        dev.init_model()
        assert dev.get_scaled("Isd") == pytest.approx(2e-15, rel=1e-9)
        assert dev.get_scaled("Iss") == pytest.approx(1e-14, rel=1e-9)

    def test_repr(self):
        assert repr(make_nmos()) == "MOSFET('M1', nfet, W=10.00um, L=1.00um)"


class TestDCOperatingPoint:
    @pytest.mark.parametrize("vd", [0.5, 2.0, 5.0])
    def test_cutoff_is_exactly_zero(self, bias, vd):
        dev = solve_at(make_nmos(), bias, 0.0, vd, 0.0)
        for name in ("Id", "gm", "gds", "gmb"):
            assert dev.get_operating_point(name) == 0.0

    def test_saturation(self, bias):
        dev = solve_at(make_nmos(), bias, 2.0, 3.0, 0.0)
        beta = 2e-4 * (1.0 + 0.02 * 3.0)
        assert dev.get_operating_point("Id") == pytest.approx(beta * 1.3**2 / 2.0)
        assert dev.get_operating_point("gm") == pytest.approx(beta * 1.3)
        assert dev.get_operating_point("gds") == pytest.approx(0.02 * 2e-4 * 1.3**2 / 2.0)
        assert dev.get_operating_point("Vdsat") == pytest.approx(1.3)
        assert dev.get_operating_point("Vth") == pytest.approx(0.7)
        assert dev.get_operating_point("gmb") == 0.0

    def test_linear(self, bias):
        dev = solve_at(make_nmos(Lambda=0.0), bias, 2.0, 0.5, 0.0)
        assert dev.get_operating_point("Id") == pytest.approx(2e-4 * 0.5 * (1.3 - 0.25))
        assert dev.get_operating_point("gds") == pytest.approx(2e-4 * (1.3 - 0.5))

    def test_reverse_mode_mirrors_forward(self, bias):
        fwd = solve_at(make_nmos(), bias, 2.0, 3.0, 0.0)
        rev = solve_at(make_nmos(), bias, 2.0, 0.0, 3.0)
        assert rev.get_operating_point("Id") == pytest.approx(-fwd.get_operating_point("Id"))
        assert rev.get_operating_point("gm") == pytest.approx(fwd.get_operating_point("gm"))

    @pytest.mark.parametrize(
        "voltages", [(2.0, 3.0, 0.0, 0.0), (2.0, 0.0, 3.0, 0.0), (1.5, 0.3, 0.0, -1.0), (0.0, 2.0, 0.0, 0.0)]
    )
    def test_stamps_conserve_current(self, bias, voltages):
        """Rows and columns of Y and the entries of I sum to zero."""
        dev = solve_at(make_nmos(Gamma=0.4), bias, *voltages)
        y = dev.stamps.y
        np.testing.assert_allclose(y.sum(axis=0), 0.0, atol=1e-15)
        np.testing.assert_allclose(y.sum(axis=1), 0.0, atol=1e-15)
        assert abs(dev.stamps.i.sum()) < 1e-18

    def test_body_effect(self, bias):
        dev = solve_at(make_nmos(Gamma=0.4), bias, 2.0, 3.0, 0.0, -1.0)
        gm = dev.get_operating_point("gm")
        gmb = dev.get_operating_point("gmb")
        sarg = math.sqrt(0.6 + 1.0)
        assert gmb == pytest.approx(gm * 0.4 / sarg / 2.0, rel=1e-6)
        # higher threshold than without back bias
        assert dev.get_operating_point("Id") < solve_at(make_nmos(), bias, 2.0, 3.0, 0.0).get_operating_point("Id")

    def test_pfet_mirrors_nfet(self, bias):
        n = solve_at(make_nmos(), bias, 2.0, 3.0, 0.0)
        p = solve_at(make_nmos(Type="pfet", Vt0=-0.7), bias, -2.0, -3.0, 0.0)
        assert p.get_operating_point("Id") == pytest.approx(n.get_operating_point("Id"))
        assert p.get_operating_point("Vdsat") == pytest.approx(-1.3)
        np.testing.assert_allclose(p.stamps.y, n.stamps.y)
        np.testing.assert_allclose(p.stamps.i, -n.stamps.i)

    def test_gate_voltage_is_limited(self, bias):
        """A large gate step from cutoff is cut back to Vth + 0.5."""
        dev = make_nmos()
        bias(dev, 0.0, 3.0, 0.0, 0.0)
        dev.init_dc()
        # gate and drain move together, Vgd stays at -1
        bias(dev, 5.0, 6.0, 0.0, 0.0)
        dev.calc_dc()
        dev.save_operating_points()
        beta = 2e-4 * (1.0 + 0.02 * 2.2)
        assert dev.get_operating_point("Id") == pytest.approx(beta * 0.5**2 / 2.0)


class TestSeriesResistances:
    def test_insertion(self, bias):
        dev = make_nmos(Rd=10.0, Rs=5.0)
        bias(dev, 0.0, 0.0, 0.0, 0.0)
        dev.init_dc()
        assert dev.nodes == ["g", "M1.drain", "M1.source", "b"]
        aux = {r.name: r for r in dev.auxiliary_devices()}
        assert set(aux) == {"M1.Rd", "M1.Rs"}
        assert aux["M1.Rd"].nodes == ["d", "M1.drain"]
        assert aux["M1.Rd"].properties.get_double("R") == 10.0
        assert aux["M1.Rs"].is_controlled()
        assert aux["M1.Rd"].stamps.y[0, 0] == pytest.approx(0.1)

    def test_reinit_reuses_resistors(self):
        dev = make_nmos(Rd=10.0)
        dev.init_dc()
        first = dev.auxiliary_devices()
        dev.init_dc()
        assert dev.auxiliary_devices() == first
        assert dev.nodes[DRAIN] == "M1.drain"

    def test_removal_restores_node(self):
        dev = make_nmos(Rd=10.0)
        dev.init_dc()
        res = dev.auxiliary_devices()[0]
        dev.properties.set("Rd", 0.0)
        dev.init_dc()
        assert dev.nodes[DRAIN] == "d"
        assert dev.auxiliary_devices() == ()
        dev.properties.set("Rd", 20.0)
        dev.init_dc()
        assert dev.auxiliary_devices() == (res,)
        assert res.properties.get_double("R") == 20.0

    def test_gate_resistance(self):
        dev = make_nmos(Rg=3.0)
        dev.init_dc()
        assert dev.nodes[GATE] == "M1.gate"
        assert [r.name for r in dev.auxiliary_devices()] == ["M1.Rg"]

    def test_sheet_resistance_inserts_resistor(self):
        dev = make_nmos(Rsh=2.0, Nrd=3.0, Nrs=0.0)
        dev.init_dc()
        (res,) = dev.auxiliary_devices()
        assert res.name == "M1.Rd"
        assert res.properties.get_double("R") == pytest.approx(6.0)

    def test_resistor_temperature_follows_device(self):
        dev = make_nmos(Rd=10.0, Temp=80.0)
        dev.init_dc()
        assert dev.auxiliary_devices()[0].properties.get_double("Temp") == 80.0


class TestSmallSignal:
    @pytest.fixture
    def biased(self, bias):
        dev = make_nmos(Cgso=1e-10, Cgdo=1e-10, Cbd=2e-15, Cbs=2e-15, Gamma=0.4)
        return solve_at(dev, bias, 2.0, 3.0, 0.0)

    def test_saturation_capacitances(self, biased):
        assert biased.get_operating_point("Cgs") == pytest.approx(2.0 * biased.cox / 3.0 + 1e-15)
        assert biased.get_operating_point("Cgd") == pytest.approx(1e-15)
        assert biased.get_operating_point("Cgb") == pytest.approx(0.0, abs=1e-25)

    def test_ac_admittance_conserves_current(self, biased):
        biased.init_ac()
        biased.calc_ac(1e9)
        y = biased.stamps.y
        np.testing.assert_allclose(y.sum(axis=0), 0.0, atol=1e-15)
        np.testing.assert_allclose(y.sum(axis=1), 0.0, atol=1e-15)

    def test_ac_admittance_at_low_frequency_is_dc_jacobian(self, biased):
        dc = biased.stamps.y.copy()
        np.testing.assert_allclose(biased.admittance(1e-3).real, dc.real, atol=1e-15)

    def test_sp_round_trip(self, biased):
        biased.init_sp()
        biased.calc_sp(1e9)
        y = biased.admittance(1e9)
        np.testing.assert_allclose(biased.stamps.s, np.asarray(y_to_s(y, 50.0)), atol=1e-12)
        back = np.asarray(s_to_y(biased.stamps.s, 50.0))
        np.testing.assert_allclose(back, y, rtol=1e-8, atol=1e-14)

    def test_ac_noise(self, biased):
        biased.calc_noise_ac(1e6)
        n = biased.stamps.n
        t = biased.temperature_k() / 290.0
        psd = 8.0 / 3.0 * t * biased.get_operating_point("gm")
        assert n[DRAIN, DRAIN] == pytest.approx(psd)
        assert n[DRAIN, SOURCE] == pytest.approx(-psd)
        assert not n[GATE].any()
        assert not n[BULK].any()

    def test_flicker_noise_adds(self, bias):
        quiet = solve_at(make_nmos(), bias, 2.0, 3.0, 0.0)
        noisy = solve_at(make_nmos(Kf=1e-24), bias, 2.0, 3.0, 0.0)
        quiet.calc_noise_ac(1e3)
        noisy.calc_noise_ac(1e3)
        extra = 1e-24 * noisy.get_operating_point("Id") / 1e3 / (1.380649e-23 * 290.0)
        assert noisy.stamps.n[DRAIN, DRAIN] == pytest.approx(quiet.stamps.n[DRAIN, DRAIN] + extra)

    def test_sp_noise_is_hermitian(self, biased):
        biased.calc_sp(1e9)
        biased.calc_noise_sp(1e9)
        n = biased.stamps.n
        np.testing.assert_allclose(n, n.conj().T, atol=1e-14)
        assert np.all(np.diag(n).real >= -1e-15)


class TestTransient:
    def _run(self, dev, bias, voltages, method=IntegrationMethod.BACKWARD_EULER):
        bias(dev, *voltages)
        dev.init_tr()
        dev.set_coefficients(compute_coefficients(method, 1e-9))
        dev.calc_tr(0.0)
        return dev

    def test_states_allocated(self, bias):
        dev = self._run(make_nmos(), bias, (2.0, 3.0, 0.0, 0.0))
        assert len(dev.states) == len(MosfetState) == 16

    def test_without_capacitance_matches_dc(self, bias):
        dc = solve_at(make_nmos(Tox=0.0), bias, 2.0, 3.0, 0.0)
        tr = self._run(make_nmos(Tox=0.0), bias, (2.0, 3.0, 0.0, 0.0))
        np.testing.assert_allclose(tr.stamps.y, dc.stamps.y, atol=1e-18)
        np.testing.assert_allclose(tr.stamps.i, dc.stamps.i, atol=1e-18)

    def test_gate_capacitance_stamped(self, bias):
        dev = self._run(make_nmos(), bias, (2.0, 3.0, 0.0, 0.0))
        assert dev.stamps.y[GATE, GATE].real > 0
        np.testing.assert_allclose(dev.stamps.y.sum(axis=1), 0.0, atol=1e-12)
        np.testing.assert_allclose(dev.stamps.y.sum(axis=0), 0.0, atol=1e-12)

    @pytest.mark.parametrize("cap_model", [1, 2])
    def test_steady_state_meyer_capacitance(self, bias, cap_model):
        """At a settled bias the averaged capacitance is the Meyer value."""
        dev = self._run(make_nmos(Cgso=1e-10, capModel=cap_model), bias, (2.0, 3.0, 0.0, 0.0))
        dev.prime_states()
        dev.commit_states()
        dev.calc_tr(1e-9)
        assert dev.get_operating_point("Cgs") == pytest.approx(2.0 * dev.cox / 3.0 + 1e-15)
        assert dev.states.get(MosfetState.IGS) == pytest.approx(0.0, abs=1e-18)

    def test_unknown_cap_model_warns(self, bias, caplog):
        with caplog.at_level(logging.WARNING, logger="jax_mna"):
            self._run(make_nmos(capModel=7), bias, (2.0, 3.0, 0.0, 0.0))
        assert "capModel" in caplog.text

    def test_series_resistors_share_coefficients(self, bias):
        dev = self._run(make_nmos(Rd=10.0), bias, (2.0, 3.0, 0.0, 0.0))
        (res,) = dev.auxiliary_devices()
        assert res.coefficients is dev.coefficients
