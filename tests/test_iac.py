"""Tests for the AC current source."""

import math

import numpy as np
import pytest

from jax_mna.devices.iac import CurrentSourceAC


class TestCurrentSourceAC:
    def test_ac_injection(self):
        src = CurrentSourceAC("I1", ["p", "n"], I=2e-3)
        src.init_ac()
        np.testing.assert_allclose(src.stamps.i, [2e-3, -2e-3])
        assert not src.stamps.y.any()

    def test_ac_phase(self):
        src = CurrentSourceAC("I1", ["p", "n"], I=1.0, Phase=90.0)
        src.init_ac()
        assert src.stamps.i[0] == pytest.approx(1j)
        assert src.stamps.i[1] == pytest.approx(-1j)

    def test_open_at_dc(self):
        src = CurrentSourceAC("I1", ["p", "n"])
        src.init_dc()
        assert not src.stamps.i.any()
        assert not src.stamps.y.any()

    def test_transparent_in_sp(self):
        src = CurrentSourceAC("I1", ["p", "n"])
        src.init_sp()
        np.testing.assert_array_equal(src.stamps.s, np.eye(2))

    def test_transient_waveform(self):
        src = CurrentSourceAC("I1", ["p", "n"], I=1e-3, f=1e6)
        src.init_tr()
        src.calc_tr(0.0)
        assert src.stamps.i[0] == pytest.approx(0.0, abs=1e-18)
        src.calc_tr(0.25e-6)
        assert src.stamps.i[0] == pytest.approx(1e-3)
        assert src.stamps.i[1] == pytest.approx(-1e-3)

    def test_transient_phase(self):
        src = CurrentSourceAC("I1", ["p", "n"], I=1e-3, f=1e6, Phase=30.0)
        src.init_tr()
        src.calc_tr(0.0)
        assert src.stamps.i[0].real == pytest.approx(1e-3 * math.sin(math.radians(30.0)))
