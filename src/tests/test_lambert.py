"""
===============================================================================
TRANSIT CORE - Lambert Solver Test Suite
===============================================================================
Tests for the universal-variable Lambert solver: Stumpff function limits,
the circular quarter-orbit transfer, analytic two-body round-trips on an
eccentric orbit, and the None-returning failure modes.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from transitcore.core.constants import AU_M, GRAVITATIONAL_CONSTANT, SOLAR_MASS_KG
from transitcore.core.system import KeplerElements, Orbit
from transitcore.dynamics.lambert import (
    solve_lambert, solve_lambert_any, stumpff_c, stumpff_s, transfer_angle,
)
from transitcore.dynamics.orbital_mechanics import mean_motion, propagate_state

EARTH_MU = 3.986004418e14
SUN_MU = GRAVITATIONAL_CONSTANT * SOLAR_MASS_KG


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def eccentric_orbit():
    """Return an e = 0.3 heliocentric orbit with a rotated periapsis."""
    return Orbit(host_id='sun',
                 elements=KeplerElements(a_au=1.2, e=0.3, arg_periapsis_deg=30.0, m0_rad=0.4),
                 t0_ms=0.0, host_mu=SUN_MU)


# =============================================================================
# Test: Stumpff functions
# =============================================================================

class TestStumpff:
    """Tests for C(z) and S(z)."""

    def test_values_at_zero(self):
        """C(0) = 1/2 and S(0) = 1/6."""
        assert stumpff_c(0.0) == pytest.approx(0.5)
        assert stumpff_s(0.0) == pytest.approx(1.0 / 6.0)

    @pytest.mark.parametrize("z", [1e-3, -1e-3])
    def test_series_continuity(self, z):
        """The Taylor branch agrees with the closed forms at the switch point."""
        eps = 1e-9
        assert_allclose(stumpff_c(z * (1 + eps)), stumpff_c(z * (1 - eps)), rtol=1e-9)
        assert_allclose(stumpff_s(z * (1 + eps)), stumpff_s(z * (1 - eps)), rtol=1e-9)

    def test_transfer_angle_signed(self):
        """Clockwise separations come out negative."""
        assert transfer_angle(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == pytest.approx(np.pi / 2)
        assert transfer_angle(np.array([1.0, 0.0]), np.array([0.0, -1.0])) == pytest.approx(-np.pi / 2)


# =============================================================================
# Test: Lambert solutions
# =============================================================================

class TestLambertSolver:
    """Tests for solve_lambert."""

    def test_quarter_circular_orbit(self):
        """A quarter period between perpendicular radii is the circular arc."""
        r = 7000e3
        v_c = np.sqrt(EARTH_MU / r)
        dt = 0.5 * np.pi * np.sqrt(r ** 3 / EARTH_MU)
        result = solve_lambert(np.array([r, 0.0]), np.array([0.0, r]), dt, EARTH_MU, tol=1e-10)
        assert result is not None
        v1, v2 = result
        assert_allclose(v1, [0.0, v_c], atol=1e-3 * v_c)
        assert_allclose(v2, [-v_c, 0.0], atol=1e-3 * v_c)

    @pytest.mark.parametrize("fraction", [0.3, 0.7])
    def test_two_body_roundtrip(self, eccentric_orbit, fraction):
        """Velocities recovered from two propagated positions match the orbit."""
        period_s = 2.0 * np.pi / mean_motion(eccentric_orbit)
        t1_ms = 1.0e9
        t2_ms = t1_ms + fraction * period_s * 1000.0
        s1 = propagate_state(eccentric_orbit, t1_ms)
        s2 = propagate_state(eccentric_orbit, t2_ms)

        result = solve_lambert(s1.r * AU_M, s2.r * AU_M, fraction * period_s, SUN_MU,
                               tol=1e-10)
        assert result is not None, f"no solution for {fraction} period"
        v1, v2 = result
        err1 = np.linalg.norm(v1 - s1.v * AU_M) / np.linalg.norm(s1.v * AU_M)
        err2 = np.linalg.norm(v2 - s2.v * AU_M) / np.linalg.norm(s2.v * AU_M)
        assert err1 < 1e-6, f"departure velocity error {err1:.2e}"
        assert err2 < 1e-6, f"arrival velocity error {err2:.2e}"

    def test_long_way_reverses_sense(self):
        """The opposite-sense arc departs clockwise."""
        r = 7000e3
        dt = 2.0 * np.pi * np.sqrt(r ** 3 / EARTH_MU)
        result = solve_lambert(np.array([r, 0.0]), np.array([0.0, r]), dt, EARTH_MU,
                               long_way=True)
        assert result is not None
        v1, _ = result
        assert v1[1] < 0

    def test_any_prefers_prograde(self):
        """solve_lambert_any returns the prograde arc when it exists."""
        r = 7000e3
        dt = 0.5 * np.pi * np.sqrt(r ** 3 / EARTH_MU)
        result = solve_lambert_any(np.array([r, 0.0]), np.array([0.0, r]), dt, EARTH_MU)
        assert result is not None
        assert result[0][1] > 0


class TestLambertFailures:
    """Degenerate inputs return None instead of raising."""

    @pytest.mark.parametrize("r2", [
        np.array([14000e3, 0.0]),     # collinear, same direction
        np.array([-7000e3, 0.0]),     # collinear, opposite direction
    ])
    def test_collinear_geometry(self, r2):
        r1 = np.array([7000e3, 0.0])
        assert solve_lambert(r1, r2, 3600.0, EARTH_MU) is None
        assert solve_lambert(r1, r2, 3600.0, EARTH_MU, long_way=True) is None

    @pytest.mark.parametrize("dt,mu", [(0.0, EARTH_MU), (-10.0, EARTH_MU), (3600.0, 0.0)])
    def test_invalid_time_or_mu(self, dt, mu):
        assert solve_lambert(np.array([7000e3, 0.0]), np.array([0.0, 7000e3]), dt, mu) is None

    def test_iteration_budget_exhausted(self):
        """Too few bisection steps to meet the tolerance fails cleanly."""
        r = 7000e3
        dt = 0.5 * np.pi * np.sqrt(r ** 3 / EARTH_MU)
        assert solve_lambert(np.array([r, 0.0]), np.array([0.0, r]), dt, EARTH_MU,
                             max_iter=3) is None
