"""
===============================================================================
TRANSIT CORE - Orbital Mechanics Test Suite
===============================================================================
Tests for the State Propagator and the Ballistic Integrator: Kepler's
equation round-trip, circular/retrograde propagation, the zero-state
fallback, RK4 energy conservation, drift correction, Hohmann transfer time
and state -> elements recovery.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from transitcore.core.constants import AU_M, GRAVITATIONAL_CONSTANT, SOLAR_MASS_KG, TWO_PI
from transitcore.core.system import KeplerElements, Orbit
from transitcore.dynamics.orbital_mechanics import (
    apply_drift_correction, hohmann_transfer_time, integrate_ballistic_path,
    integrate_ballistic_states, mean_motion, propagate_state, solve_kepler,
    state_to_elements, true_anomaly_from_eccentric,
)

SUN_MU = GRAVITATIONAL_CONSTANT * SOLAR_MASS_KG


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def circular_orbit():
    """Return a circular 1 AU heliocentric orbit with epoch t0 = 0."""
    return Orbit(host_id='sun', elements=KeplerElements(a_au=1.0), t0_ms=0.0, host_mu=SUN_MU)


def _energy(r, v, mu):
    return 0.5 * np.dot(v, v) - mu / np.linalg.norm(r)


# =============================================================================
# Test: Kepler's equation
# =============================================================================

class TestKeplerSolver:
    """Tests for the bounded Newton-Raphson Kepler solver."""

    def test_kepler_roundtrip_random(self):
        """E - e sin E reproduces M for random (e, M) with e <= 0.95."""
        rng = np.random.default_rng(42)
        for _ in range(500):
            e = rng.uniform(0.0, 0.95)
            M = rng.uniform(0.0, TWO_PI)
            E = solve_kepler(M, e)
            residual = np.mod(E - e * np.sin(E) - M + np.pi, TWO_PI) - np.pi
            assert abs(residual) < 1e-5, f"e={e:.3f}, M={M:.3f}: residual {residual:.2e}"

    def test_circular_returns_mean_anomaly(self):
        """Below the circular threshold E equals the reduced M."""
        assert solve_kepler(7.0, 0.0) == pytest.approx(7.0 - TWO_PI)

    @pytest.mark.parametrize("e_val", [0.99, 0.999])
    def test_extreme_eccentricity_terminates(self, e_val):
        """Near-parabolic orbits still return a finite anomaly."""
        for M in np.linspace(0.0, TWO_PI, 13):
            assert np.isfinite(solve_kepler(M, e_val))

    def test_true_anomaly_at_apsides(self):
        """nu = E at periapsis and apoapsis."""
        assert true_anomaly_from_eccentric(0.0, 0.5) == pytest.approx(0.0)
        assert abs(true_anomaly_from_eccentric(np.pi, 0.5)) == pytest.approx(np.pi)


# =============================================================================
# Test: State propagation
# =============================================================================

class TestPropagation:
    """Tests for propagate_state."""

    def test_circular_speed(self, circular_orbit):
        """A circular orbit moves at sqrt(mu/a) at every epoch."""
        for t_ms in (0.0, 1e9, 7.3e10):
            state = propagate_state(circular_orbit, t_ms)
            assert_allclose(state.r_mag, 1.0, rtol=1e-9)
            assert_allclose(state.v_mag * AU_M, np.sqrt(SUN_MU / AU_M), rtol=1e-9)

    def test_full_period_returns_to_start(self, circular_orbit):
        """After one period the body is back where it started."""
        period_ms = TWO_PI / mean_motion(circular_orbit) * 1000.0
        start = propagate_state(circular_orbit, 0.0)
        end = propagate_state(circular_orbit, period_ms)
        assert_allclose(end.r, start.r, atol=1e-9)

    def test_eccentric_periapsis(self):
        """At M = 0 the body sits at periapsis a(1 - e) along omega."""
        orbit = Orbit('sun', KeplerElements(a_au=2.0, e=0.4, arg_periapsis_deg=90.0),
                      host_mu=SUN_MU)
        state = propagate_state(orbit, 0.0)
        assert_allclose(state.r, [0.0, 1.2], atol=1e-12)

    def test_retrograde_velocity_reversed(self, circular_orbit):
        """Retrograde orbits run clockwise."""
        prograde = propagate_state(circular_orbit, 0.0)
        retro = Orbit('sun', circular_orbit.elements, host_mu=SUN_MU, is_retrograde=True)
        state = propagate_state(retro, 0.0)
        assert prograde.v[1] > 0
        assert state.v[1] < 0
        # Clockwise motion: angular momentum r x v is negative
        assert state.r[0] * state.v[1] - state.r[1] * state.v[0] < 0

    def test_cached_mean_motion_used(self, circular_orbit):
        """A stored n_rad_per_s takes precedence over sqrt(mu/a^3)."""
        orbit = Orbit('sun', circular_orbit.elements, host_mu=SUN_MU, n_rad_per_s=1e-6)
        assert mean_motion(orbit) == 1e-6

    @pytest.mark.parametrize("orbit", [
        None,
        Orbit('sun', KeplerElements(a_au=1.0), host_mu=0.0),
        Orbit('sun', KeplerElements(a_au=0.0), host_mu=SUN_MU),
    ])
    def test_zero_state_fallback(self, orbit):
        """Missing orbit, massless host or missing a give the zero state."""
        state = propagate_state(orbit, 1e12)
        assert_allclose(state.r, [0.0, 0.0])
        assert_allclose(state.v, [0.0, 0.0])


# =============================================================================
# Test: Ballistic integrator
# =============================================================================

class TestBallisticIntegrator:
    """Tests for RK4 propagation and drift correction."""

    def test_rk4_energy_conservation(self, circular_orbit):
        """One circular orbit in AU units conserves specific energy."""
        mu_au = SUN_MU / AU_M ** 3
        state = propagate_state(circular_orbit, 0.0)
        period = TWO_PI / mean_motion(circular_orbit)
        positions, velocities = integrate_ballistic_states(state.r, state.v, period, mu_au,
                                                           steps=400, substeps=4)
        assert positions.shape == (401, 2)
        e0 = _energy(positions[0], velocities[0], mu_au)
        e1 = _energy(positions[-1], velocities[-1], mu_au)
        assert_allclose(e1, e0, rtol=1e-6)
        assert_allclose(positions[-1], positions[0], atol=1e-5)

    def test_callable_substeps(self, circular_orbit):
        """A distance-keyed sub-step rule gives the same path as a fixed count."""
        mu_au = SUN_MU / AU_M ** 3
        state = propagate_state(circular_orbit, 0.0)
        fixed, _ = integrate_ballistic_states(state.r, state.v, 1e7, mu_au, 50, substeps=3)
        ruled, _ = integrate_ballistic_states(state.r, state.v, 1e7, mu_au, 50,
                                              substeps=lambda r: 3)
        assert_allclose(ruled, fixed)

    def test_drift_correction_endpoints(self):
        """The first point stays put and the last lands on the target."""
        points = np.column_stack([np.linspace(0.0, 1.0, 11), np.zeros(11)])
        target = np.array([1.0, 0.5])
        corrected = apply_drift_correction(points, target)
        assert_allclose(corrected[0], points[0])
        assert_allclose(corrected[-1], target)
        # Residual spread linearly by elapsed fraction
        assert_allclose(corrected[5], [0.5, 0.25])

    def test_integrate_path_with_target(self, circular_orbit):
        """integrate_ballistic_path ends exactly at the requested position."""
        mu_au = SUN_MU / AU_M ** 3
        state = propagate_state(circular_orbit, 0.0)
        target = np.array([0.0, 1.01])
        path = integrate_ballistic_path(state.r, state.v, 7.9e6, mu_au, 100,
                                        target_end_pos=target)
        assert_allclose(path[-1], target, atol=1e-14)
        assert np.all(np.isfinite(path))


# =============================================================================
# Test: Conic geometry
# =============================================================================

class TestConicGeometry:
    """Tests for Hohmann timing and element recovery."""

    def test_hohmann_time_earth_mars(self):
        """Earth -> Mars Hohmann transfer takes about 259 days."""
        t_h = hohmann_transfer_time(AU_M, 1.52 * AU_M, SUN_MU)
        assert 255.0 < t_h / 86400.0 < 263.0

    def test_hohmann_same_radius_is_half_period(self):
        """For r1 = r2 the transfer is half a circular period."""
        r = 7000e3
        mu = 3.986e14
        assert_allclose(hohmann_transfer_time(r, r, mu), np.pi * np.sqrt(r ** 3 / mu))

    def test_state_to_elements_ellipse(self):
        """Periapsis state of an e = 0.5, a = 1 ellipse (mu = 1)."""
        r_p = 0.5
        v_p = np.sqrt(2.0 / r_p - 1.0)
        el = state_to_elements(np.array([r_p, 0.0]), np.array([0.0, v_p]), 1.0)
        assert_allclose(el.a, 1.0, rtol=1e-12)
        assert_allclose(el.e, 0.5, rtol=1e-12)
        assert_allclose(el.periapsis, 0.5, rtol=1e-12)
        assert_allclose(el.true_anomaly, 0.0, atol=1e-12)
        assert not el.is_retrograde

    def test_state_to_elements_hyperbola_and_retrograde(self):
        """Escape-speed-plus states are hyperbolic; clockwise states retrograde."""
        v = 1.5 * np.sqrt(2.0)
        el = state_to_elements(np.array([1.0, 0.0]), np.array([0.0, -v]), 1.0)
        assert el.e > 1.0
        assert el.a < 0.0
        assert el.is_retrograde
        assert_allclose(el.periapsis, 1.0, rtol=1e-12)
