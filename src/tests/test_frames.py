"""
===============================================================================
TRANSIT CORE - Frame Resolver Test Suite
===============================================================================
Tests for global/local state composition along the parent chain, orbit
self-repair, and the cycle/depth guards.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import logging

import pytest
from numpy.testing import assert_allclose

from transitcore.core.exceptions import HierarchyError
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.frames import global_state, heal_orbit, local_state
from transitcore.dynamics.orbital_mechanics import propagate_state

from conftest import START_MS


class TestComposition:
    """Tests for global_state and local_state."""

    def test_moon_global_is_sum_of_hops(self, solar_system):
        """Luna's global state is Earth's global state plus Luna's orbit state."""
        earth = solar_system.get('earth')
        luna = solar_system.get('luna')
        t = START_MS + 5e8
        expected = global_state(solar_system, earth, t) + propagate_state(luna.orbit, t)
        result = global_state(solar_system, luna, t)
        assert_allclose(result.r, expected.r, rtol=1e-12)
        assert_allclose(result.v, expected.v, rtol=1e-12)

    def test_local_state_relative_to_parent(self, solar_system):
        """Local state about the parent equals the orbit's own propagated state."""
        luna = solar_system.get('luna')
        t = START_MS + 3e9
        local = local_state(solar_system, luna, 'earth', t)
        own = propagate_state(luna.orbit, t)
        assert_allclose(local.r, own.r, atol=1e-15)

    def test_root_is_origin(self, solar_system):
        state = global_state(solar_system, solar_system.get('sun'), START_MS)
        assert_allclose(state.r, [0.0, 0.0])

    def test_unknown_local_frame_returns_global(self, solar_system):
        mars = solar_system.get('mars')
        assert_allclose(local_state(solar_system, mars, 'nowhere', START_MS).r,
                        global_state(solar_system, mars, START_MS).r)


class TestSelfHealing:
    """Tests for repair of orbits whose host data drifted."""

    def test_wrong_mu_repaired(self, solar_system, caplog):
        """A stale host mu is replaced by the parent's and logged."""
        luna = solar_system.get('luna')
        earth = solar_system.get('earth')
        luna.orbit.host_mu *= 2.0
        luna.orbit.n_rad_per_s = 1.0
        with caplog.at_level(logging.WARNING, logger='transitcore.dynamics.frames'):
            global_state(solar_system, luna, START_MS)
        assert luna.orbit.host_mu == pytest.approx(earth.mu)
        assert luna.orbit.n_rad_per_s is None
        assert any('Repairing orbit' in r.message for r in caplog.records)

    def test_wrong_host_repaired(self, solar_system):
        luna = solar_system.get('luna')
        luna.orbit.host_id = 'sun'
        assert heal_orbit(solar_system, luna) is True
        assert luna.orbit.host_id == 'earth'

    def test_consistent_orbit_untouched(self, solar_system):
        assert heal_orbit(solar_system, solar_system.get('mars')) is False


class TestHierarchyGuards:
    """Tests for cyclic and over-deep parent chains."""

    def test_cycle_raises(self):
        system = System([CelestialNode('a', parent_id='b'), CelestialNode('b', parent_id='a')])
        with pytest.raises(HierarchyError):
            global_state(system, system.get('a'), 0.0)

    def test_depth_limit_raises(self):
        nodes = [CelestialNode('n0')]
        nodes += [CelestialNode(f'n{i}', parent_id=f'n{i - 1}') for i in range(1, 15)]
        system = System(nodes)
        with pytest.raises(HierarchyError):
            global_state(system, system.get('n14'), 0.0)
        # Within the limit the walk succeeds
        global_state(system, system.get('n5'), 0.0)

    def test_missing_parent_treated_as_root(self, caplog):
        system = System([CelestialNode('orphan', parent_id='ghost')])
        with caplog.at_level(logging.WARNING):
            state = global_state(system, system.get('orphan'), 0.0)
        assert_allclose(state.r, [0.0, 0.0])
        assert any('missing parent' in r.message for r in caplog.records)
