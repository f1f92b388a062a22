"""
===============================================================================
TRANSIT CORE - Shared Test Fixtures
===============================================================================
Synthetic star systems used across the test suite:

    solar_system      Sun + Earth (1 AU) + Mars (1.52 AU, Hohmann phasing)
                      + Jupiter (5.2 AU) + Luna orbiting Earth
    earth_luna_system Earth as root with Luna at 384,400 km

All orbits are circular and share the epoch START_MS so that positions at
departure are known in closed form.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest

from transitcore.core.config import default_config
from transitcore.core.constants import (
    AU_KM, EARTH_MASS_KG, EARTH_RADIUS_KM, GRAVITATIONAL_CONSTANT, JUPITER_MASS_KG,
    JUPITER_RADIUS_KM, MARS_MASS_KG, MARS_RADIUS_KM, MOON_MASS_KG, MOON_RADIUS_KM,
    MOON_SMA_KM, SOLAR_MASS_KG, SOLAR_RADIUS_KM,
)
from transitcore.core.mode import TransitMode
from transitcore.core.system import CelestialNode, KeplerElements, Orbit, System
from transitcore.dynamics.frames import global_state
from transitcore.guidance.trajectory_search import TransitContext

START_MS = 1.7e12

# Mars leads Earth by the Hohmann phase angle for r2/r1 = 1.52.
MARS_HOHMANN_LEAD_RAD = 0.7706


def make_body(node_id, parent, mass_kg, radius_km, a_au, m0_rad=0.0, parent_mass_kg=None,
              kind='body', atmosphere=None, retrograde=False, e=0.0):
    """A body on a circular (or eccentric) orbit about ``parent``."""
    orbit = None
    if parent is not None:
        orbit = Orbit(
            host_id=parent,
            elements=KeplerElements(a_au=a_au, e=e, m0_rad=m0_rad),
            t0_ms=START_MS,
            host_mu=GRAVITATIONAL_CONSTANT * parent_mass_kg,
            is_retrograde=retrograde,
        )
    return CelestialNode(id=node_id, name=node_id.capitalize(), parent_id=parent, kind=kind,
                         mass_kg=mass_kg, radius_km=radius_km, atmosphere=atmosphere,
                         orbit=orbit)


def make_context(system, origin_id, target_id, mode, start_ms=START_MS, config=None):
    """Request context as built by the planner, for solver-level tests."""
    config = config or default_config()
    origin = system.get(origin_id) if origin_id is not None else None
    target = system.get(target_id)
    if mode.initial_state is not None:
        start = mode.initial_state.copy()
    else:
        start = global_state(system, origin, start_ms, config)
    return TransitContext(system=system, origin=origin, target=target, root=system.root(),
                          start_time_ms=start_ms, start_state=start, mode=mode,
                          config=config)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def start_ms():
    return START_MS


@pytest.fixture
def solar_system():
    """Return the Sun-Earth-Mars-Jupiter-Luna system."""
    nodes = [
        make_body('sun', None, SOLAR_MASS_KG, SOLAR_RADIUS_KM, 0.0),
        make_body('earth', 'sun', EARTH_MASS_KG, EARTH_RADIUS_KM, 1.0, 0.0, SOLAR_MASS_KG,
                  atmosphere={'composition': 'N2/O2'}),
        make_body('mars', 'sun', MARS_MASS_KG, MARS_RADIUS_KM, 1.52, MARS_HOHMANN_LEAD_RAD,
                  SOLAR_MASS_KG),
        make_body('jupiter', 'sun', JUPITER_MASS_KG, JUPITER_RADIUS_KM, 5.2, 2.0,
                  SOLAR_MASS_KG),
        make_body('luna', 'earth', MOON_MASS_KG, MOON_RADIUS_KM, MOON_SMA_KM / AU_KM, 0.0,
                  EARTH_MASS_KG),
    ]
    return System(nodes, id='sol', name='Sol')


@pytest.fixture
def earth_luna_system():
    """Return a system rooted at Earth with Luna at lunar distance."""
    nodes = [
        make_body('earth', None, EARTH_MASS_KG, EARTH_RADIUS_KM, 0.0),
        make_body('luna', 'earth', MOON_MASS_KG, MOON_RADIUS_KM, MOON_SMA_KM / AU_KM,
                  np.pi / 2, EARTH_MASS_KG),
    ]
    return System(nodes, id='earth-luna', name='Earth-Luna')


@pytest.fixture
def default_mode():
    return TransitMode(include_assist=False)
