"""
===============================================================================
TRANSIT CORE - Frame Resolver
===============================================================================
Composes host-relative propagated states along the parent hierarchy.

    global_state(node, t) = sum of propagate_state(k, t) for k in
                            node, parent(node), ..., root
    local_state(node, p, t) = global_state(node, t) - global_state(p, t)

Working in a local frame keeps short (planet-moon scale) transfers away
from heliocentric magnitudes.

Before propagating each hop the resolver checks that the orbit's cached
host id and gravitational parameter agree with the node's actual parent.
A mismatch is repaired in place (the only mutation this core ever makes to
the system graph) and logged at WARNING.
===============================================================================
"""

import logging
from typing import Optional

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.data_structures import StateVector
from transitcore.core.exceptions import HierarchyError
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.orbital_mechanics import propagate_state

logger = logging.getLogger(__name__)

# Relative mu disagreement tolerated before an orbit is rebuilt.
MU_REL_TOLERANCE = 1e-6


def heal_orbit(system: System, node: CelestialNode) -> bool:
    """
    Repair ``node.orbit`` if its host id or host mu disagree with the
    parent node.  The cached mean motion is discarded with a bad mu since
    it was derived from it.

    Returns
    -------
    bool
        True if the orbit was modified.
    """
    orbit = node.orbit
    if orbit is None or node.parent_id is None:
        return False
    parent = system.find(node.parent_id)
    if parent is None:
        return False
    expected_mu = parent.mu
    if expected_mu <= 0.0:
        return False

    host_mismatch = orbit.host_id != parent.id
    mu_mismatch = abs(orbit.host_mu - expected_mu) > MU_REL_TOLERANCE * expected_mu
    if not (host_mismatch or mu_mismatch):
        return False

    logger.warning(
        "Repairing orbit of %r: hostId %r -> %r, hostMu %.6e -> %.6e",
        node.id, orbit.host_id, parent.id, orbit.host_mu, expected_mu,
    )
    orbit.host_id = parent.id
    orbit.host_mu = expected_mu
    orbit.n_rad_per_s = None
    return True


def global_state(system: System, node: CelestialNode, t_ms: float,
                 config: Optional[PlannerConfig] = None) -> StateVector:
    """
    Root-relative state of ``node`` at ``t_ms`` (AU, AU/s).

    ``node`` need not be registered in ``system`` (virtual Lagrange
    targets are detached copies); its parent chain must be.

    Raises
    ------
    HierarchyError
        The parent chain is cyclic or longer than ``frames.max_depth``.
    """
    max_depth = (config or default_config()).frames.max_depth
    total = StateVector.zero()
    visited = set()
    current: Optional[CelestialNode] = node
    hops = 0

    while current is not None:
        if current.id in visited:
            raise HierarchyError(f"Parent cycle through node {current.id!r}")
        hops += 1
        if hops > max_depth:
            raise HierarchyError(
                f"Parent chain of {node.id!r} exceeds {max_depth} levels")
        visited.add(current.id)

        heal_orbit(system, current)
        total = total + propagate_state(current.orbit, t_ms, config)

        if current.parent_id is None:
            break
        parent = system.find(current.parent_id)
        if parent is None:
            logger.warning("Node %r references missing parent %r; treating it as a root",
                           current.id, current.parent_id)
        current = parent

    return total


def local_state(system: System, node: CelestialNode, parent_id: str, t_ms: float,
                config: Optional[PlannerConfig] = None) -> StateVector:
    """
    State of ``node`` relative to ``parent_id``.  An unknown parent falls
    back to the global state.
    """
    state = global_state(system, node, t_ms, config)
    parent = system.find(parent_id)
    if parent is None:
        logger.debug("local_state: unknown frame %r, returning global state", parent_id)
        return state
    return state - global_state(system, parent, t_ms, config)
