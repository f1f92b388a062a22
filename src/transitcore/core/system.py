"""
===============================================================================
TRANSIT CORE - Star System Graph
===============================================================================
Read-only model of a procedurally generated star system: bodies,
barycenters and constructs arranged in a parent hierarchy, each (except the
root) on a planar Keplerian orbit about its host.

The graph is indexed by node id so that parent-chain walks are O(depth)
dictionary lookups instead of linear scans of the node list.

The planner treats the graph as input only.  The one sanctioned in-place
change is the Frame Resolver's repair of an orbit whose cached host
gravitational parameter has drifted away from the real parent mass.
===============================================================================
"""

import copy
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional

from transitcore.core.constants import GRAVITATIONAL_CONSTANT
from transitcore.core.data_structures import JourneyLog
from transitcore.core.exceptions import SystemRootError, UnknownNodeError

logger = logging.getLogger(__name__)


# =============================================================================
# ORBIT
# =============================================================================

@dataclass(frozen=True)
class KeplerElements:
    """
    Classical orbital elements.  Only ``a_au``, ``e``, ``arg_periapsis_deg``
    and ``m0_rad`` affect the planar propagation; inclination and node are
    carried for completeness.
    """
    a_au: float
    e: float = 0.0
    i_deg: float = 0.0
    raan_deg: float = 0.0
    arg_periapsis_deg: float = 0.0
    m0_rad: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KeplerElements':
        return cls(
            a_au=float(data.get('a_AU', 0.0) or 0.0),
            e=float(data.get('e', 0.0) or 0.0),
            i_deg=float(data.get('i_deg', 0.0) or 0.0),
            raan_deg=float(data.get('Omega_deg', 0.0) or 0.0),
            arg_periapsis_deg=float(data.get('omega_deg', 0.0) or 0.0),
            m0_rad=float(data.get('M0_rad', 0.0) or 0.0),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            'a_AU': self.a_au, 'e': self.e, 'i_deg': self.i_deg,
            'Omega_deg': self.raan_deg, 'omega_deg': self.arg_periapsis_deg,
            'M0_rad': self.m0_rad,
        }


@dataclass
class Orbit:
    """
    Orbit of a node about its host.

    Attributes
    ----------
    host_id : str
        Id of the node being orbited (should equal the node's parent).
    elements : KeplerElements
        Orbital elements at epoch ``t0_ms``.
    t0_ms : float
        Epoch of ``elements.m0_rad`` (Unix ms).
    host_mu : float
        G * host mass (m^3/s^2).
    n_rad_per_s : float, optional
        Cached mean motion; derived from ``host_mu`` when absent.
    is_retrograde : bool
        Orbit runs clockwise.
    """
    host_id: Optional[str]
    elements: KeplerElements
    t0_ms: float = 0.0
    host_mu: float = 0.0
    n_rad_per_s: Optional[float] = None
    is_retrograde: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Orbit':
        n = data.get('n_rad_per_s')
        return cls(
            host_id=data.get('hostId'),
            elements=KeplerElements.from_dict(data.get('elements', {})),
            t0_ms=float(data.get('t0', 0.0) or 0.0),
            host_mu=float(data.get('hostMu', 0.0) or 0.0),
            n_rad_per_s=float(n) if n is not None else None,
            is_retrograde=bool(data.get('isRetrogradeOrbit', data.get('isRetrograde', False))),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'hostId': self.host_id,
            'elements': self.elements.to_dict(),
            't0': self.t0_ms,
            'hostMu': self.host_mu,
            'isRetrogradeOrbit': self.is_retrograde,
        }
        if self.n_rad_per_s is not None:
            data['n_rad_per_s'] = self.n_rad_per_s
        return data

    def with_anomaly_offset(self, offset_rad: float) -> 'Orbit':
        """Copy of this orbit with the mean anomaly at epoch shifted."""
        elements = replace(self.elements, m0_rad=self.elements.m0_rad + offset_rad)
        return replace(self, elements=elements)


# =============================================================================
# NODES
# =============================================================================

@dataclass
class CelestialNode:
    """
    A body, barycenter or construct in the system graph.

    ``kind`` is one of ``'body'``, ``'barycenter'`` or ``'construct'``.
    Barycenters gravitate with ``effective_mass_kg``; everything else with
    ``mass_kg``.  Constructs carry their ``scheduled_journeys``.
    """
    id: str
    name: str = ''
    parent_id: Optional[str] = None
    kind: str = 'body'
    mass_kg: float = 0.0
    radius_km: float = 0.0
    effective_mass_kg: float = 0.0
    atmosphere: Optional[Dict[str, Any]] = None
    orbit: Optional[Orbit] = None
    scheduled_journeys: List[JourneyLog] = field(default_factory=list)

    @property
    def gravitating_mass_kg(self) -> float:
        if self.kind == 'barycenter':
            return self.effective_mass_kg or 0.0
        return self.mass_kg or 0.0

    @property
    def mu(self) -> float:
        """Gravitational parameter G*M (m^3/s^2)."""
        return GRAVITATIONAL_CONSTANT * self.gravitating_mass_kg

    @property
    def is_construct(self) -> bool:
        return self.kind == 'construct'

    @property
    def has_atmosphere(self) -> bool:
        return bool(self.atmosphere)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CelestialNode':
        orbit = data.get('orbit')
        return cls(
            id=data['id'],
            name=data.get('name', data['id']),
            parent_id=data.get('parentId'),
            kind=data.get('kind', 'body'),
            mass_kg=float(data.get('massKg', 0.0) or 0.0),
            radius_km=float(data.get('radiusKm', 0.0) or 0.0),
            effective_mass_kg=float(data.get('effectiveMassKg', 0.0) or 0.0),
            atmosphere=data.get('atmosphere'),
            orbit=Orbit.from_dict(orbit) if orbit else None,
            scheduled_journeys=[JourneyLog.from_dict(j) for j in data.get('scheduled_journeys', []) or []],
        )


# =============================================================================
# SYSTEM
# =============================================================================

class System:
    """Id-indexed star system graph."""

    def __init__(self, nodes: List[CelestialNode], id: str = 'system',
                 name: str = '', epoch_t0_ms: float = 0.0) -> None:
        self.id = id
        self.name = name or id
        self.epoch_t0_ms = epoch_t0_ms
        self.nodes: Dict[str, CelestialNode] = {}
        for node in nodes:
            if node.id in self.nodes:
                logger.warning("Duplicate node id %r; keeping the last definition", node.id)
            self.nodes[node.id] = node

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'System':
        """Build a system from its JSON representation."""
        nodes = [CelestialNode.from_dict(n) for n in data.get('nodes', [])]
        system = cls(
            nodes,
            id=data.get('id', 'system'),
            name=data.get('name', ''),
            epoch_t0_ms=float(data.get('epochT0', 0.0) or 0.0),
        )
        logger.debug("Loaded system %r with %d nodes", system.name, len(system.nodes))
        return system

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __iter__(self) -> Iterator[CelestialNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def find(self, node_id: Optional[str]) -> Optional[CelestialNode]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def get(self, node_id: str) -> CelestialNode:
        """Return the node with ``node_id`` or raise UnknownNodeError."""
        try:
            return self.nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def root(self) -> CelestialNode:
        """The first node without a parent."""
        for node in self.nodes.values():
            if node.parent_id is None:
                return node
        raise SystemRootError(f"System {self.name!r} has no root node")

    def children(self, parent_id: str) -> List[CelestialNode]:
        return [n for n in self.nodes.values() if n.parent_id == parent_id]

    def ancestors(self, node: CelestialNode, max_depth: int = 10) -> List[str]:
        """Ids from ``node`` up to the root, inclusive of both ends."""
        chain = [node.id]
        current = node
        while current.parent_id is not None and len(chain) <= max_depth:
            parent = self.find(current.parent_id)
            if parent is None or parent.id in chain:
                break
            chain.append(parent.id)
            current = parent
        return chain

    def common_ancestor(self, a: CelestialNode, b: CelestialNode) -> Optional[CelestialNode]:
        """Nearest node that is an ancestor of (or equal to) both."""
        chain_b = set(self.ancestors(b))
        for node_id in self.ancestors(a):
            if node_id in chain_b:
                return self.nodes[node_id]
        return None

    def with_node(self, node: CelestialNode) -> 'System':
        """Shallow copy of the system with one node replaced or added."""
        clone = copy.copy(self)
        clone.nodes = dict(self.nodes)
        clone.nodes[node.id] = node
        return clone
