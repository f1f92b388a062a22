"""
Value types exchanged between the transit-core subsystems.

Structures
----------
StateVector       -- Position/velocity pair in a single frame (AU, AU/s).
TransitSegment    -- One powered or coasting arc of a plan with sampled path.
TransitPlan       -- An ordered, time-contiguous list of segments plus totals.
CancelState       -- Frozen kinematics recorded when a journey is cancelled.
JourneyLog        -- A construct's scheduled multi-leg journey.
JourneyBounds     -- Start/end timestamps spanned by a list of plans.
JourneyKinematics -- Result of sampling a construct's journeys at a time.

Every plan and segment produced by the planner is a fresh object: path
arrays are never shared between plans or aliased back into the system
graph.  ``to_dict``/``from_dict`` use the camelCase JSON shape that the
persistence and rendering layers exchange.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from transitcore.core.constants import MS_PER_DAY, MS_PER_SECOND, SECONDS_PER_DAY


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class SegmentType(str, Enum):
    """Propulsive phase of a segment."""
    ACCEL = 'Accel'
    COAST = 'Coast'
    BRAKE = 'Brake'


class PlanType(str, Enum):
    """Family a plan belongs to, used by the UI to group plan cards."""
    EFFICIENCY = 'Efficiency'
    ASSIST = 'Assist'
    SPEED = 'Speed'
    COMPLEX = 'Complex'


class FlightState(str, Enum):
    """Flight state reported by the journey scheduler."""
    TRANSIT = 'Transit'
    DEEP_SPACE = 'Deep Space'
    ORBITING = 'Orbiting'
    DOCKED = 'Docked'
    LANDED = 'Landed'


def _vec2(values) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.shape != (2,):
        raise ValueError(f"expected a 2-vector, got shape {arr.shape}")
    return arr


def _xy(vec: np.ndarray) -> Dict[str, float]:
    return {'x': float(vec[0]), 'y': float(vec[1])}


def _from_xy(data) -> np.ndarray:
    if isinstance(data, dict):
        return _vec2([data.get('x', 0.0), data.get('y', 0.0)])
    return _vec2(data)


# ---------------------------------------------------------------------------
# State vector
# ---------------------------------------------------------------------------

@dataclass
class StateVector:
    """
    Planar position/velocity snapshot.

    Attributes
    ----------
    r : np.ndarray
        Position (2,) in AU.
    v : np.ndarray
        Velocity (2,) in AU/s.
    """
    r: np.ndarray
    v: np.ndarray

    def __post_init__(self):
        self.r = _vec2(self.r)
        self.v = _vec2(self.v)

    @classmethod
    def zero(cls) -> 'StateVector':
        return cls(np.zeros(2), np.zeros(2))

    @property
    def r_mag(self) -> float:
        """Distance from the frame origin (AU)."""
        return float(np.linalg.norm(self.r))

    @property
    def v_mag(self) -> float:
        """Speed in the frame (AU/s)."""
        return float(np.linalg.norm(self.v))

    def __add__(self, other: 'StateVector') -> 'StateVector':
        return StateVector(self.r + other.r, self.v + other.v)

    def __sub__(self, other: 'StateVector') -> 'StateVector':
        return StateVector(self.r - other.r, self.v - other.v)

    def copy(self) -> 'StateVector':
        return StateVector(self.r.copy(), self.v.copy())

    def to_dict(self) -> Dict[str, Any]:
        return {'r': _xy(self.r), 'v': _xy(self.v)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StateVector':
        return cls(_from_xy(data['r']), _from_xy(data['v']))


# ---------------------------------------------------------------------------
# Segments and plans
# ---------------------------------------------------------------------------

@dataclass
class TransitSegment:
    """
    One arc of a transit plan.

    Times are Unix milliseconds.  ``path_points`` is an (N, 2) array of
    global positions in AU sampled uniformly in time between
    ``start_time`` and ``end_time``; N >= 2 for any segment with non-zero
    duration.
    """
    id: str
    type: SegmentType
    start_time: float
    end_time: float
    start_state: StateVector
    end_state: StateVector
    host_id: str
    path_points: np.ndarray
    fuel_used_kg: float = 0.0
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.type = SegmentType(self.type)
        self.path_points = np.array(self.path_points, dtype=np.float64).reshape(-1, 2)

    @property
    def duration_s(self) -> float:
        return (self.end_time - self.start_time) / MS_PER_SECOND

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type.value,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'startState': self.start_state.to_dict(),
            'endState': self.end_state.to_dict(),
            'hostId': self.host_id,
            'pathPoints': [_xy(p) for p in self.path_points],
            'fuelUsed_kg': self.fuel_used_kg,
            'warnings': list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitSegment':
        return cls(
            id=data.get('id', ''),
            type=data['type'],
            start_time=float(data['startTime']),
            end_time=float(data['endTime']),
            start_state=StateVector.from_dict(data['startState']),
            end_state=StateVector.from_dict(data['endState']),
            host_id=data.get('hostId', ''),
            path_points=[_from_xy(p) for p in data.get('pathPoints', [])],
            fuel_used_kg=float(data.get('fuelUsed_kg', 0.0)),
            warnings=list(data.get('warnings', [])),
        )


@dataclass
class TransitPlan:
    """
    A complete origin-to-target trajectory.

    Invariants
    ----------
    - Segments are time-contiguous: each segment starts where the
      previous one ends.
    - ``total_time_days`` equals the summed segment durations.
    - ``total_fuel_kg >= 0``.

    A non-empty ``hidden_reason`` marks a plan as impractical for display
    without removing it from the result list.
    """
    id: str
    origin_id: str
    target_id: str
    start_time: float
    segments: List[TransitSegment]
    total_delta_v_ms: float
    total_time_days: float
    total_fuel_kg: float
    arrival_velocity_ms: float
    plan_type: PlanType
    name: str = ''
    tags: List[str] = field(default_factory=list)
    hidden_reason: Optional[str] = None
    distance_au: float = 0.0
    max_g: float = 0.0
    accel_ratio: float = 0.0
    brake_ratio: float = 0.0
    intercept_speed_ms: float = 0.0
    arrival_placement: Optional[str] = None
    aerobraking_delta_v_ms: float = 0.0
    initial_delay_days: float = 0.0
    is_kinematic: bool = False
    flyby_body_id: Optional[str] = None
    flyby_periapsis_m: Optional[float] = None

    def __post_init__(self):
        self.plan_type = PlanType(self.plan_type)

    @property
    def end_time(self) -> float:
        """Arrival timestamp (ms)."""
        return self.start_time + self.total_time_days * MS_PER_DAY

    def segment_time_days(self) -> float:
        """Sum of segment durations in days."""
        return sum(seg.duration_s for seg in self.segments) / SECONDS_PER_DAY

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'originId': self.origin_id,
            'targetId': self.target_id,
            'startTime': self.start_time,
            'segments': [seg.to_dict() for seg in self.segments],
            'totalDeltaV_ms': self.total_delta_v_ms,
            'totalTime_days': self.total_time_days,
            'totalFuel_kg': self.total_fuel_kg,
            'arrivalVelocity_ms': self.arrival_velocity_ms,
            'planType': self.plan_type.value,
            'name': self.name,
            'tags': list(self.tags),
            'distance_au': self.distance_au,
            'maxG': self.max_g,
            'accelRatio': self.accel_ratio,
            'brakeRatio': self.brake_ratio,
            'interceptSpeed_ms': self.intercept_speed_ms,
            'aerobrakingDeltaV_ms': self.aerobraking_delta_v_ms,
            'initialDelay_days': self.initial_delay_days,
            'isKinematic': self.is_kinematic,
        }
        optional = {
            'hiddenReason': self.hidden_reason,
            'arrivalPlacement': self.arrival_placement,
            'flybyBodyId': self.flyby_body_id,
            'flybyPeriapsis_m': self.flyby_periapsis_m,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitPlan':
        return cls(
            id=data.get('id', ''),
            origin_id=data['originId'],
            target_id=data['targetId'],
            start_time=float(data['startTime']),
            segments=[TransitSegment.from_dict(s) for s in data.get('segments', [])],
            total_delta_v_ms=float(data.get('totalDeltaV_ms', 0.0)),
            total_time_days=float(data.get('totalTime_days', 0.0)),
            total_fuel_kg=float(data.get('totalFuel_kg', 0.0)),
            arrival_velocity_ms=float(data.get('arrivalVelocity_ms', 0.0)),
            plan_type=data.get('planType', PlanType.SPEED.value),
            name=data.get('name', ''),
            tags=list(data.get('tags', [])),
            hidden_reason=data.get('hiddenReason'),
            distance_au=float(data.get('distance_au', 0.0)),
            max_g=float(data.get('maxG', 0.0)),
            accel_ratio=float(data.get('accelRatio', 0.0)),
            brake_ratio=float(data.get('brakeRatio', 0.0)),
            intercept_speed_ms=float(data.get('interceptSpeed_ms', 0.0)),
            arrival_placement=data.get('arrivalPlacement'),
            aerobraking_delta_v_ms=float(data.get('aerobrakingDeltaV_ms', 0.0)),
            initial_delay_days=float(data.get('initialDelay_days', 0.0)),
            is_kinematic=bool(data.get('isKinematic', False)),
            flyby_body_id=data.get('flybyBodyId'),
            flyby_periapsis_m=data.get('flybyPeriapsis_m'),
        )


# ---------------------------------------------------------------------------
# Journeys
# ---------------------------------------------------------------------------

@dataclass
class CancelState:
    """Kinematics frozen at the moment a journey was cancelled."""
    position_au: np.ndarray
    velocity_ms: np.ndarray

    def __post_init__(self):
        self.position_au = _vec2(self.position_au)
        self.velocity_ms = _vec2(self.velocity_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {'position_au': _xy(self.position_au), 'velocity_ms': _xy(self.velocity_ms)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CancelState':
        return cls(_from_xy(data['position_au']), _from_xy(data['velocity_ms']))


@dataclass
class JourneyLog:
    """
    A construct's scheduled journey: one or more plans flown in order.

    ``cancelled_at_sec`` is a whole-second Unix timestamp.
    """
    id: str
    plans: List[TransitPlan] = field(default_factory=list)
    status: str = 'scheduled'
    cancelled_at_sec: Optional[int] = None
    cancel_state: Optional[CancelState] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == 'cancelled'

    def copy(self) -> 'JourneyLog':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'plans': [p.to_dict() for p in self.plans],
            'status': self.status,
        }
        if self.cancelled_at_sec is not None:
            data['cancelledAtSec'] = self.cancelled_at_sec
        if self.cancel_state is not None:
            data['cancelState'] = self.cancel_state.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JourneyLog':
        cancelled = data.get('cancelledAtSec')
        cancel_state = data.get('cancelState')
        return cls(
            id=data.get('id', ''),
            plans=[TransitPlan.from_dict(p) for p in data.get('plans', [])],
            status=data.get('status', 'scheduled'),
            # Older saves carry the timestamp as a decimal string.
            cancelled_at_sec=int(cancelled) if cancelled is not None else None,
            cancel_state=CancelState.from_dict(cancel_state) if cancel_state else None,
        )


@dataclass(frozen=True)
class JourneyBounds:
    start_ms: float
    end_ms: float


@dataclass
class JourneyKinematics:
    """Sampled kinematics of a construct; velocity is in m/s."""
    journey_id: str
    position_au: np.ndarray
    velocity_ms: np.ndarray
    state: FlightState

    def __post_init__(self):
        self.position_au = _vec2(self.position_au)
        self.velocity_ms = _vec2(self.velocity_ms)
        self.state = FlightState(self.state)
