"""
===============================================================================
TRANSIT CORE - Journey Scheduler
===============================================================================
Samples where a construct is at an arbitrary mission time given its queue
of scheduled journeys, and performs the two bookkeeping edits the UI makes
to that queue (cancel the active journey, drop future journeys).

Sampling rules, in order:

    before every journey      idle at the first origin's global state
    cancelled journey         inertial drift from the frozen cancel state
    inside a segment          interpolate path points by fractional index
    between two legs          hold at the previous leg's destination
    after the last leg        drift (flyby / undocked construct intercept)
                              or follow the arrival frame plus the offset
                              recorded at arrival

The query functions never modify the construct.  The edit functions
return an updated copy of it.
===============================================================================
"""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.constants import AU_M, MS_PER_SECOND
from transitcore.core.data_structures import (
    CancelState, FlightState, JourneyBounds, JourneyKinematics, JourneyLog, TransitPlan,
    TransitSegment,
)
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.frames import global_state
from transitcore.guidance.transit_planner import lagrange_target

logger = logging.getLogger(__name__)


# =============================================================================
# BOUNDS
# =============================================================================

def plan_end_time(plan: TransitPlan) -> float:
    """Arrival time (ms) taken from the last segment when present."""
    if plan.segments:
        return plan.segments[-1].end_time
    return plan.end_time


def get_journey_bounds(plans: List[TransitPlan]) -> Optional[JourneyBounds]:
    """Earliest departure and latest arrival over ``plans``."""
    if not plans:
        return None
    return JourneyBounds(start_ms=min(p.start_time for p in plans),
                         end_ms=max(plan_end_time(p) for p in plans))


def _journey_start(journey: JourneyLog) -> float:
    return min(p.start_time for p in journey.plans)


def _ordered_journeys(construct: CelestialNode) -> List[JourneyLog]:
    journeys = [j for j in construct.scheduled_journeys if j.plans]
    return sorted(journeys, key=_journey_start)


def count_future_journeys(construct: CelestialNode, t_ms: float) -> int:
    """Journeys that have not departed yet at ``t_ms``."""
    return sum(1 for j in _ordered_journeys(construct)
               if not j.is_cancelled and _journey_start(j) > t_ms)


# =============================================================================
# PATH SAMPLING
# =============================================================================

def sample_segment(segment: TransitSegment, t_ms: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Position (AU) and velocity (m/s) on a segment at ``t_ms``.

    The path is indexed by the time fraction of the segment; velocity is
    the finite difference of the bracketing samples over one sample step.
    """
    points = segment.path_points
    n = len(points)
    if n == 0:
        return segment.start_state.r.copy(), segment.start_state.v * AU_M
    duration_ms = segment.end_time - segment.start_time
    if n == 1 or duration_ms <= 0:
        return points[0].copy(), np.zeros(2)

    frac = float(np.clip((t_ms - segment.start_time) / duration_ms, 0.0, 1.0))
    index = frac * (n - 1)
    i = min(int(np.floor(index)), n - 2)
    w = index - i
    position = points[i] + w * (points[i + 1] - points[i])
    dt_sample_s = duration_ms / MS_PER_SECOND / (n - 1)
    velocity = (points[i + 1] - points[i]) / dt_sample_s * AU_M
    return position, velocity


def sample_plan_path_at_time(plan: TransitPlan,
                             t_ms: float) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Sample the segment active at ``t_ms``, or None outside the plan."""
    for segment in plan.segments:
        if segment.start_time <= t_ms <= segment.end_time:
            return sample_segment(segment, t_ms)
    return None


def _final_tangent(plan: TransitPlan) -> Tuple[np.ndarray, np.ndarray]:
    last = plan.segments[-1]
    return sample_segment(last, last.end_time)


def _is_flyby(plan: TransitPlan) -> bool:
    if plan.intercept_speed_ms > 0:
        return True
    return any('Flyby' in seg.warnings for seg in plan.segments)


def _arrival_frame(system: System, plan: TransitPlan,
                   config: PlannerConfig) -> Optional[CelestialNode]:
    target = system.find(plan.target_id)
    if target is None:
        return None
    return lagrange_target(target, plan.arrival_placement, config)


def _arrival_state(plan: TransitPlan, target: CelestialNode) -> FlightState:
    if plan.arrival_placement == 'surface':
        return FlightState.LANDED
    if target.is_construct:
        return FlightState.DOCKED
    return FlightState.ORBITING


def sample_post_journey_state(system: System, plan: TransitPlan, t_ms: float,
                              journey_id: str = '',
                              config: Optional[PlannerConfig] = None) -> JourneyKinematics:
    """
    Kinematics after ``plan`` has arrived.

    A flyby arrival, or an intercept of a construct that was not explicitly
    docked with, keeps drifting along the final tangent.  Otherwise the
    construct follows the arrival frame at the offset it had on arrival.
    """
    config = config or default_config()
    end_ms = plan_end_time(plan)
    end_pos, end_vel = _final_tangent(plan)

    target = _arrival_frame(system, plan, config)
    undocked_construct = (target is not None and target.is_construct
                          and plan.arrival_placement != target.id)
    if target is None or _is_flyby(plan) or undocked_construct:
        dt_s = (t_ms - end_ms) / MS_PER_SECOND
        return JourneyKinematics(journey_id, end_pos + end_vel / AU_M * dt_s, end_vel,
                                 FlightState.DEEP_SPACE)

    offset = end_pos - global_state(system, target, end_ms, config).r
    now = global_state(system, target, t_ms, config)
    return JourneyKinematics(journey_id, now.r + offset, now.v * AU_M,
                             _arrival_state(plan, target))


def _idle_at_origin(system: System, plan: TransitPlan, journey_id: str,
                    t_ms: float, config: PlannerConfig) -> JourneyKinematics:
    origin = system.find(plan.origin_id)
    if origin is not None:
        state = global_state(system, origin, t_ms, config)
        return JourneyKinematics(journey_id, state.r, state.v * AU_M, FlightState.ORBITING)
    start = plan.segments[0].start_state if plan.segments else None
    position = start.r if start is not None else np.zeros(2)
    return JourneyKinematics(journey_id, position, np.zeros(2), FlightState.ORBITING)


def sample_journey_kinematics_at_time(system: System, construct: CelestialNode, t_ms: float,
                                      config: Optional[PlannerConfig] = None
                                      ) -> Optional[JourneyKinematics]:
    """
    Where ``construct`` is at ``t_ms`` according to its scheduled journeys.

    Returns None when the construct has no journeys with plans.
    """
    config = config or default_config()
    journeys = _ordered_journeys(construct)
    if not journeys:
        return None

    first = journeys[0]
    if t_ms < _journey_start(first):
        first_plan = min(first.plans, key=lambda p: p.start_time)
        return _idle_at_origin(system, first_plan, first.id, t_ms, config)

    current = [j for j in journeys if _journey_start(j) <= t_ms][-1]

    if current.is_cancelled and current.cancel_state is not None \
            and current.cancelled_at_sec is not None \
            and current.cancelled_at_sec * MS_PER_SECOND <= t_ms:
        frozen = current.cancel_state
        dt_s = t_ms / MS_PER_SECOND - current.cancelled_at_sec
        return JourneyKinematics(current.id, frozen.position_au + frozen.velocity_ms / AU_M * dt_s,
                                 frozen.velocity_ms, FlightState.DEEP_SPACE)

    plans = sorted(current.plans, key=lambda p: p.start_time)
    for plan in plans:
        sample = sample_plan_path_at_time(plan, t_ms)
        if sample is not None:
            return JourneyKinematics(current.id, sample[0], sample[1], FlightState.TRANSIT)

    finished = [p for p in plans if plan_end_time(p) <= t_ms]
    upcoming = [p for p in plans if p.start_time > t_ms]
    if upcoming:
        if finished:
            previous = finished[-1]
            target = _arrival_frame(system, previous, config)
            if target is not None:
                state = global_state(system, target, t_ms, config)
                return JourneyKinematics(current.id, state.r, state.v * AU_M,
                                         _arrival_state(previous, target))
        return _idle_at_origin(system, plans[0], current.id, t_ms, config)

    return sample_post_journey_state(system, plans[-1], t_ms, current.id, config)


# =============================================================================
# QUEUE EDITS
# =============================================================================

def _active_journey_index(construct: CelestialNode, t_ms: float) -> Optional[int]:
    for i, journey in enumerate(construct.scheduled_journeys):
        if journey.is_cancelled or not journey.plans:
            continue
        bounds = get_journey_bounds(journey.plans)
        if bounds.start_ms <= t_ms <= bounds.end_ms:
            return i
    return None


def cancel_active_journey(system: System, construct: CelestialNode, t_ms: float,
                          config: Optional[PlannerConfig] = None) -> CelestialNode:
    """
    Copy of ``construct`` with the journey in flight at ``t_ms`` cancelled.

    The kinematics at the (whole-second) cancellation instant are frozen
    into the journey's cancel state.  Without an active journey the copy
    is unchanged.
    """
    index = _active_journey_index(construct, t_ms)
    journeys = [j.copy() for j in construct.scheduled_journeys]
    if index is None:
        logger.info("No active journey on %r at t=%.0f ms", construct.id, t_ms)
        return replace(construct, scheduled_journeys=journeys)

    cancelled_at = int(t_ms // MS_PER_SECOND)
    kinematics = sample_journey_kinematics_at_time(system, construct,
                                                   cancelled_at * MS_PER_SECOND, config)
    journey = journeys[index]
    journey.status = 'cancelled'
    journey.cancelled_at_sec = cancelled_at
    journey.cancel_state = CancelState(kinematics.position_au, kinematics.velocity_ms)
    logger.info("Cancelled journey %r of %r at %d s", journey.id, construct.id, cancelled_at)
    return replace(construct, scheduled_journeys=journeys)


def clear_future_journeys(construct: CelestialNode, t_ms: float) -> CelestialNode:
    """Copy of ``construct`` without the journeys departing after ``t_ms``."""
    kept = [j.copy() for j in construct.scheduled_journeys
            if not j.plans or _journey_start(j) <= t_ms]
    removed = len(construct.scheduled_journeys) - len(kept)
    if removed:
        logger.info("Cleared %d future journey(s) from %r", removed, construct.id)
    return replace(construct, scheduled_journeys=kept)
