"""
===============================================================================
TRANSIT CORE - Gravity-Assist Planner
===============================================================================
Two-leg patched-conic transfers through a massive intermediate body.

For each candidate flyby body the planner runs a coarse grid over the two
leg durations (each within +/-30% of its Hohmann estimate), solves Lambert
for both legs, and checks whether the incoming and outgoing hyperbolic
excess velocities can be joined at the body:

    v_inf_in  = v_arrive(leg 1) - v_body
    v_inf_out = v_depart(leg 2) - v_body

    |v_inf_in| and |v_inf_out| must agree to within 20%; the remaining
    mismatch is made up by a periapsis burn.  The turn angle delta between
    the two vectors fixes the periapsis radius

        r_p = (1 / sin(delta/2) - 1) * mu_body / v_inf^2

    which must clear the body's radius plus a safety margin.

The accepted combination with the lowest total delta-V (departure +
periapsis burn + arrival) is drawn as three segments: a drift-corrected
coast to the body, a Bezier close-approach arc, and a drift-corrected
coast to the target.
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.constants import AU_M, MS_PER_SECOND, SECONDS_PER_DAY
from transitcore.core.data_structures import (
    PlanType, SegmentType, StateVector, TransitPlan, TransitSegment,
)
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.frames import global_state
from transitcore.dynamics.lambert import solve_lambert_any
from transitcore.dynamics.orbital_mechanics import (
    apply_drift_correction, hohmann_transfer_time, integrate_ballistic_states,
)
from transitcore.guidance.maneuver_planner import BurnResult, powered_flyby_delta_v
from transitcore.guidance.trajectory_search import (
    ArrivalBurn, TransitContext, arrival_burn, new_plan_id, path_length, resample_path,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CANDIDATE SELECTION
# =============================================================================

@dataclass(frozen=True)
class AssistCandidate:
    body: CelestialNode
    score: float


def find_assist_candidates(system: System, origin: Optional[CelestialNode],
                           target: CelestialNode,
                           config: Optional[PlannerConfig] = None) -> List[AssistCandidate]:
    """
    Massive bodies orbiting the same parent as the endpoints.

    The context parent is the shared parent of origin and target, else the
    system root.  Candidates are scored by log10(mass), penalised when
    their semi-major axis lies outside [0.5 min, 1.5 max] of the endpoint
    semi-major axes.  The best ``assist.max_candidates`` are returned.
    """
    cfg = (config or default_config()).assist
    if origin is not None and origin.parent_id is not None and origin.parent_id == target.parent_id:
        context_id = origin.parent_id
    else:
        context_id = system.root().id

    endpoint_a = [n.orbit.elements.a_au for n in (origin, target)
                  if n is not None and n.orbit is not None and n.orbit.elements.a_au > 0]
    excluded = {target.id} | ({origin.id} if origin is not None else set())

    candidates = []
    for node in system:
        if node.kind not in ('body', 'barycenter') or node.orbit is None:
            continue
        if node.parent_id != context_id or node.id in excluded:
            continue
        mass = node.gravitating_mass_kg
        if mass < cfg.min_mass_kg:
            continue
        score = float(np.log10(mass))
        if endpoint_a:
            a = node.orbit.elements.a_au
            if a < 0.5 * min(endpoint_a) or a > 1.5 * max(endpoint_a):
                score -= cfg.out_of_range_penalty
        candidates.append(AssistCandidate(node, score))

    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates[:cfg.max_candidates]


# =============================================================================
# FLYBY MATCHING
# =============================================================================

@dataclass(frozen=True)
class FlybyMatch:
    v_inf_in_ms: float
    v_inf_out_ms: float
    turn_angle_rad: float
    periapsis_m: float
    delta_v_ms: float


def required_periapsis(turn_angle_rad: float, v_inf_ms: float, mu_body: float) -> float:
    """
    Periapsis radius that turns the excess velocity by ``turn_angle_rad``:

        r_p = (1 / sin(delta/2) - 1) * mu / v_inf^2

    Infinite for a zero turn angle (no deflection needed).
    """
    half_sin = np.sin(0.5 * turn_angle_rad)
    if half_sin <= 0.0 or v_inf_ms <= 0.0:
        return float('inf')
    return float((1.0 / half_sin - 1.0) * mu_body / v_inf_ms ** 2)


def match_flyby(v_inf_in: np.ndarray, v_inf_out: np.ndarray, mu_body: float,
                radius_m: float, safety_margin_m: float,
                max_mismatch: float) -> Optional[FlybyMatch]:
    """
    Join incoming and outgoing excess velocities (m/s) at a flyby body.

    Returns None when the speeds differ by more than ``max_mismatch`` of
    their mean, or when the turn needs a periapsis below
    ``radius_m + safety_margin_m``.
    """
    s_in = float(np.linalg.norm(v_inf_in))
    s_out = float(np.linalg.norm(v_inf_out))
    avg = 0.5 * (s_in + s_out)
    if avg <= 0.0:
        return None
    if abs(s_in - s_out) / avg > max_mismatch:
        return None

    if s_in > 0.0 and s_out > 0.0:
        cos_turn = np.clip(np.dot(v_inf_in, v_inf_out) / (s_in * s_out), -1.0, 1.0)
        turn = float(np.arccos(cos_turn))
    else:
        turn = 0.0

    r_p = required_periapsis(turn, avg, mu_body)
    if r_p < radius_m + safety_margin_m:
        logger.debug("Flyby rejected: periapsis %.0f m below %.0f m (turn %.1f deg)",
                     r_p, radius_m + safety_margin_m, np.degrees(turn))
        return None

    dv = powered_flyby_delta_v(s_in, s_out, r_p, mu_body)
    return FlybyMatch(s_in, s_out, turn, r_p, dv)


# =============================================================================
# SEARCH
# =============================================================================

@dataclass
class AssistSolution:
    """Best leg-duration pair found for one flyby body."""
    body: CelestialNode
    leg1_s: float
    leg2_s: float
    leg1_v: Tuple[np.ndarray, np.ndarray]
    leg2_v: Tuple[np.ndarray, np.ndarray]
    body_state: StateVector
    target_end: StateVector
    match: FlybyMatch
    departure_dv_ms: float
    arrival: ArrivalBurn
    burns: List[BurnResult]

    @property
    def total_delta_v_ms(self) -> float:
        return self.departure_dv_ms + self.match.delta_v_ms + self.arrival.propulsive_dv_ms


def _search_body(ctx: TransitContext, body: CelestialNode) -> Optional[AssistSolution]:
    cfg = ctx.config.assist
    mu = ctx.mu
    t0 = ctx.start_time_ms
    body_now = global_state(ctx.system, body, t0, ctx.config)
    r_start = ctx.start_state.r_mag * AU_M
    r_body = body_now.r_mag * AU_M
    r_target = ctx.target_state(0.0).r_mag * AU_M
    if r_start <= 0 or r_body <= 0 or r_target <= 0:
        return None

    leg1_est = hohmann_transfer_time(r_start, r_body, mu)
    leg2_est = hohmann_transfer_time(r_body, r_target, mu)
    factors = np.linspace(1.0 - cfg.window_fraction, 1.0 + cfg.window_fraction, cfg.grid_size)
    brake = ctx.mode.brake_at_arrival

    best: Optional[AssistSolution] = None
    for f1 in factors:
        t1 = f1 * leg1_est
        body_at = global_state(ctx.system, body, t0 + t1 * MS_PER_SECOND, ctx.config)
        leg1 = solve_lambert_any(ctx.start_state.r * AU_M, body_at.r * AU_M, t1, mu,
                                 config=ctx.config)
        if leg1 is None:
            continue
        v_body_ms = body_at.v * AU_M
        v_inf_in = leg1[1] - v_body_ms
        dv1 = float(np.linalg.norm(leg1[0] / AU_M - ctx.start_state.v)) * AU_M

        for f2 in factors:
            t2 = f2 * leg2_est
            target_end = ctx.target_state(t1 + t2)
            leg2 = solve_lambert_any(body_at.r * AU_M, target_end.r * AU_M, t2, mu,
                                     config=ctx.config)
            if leg2 is None:
                continue
            match = match_flyby(v_inf_in, leg2[0] - v_body_ms, body.mu,
                                body.radius_km * 1000.0, cfg.periapsis_margin_m,
                                cfg.max_speed_mismatch)
            if match is None:
                continue

            arrival = arrival_burn(ctx, leg2[1] / AU_M, target_end)
            total = dv1 + match.delta_v_ms + arrival.propulsive_dv_ms
            if best is not None and total >= best.total_delta_v_ms:
                continue
            burns = ctx.engine.burn_sequence([dv1, match.delta_v_ms, arrival.propulsive_dv_ms])
            if sum(b.duration_s for b in burns) > t1 + t2:
                continue
            best = AssistSolution(
                body=body, leg1_s=float(t1), leg2_s=float(t2),
                leg1_v=(leg1[0] / AU_M, leg1[1] / AU_M),
                leg2_v=(leg2[0] / AU_M, leg2[1] / AU_M),
                body_state=body_at, target_end=target_end, match=match,
                departure_dv_ms=dv1, arrival=arrival, burns=burns,
            )

    if best is not None:
        logger.debug("Assist via %s: legs %.1f + %.1f days, dv %.0f m/s, r_p %.0f km%s",
                     body.id, best.leg1_s / SECONDS_PER_DAY, best.leg2_s / SECONDS_PER_DAY,
                     best.total_delta_v_ms, best.match.periapsis_m / 1000.0,
                     '' if brake else ' (flyby arrival)')
    return best


# =============================================================================
# PLAN ASSEMBLY
# =============================================================================

def bezier_arc(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray, p3: np.ndarray,
               n: int) -> np.ndarray:
    """Cubic Bezier curve sampled at ``n + 1`` evenly spaced parameters."""
    s = np.linspace(0.0, 1.0, n + 1)[:, None]
    return ((1 - s) ** 3 * p0 + 3 * (1 - s) ** 2 * s * p1
            + 3 * (1 - s) * s ** 2 * p2 + s ** 3 * p3)


def _leg_path(ctx: TransitContext, r0: np.ndarray, v0: np.ndarray, duration_s: float,
              end_r: np.ndarray) -> Tuple[np.ndarray, int]:
    cfg = ctx.config
    steps = int(round(duration_s / (2.0 * SECONDS_PER_DAY)))
    steps = int(np.clip(steps, cfg.assist.min_leg_samples, cfg.assist.max_leg_samples))
    positions, _ = integrate_ballistic_states(r0, v0, duration_s, ctx.mu_au, steps,
                                              substeps=cfg.search.substeps_for)
    return apply_drift_correction(positions, end_r), steps


def build_assist_plan(ctx: TransitContext, sol: AssistSolution) -> TransitPlan:
    cfg = ctx.config
    mode = ctx.mode
    t1, t2 = sol.leg1_s, sol.leg2_s
    total_s = t1 + t2
    half = min(cfg.assist.flyby_half_window_days * SECONDS_PER_DAY, 0.1 * min(t1, t2))

    v_in, v_out = sol.leg1_v[1], sol.leg2_v[0]
    path1, steps1 = _leg_path(ctx, ctx.start_state.r, sol.leg1_v[0], t1, sol.body_state.r)
    n1 = max(2, int(round(steps1 * (t1 - half) / t1)) + 1)
    points1 = resample_path(path1, t1, 0.0, t1 - half, n1)

    path2, steps2 = _leg_path(ctx, sol.body_state.r, v_out, t2, sol.target_end.r)
    n2 = max(2, int(round(steps2 * (t2 - half) / t2)) + 1)
    points2 = resample_path(path2, t2, half, t2, n2)

    h = 2.0 * half / 3.0
    p_in, p_out = points1[-1], points2[0]
    arc = bezier_arc(p_in, p_in + v_in * h, p_out - v_out * h, p_out, cfg.assist.flyby_samples)

    if mode.brake_at_arrival:
        end_state = sol.target_end.copy()
        arrival_speed = 0.0
    else:
        end_state = StateVector(sol.target_end.r, sol.leg2_v[1])
        arrival_speed = max(0.0, sol.arrival.relative_speed_ms - sol.arrival.propulsive_dv_ms)

    plan_id = new_plan_id()
    t0 = ctx.start_time_ms
    root_id = ctx.root.id
    state_in = StateVector(p_in, v_in)
    state_out = StateVector(p_out, v_out)
    departure, assist, braking = sol.burns
    segments = [
        TransitSegment(
            id=f"{plan_id}-approach", type=SegmentType.COAST,
            start_time=t0, end_time=t0 + (t1 - half) * MS_PER_SECOND,
            start_state=ctx.start_state.copy(), end_state=state_in,
            host_id=root_id, path_points=points1, fuel_used_kg=departure.fuel_kg,
        ),
        TransitSegment(
            id=f"{plan_id}-flyby", type=SegmentType.COAST,
            start_time=t0 + (t1 - half) * MS_PER_SECOND,
            end_time=t0 + (t1 + half) * MS_PER_SECOND,
            start_state=state_in.copy(), end_state=state_out,
            host_id=sol.body.id, path_points=arc, fuel_used_kg=assist.fuel_kg,
            warnings=['Gravity Assist'],
        ),
        TransitSegment(
            id=f"{plan_id}-departure", type=SegmentType.COAST,
            start_time=t0 + (t1 + half) * MS_PER_SECOND,
            end_time=t0 + total_s * MS_PER_SECOND,
            start_state=state_out.copy(), end_state=end_state,
            host_id=root_id, path_points=points2, fuel_used_kg=braking.fuel_kg,
        ),
    ]
    if not mode.brake_at_arrival:
        segments[-1].warnings.append('Flyby')

    tags = ['GRAVITY-ASSIST']
    if mode.max_g > cfg.tags.high_g:
        tags.append('HIGH-G')
    if sol.arrival.tag:
        tags.append(sol.arrival.tag)

    return TransitPlan(
        id=plan_id,
        origin_id=ctx.origin.id if ctx.origin is not None else '',
        target_id=ctx.target.id,
        start_time=t0,
        segments=segments,
        total_delta_v_ms=sol.total_delta_v_ms,
        total_time_days=total_s / SECONDS_PER_DAY,
        total_fuel_kg=sum(b.fuel_kg for b in sol.burns),
        arrival_velocity_ms=arrival_speed,
        plan_type=PlanType.COMPLEX,
        name=f"Flyby Assist ({sol.body.name})",
        tags=tags,
        distance_au=sum(path_length(p) for p in (points1, arc, points2)),
        max_g=mode.max_g,
        accel_ratio=departure.duration_s / total_s,
        brake_ratio=braking.duration_s / total_s,
        intercept_speed_ms=mode.intercept_speed_ms,
        arrival_placement=mode.arrival_placement,
        aerobraking_delta_v_ms=sol.arrival.aerobraking_dv_ms,
        initial_delay_days=ctx.initial_delay_s / SECONDS_PER_DAY,
        flyby_body_id=sol.body.id,
        flyby_periapsis_m=sol.match.periapsis_m,
    )


def plan_gravity_assist(ctx: TransitContext) -> Optional[TransitPlan]:
    """
    Best two-leg flyby plan over the candidate bodies, or None when no
    candidate yields an acceptable flyby.
    """
    if ctx.mu <= 0:
        return None
    best: Optional[AssistSolution] = None
    for candidate in find_assist_candidates(ctx.system, ctx.origin, ctx.target, ctx.config):
        solution = _search_body(ctx, candidate.body)
        if solution is None:
            continue
        if best is None or solution.total_delta_v_ms < best.total_delta_v_ms:
            best = solution
    if best is None:
        return None
    return build_assist_plan(ctx, best)
