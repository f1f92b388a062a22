"""
===============================================================================
TRANSIT CORE - Trajectory Search
===============================================================================
Named flight-profile candidates between an origin and a target:

    Most Efficient  -- low-thrust Lambert transfer, accel ratio 5%, duration
                       searched in [0.8, 1.5] x t_hohmann, optional launch
                       date scan.
    Balanced        -- Lambert transfer at the requested accel ratio,
                       duration searched in [0.5, 1.2] x t_hohmann.
    Direct Burn     -- accelerate / coast / brake along the chord to the
                       target's future position, solved by fixed-point
                       iteration on the flight time.

Lambert variants share one feasibility test.  For a candidate duration t:

    1. Solve Lambert from the departure position to the target's position
       at t (prograde arc first, then the opposite-sense arc).
    2. Departure delta-V  dv1 = |v1_lambert - v_start|.
    3. Arrival delta-V    dv2 = capture / match-velocity burn when braking,
                          otherwise what the brake window can shed towards
                          the requested intercept speed.
    4. Accept t when both burns fit inside t and dv1 <= a_max t accel_ratio.

The variant keeps the shortest accepted t in its window: a coarse scan
finds the first feasible sample, then bisection narrows the boundary with
the infeasible sample before it.

Units: positions AU, velocities AU/s, time s; delta-V and speeds reported
in m/s.
===============================================================================
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize_scalar

from transitcore.core.config import PlannerConfig
from transitcore.core.constants import AU_M, G0, MS_PER_SECOND, SECONDS_PER_DAY
from transitcore.core.data_structures import (
    PlanType, SegmentType, StateVector, TransitPlan, TransitSegment,
)
from transitcore.core.mode import TransitMode
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.frames import global_state
from transitcore.dynamics.lambert import solve_lambert
from transitcore.dynamics.orbital_mechanics import (
    apply_drift_correction, hohmann_transfer_time, integrate_ballistic_states,
    state_to_elements,
)
from transitcore.guidance.maneuver_planner import (
    BurnResult, PropulsionModel, apply_aerobraking, oberth_capture_delta_v,
)

logger = logging.getLogger(__name__)

# Cost returned by the launch-date objective for dates with no transfer.
_INFEASIBLE_COST = 1e12


def new_plan_id() -> str:
    return f"plan-{uuid.uuid4().hex[:8]}"


def path_length(points: np.ndarray) -> float:
    """Arc length of a sampled path (AU)."""
    if len(points) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(points, axis=0), axis=1)))


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass
class TransitContext:
    """
    Everything a variant solver needs about one planning request.

    ``target`` may be a detached copy of the real target (Lagrange
    placement).  ``start_state`` is global (root frame).
    """
    system: System
    origin: Optional[CelestialNode]
    target: CelestialNode
    root: CelestialNode
    start_time_ms: float
    start_state: StateVector
    mode: TransitMode
    config: PlannerConfig
    initial_delay_s: float = 0.0
    mu: float = field(init=False)
    mu_au: float = field(init=False)
    engine: PropulsionModel = field(init=False)
    t_hohmann_s: float = field(init=False)

    def __post_init__(self):
        self.mu = self.root.mu
        self.mu_au = self.mu / AU_M ** 3
        self.engine = PropulsionModel(self.mode.max_g, self.mode.ship_mass_kg,
                                      self.mode.ship_isp, self.config)
        r1 = self.start_state.r_mag * AU_M
        r2 = self.target_state(0.0).r_mag * AU_M or r1
        if self.mu > 0 and (r1 + r2) > 0:
            self.t_hohmann_s = hohmann_transfer_time(r1, r2, self.mu)
        else:
            self.t_hohmann_s = 0.0

    def target_state(self, offset_s: float) -> StateVector:
        """Global state of the target ``offset_s`` after departure."""
        t_ms = self.start_time_ms + offset_s * MS_PER_SECOND
        return global_state(self.system, self.target, t_ms, self.config)

    def at_departure(self, delay_s: float) -> 'TransitContext':
        """Same request with departure postponed by ``delay_s``."""
        t_ms = self.start_time_ms + delay_s * MS_PER_SECOND
        state = global_state(self.system, self.origin, t_ms, self.config)
        return replace(self, start_time_ms=t_ms, start_state=state,
                       initial_delay_s=self.initial_delay_s + delay_s)

    def frame_node(self) -> CelestialNode:
        """Nearest node that both endpoints move with."""
        if self.origin is not None:
            common = self.system.common_ancestor(self.origin, self.target)
            if common is not None:
                return common
        parent = self.system.find(self.target.parent_id)
        return parent if parent is not None else self.root


# =============================================================================
# ARRIVAL
# =============================================================================

@dataclass(frozen=True)
class ArrivalBurn:
    relative_speed_ms: float
    required_dv_ms: float
    propulsive_dv_ms: float
    aerobraking_dv_ms: float = 0.0
    tag: Optional[str] = None


def arrival_burn(ctx: TransitContext, v_arrival_au: np.ndarray,
                 target: StateVector) -> ArrivalBurn:
    """
    Cost of arriving with ``v_arrival_au`` at a target moving with
    ``target.v``.

    Braking: with a parking orbit and a massive target the capture burn is
    costed at periapsis (Oberth); otherwise the whole relative speed is
    removed.  Aerobraking may then take over part of it.  Flyby: only the
    excess over the requested intercept speed is required.
    """
    mode = ctx.mode
    rel_ms = float(np.linalg.norm(np.asarray(v_arrival_au) - target.v)) * AU_M

    if not mode.brake_at_arrival:
        required = max(0.0, rel_ms - mode.intercept_speed_ms)
        return ArrivalBurn(rel_ms, required, required)

    capture = rel_ms
    entry = rel_ms
    mu_target = ctx.target.mu
    if mode.parking_orbit_radius_au and mu_target > 0:
        capture, entry = oberth_capture_delta_v(
            rel_ms, mu_target, mode.parking_orbit_radius_au * AU_M)
    elif mu_target > 0 and ctx.target.radius_km > 0:
        entry = float(np.sqrt(rel_ms ** 2 + 2.0 * mu_target / (ctx.target.radius_km * 1000.0)))

    aero = apply_aerobraking(capture, entry, mode.aerobrake, ctx.target.has_atmosphere)
    return ArrivalBurn(rel_ms, capture, aero.propulsive_dv_ms, aero.aerobraking_dv_ms, aero.tag)


# =============================================================================
# LAMBERT FEASIBILITY
# =============================================================================

@dataclass(frozen=True)
class LambertCandidate:
    """One evaluated transfer duration."""
    duration_s: float
    v1: np.ndarray
    v2: np.ndarray
    departure_dv_ms: float
    arrival_dv_ms: float
    arrival: ArrivalBurn
    burns: Tuple[BurnResult, BurnResult]
    target_end: StateVector
    long_way: bool
    feasible: bool

    @property
    def total_delta_v_ms(self) -> float:
        return self.departure_dv_ms + self.arrival_dv_ms

    @property
    def total_fuel_kg(self) -> float:
        return sum(b.fuel_kg for b in self.burns)

    @property
    def burn_time_s(self) -> float:
        return sum(b.duration_s for b in self.burns)


def evaluate_lambert_transfer(ctx: TransitContext, duration_s: float,
                              accel_ratio: float) -> Optional[LambertCandidate]:
    """
    Cost a transfer of ``duration_s`` and test its feasibility.

    Returns None when neither Lambert arc exists.
    """
    if duration_s <= 0 or ctx.mu <= 0:
        return None
    target_end = ctx.target_state(duration_s)
    r1 = ctx.start_state.r * AU_M
    r2 = target_end.r * AU_M

    solution = None
    long_way = False
    for long_way in (False, True):
        solution = solve_lambert(r1, r2, duration_s, ctx.mu, long_way=long_way,
                                 config=ctx.config)
        if solution is not None:
            break
    if solution is None:
        return None

    v1 = solution[0] / AU_M
    v2 = solution[1] / AU_M
    engine = ctx.engine
    dv1 = float(np.linalg.norm(v1 - ctx.start_state.v)) * AU_M
    arrival = arrival_burn(ctx, v2, target_end)

    if ctx.mode.brake_at_arrival:
        dv2 = arrival.propulsive_dv_ms
    else:
        mass_after = engine.burn(dv1).mass_after_kg if engine.uses_rocket_equation else None
        available = engine.delta_v_for_duration(duration_s * ctx.mode.brake_ratio, mass_after)
        dv2 = min(available, arrival.required_dv_ms)

    departure, braking = engine.burn_sequence([dv1, dv2])
    feasible = (departure.duration_s + braking.duration_s <= duration_s
                and dv1 <= engine.accel_ms2 * duration_s * accel_ratio)

    return LambertCandidate(
        duration_s=float(duration_s), v1=v1, v2=v2,
        departure_dv_ms=dv1, arrival_dv_ms=float(dv2), arrival=arrival,
        burns=(departure, braking), target_end=target_end,
        long_way=long_way, feasible=feasible,
    )


def solve_variant(ctx: TransitContext, window: Tuple[float, float],
                  accel_ratio: float) -> Optional[LambertCandidate]:
    """
    Shortest feasible duration in ``window`` (multiples of t_hohmann).

    A coarse scan of ``search.window_samples`` durations locates the first
    feasible sample; bisection then tightens the boundary between it and
    the infeasible sample before it.  With no feasible sample the whole
    window is bisected, any failure pushing towards longer flights.
    """
    t_h = ctx.t_hohmann_s
    if not np.isfinite(t_h) or t_h <= 0:
        return None
    search = ctx.config.search
    lo, hi = window[0] * t_h, window[1] * t_h

    best: Optional[LambertCandidate] = None
    previous = None
    for t in np.linspace(lo, hi, max(2, search.window_samples)):
        candidate = evaluate_lambert_transfer(ctx, t, accel_ratio)
        if candidate is not None and candidate.feasible:
            best = candidate
            break
        previous = t

    if best is not None:
        if previous is None:
            return best
        t_min, t_max = previous, best.duration_s
    else:
        t_min, t_max = lo, hi

    for _ in range(search.bisection_iterations):
        t = 0.5 * (t_min + t_max)
        candidate = evaluate_lambert_transfer(ctx, t, accel_ratio)
        if candidate is not None and candidate.feasible:
            best = candidate
            t_max = t
        else:
            t_min = t

    if best is None:
        logger.debug("No feasible duration in [%.1f, %.1f] days at accel ratio %.3f",
                     lo / SECONDS_PER_DAY, hi / SECONDS_PER_DAY, accel_ratio)
    return best


def solve_cheapest(ctx: TransitContext, window: Tuple[float, float],
                   accel_ratio: float) -> Optional[LambertCandidate]:
    """
    Minimum delta-V feasible duration in ``window`` (multiples of t_hohmann).

    The feasibility edge comes from ``solve_variant``; the durations between
    it and the top of the window are sampled ``search.window_samples``
    times and the best sample is refined with a bounded scalar search
    between its neighbours.
    """
    edge = solve_variant(ctx, window, accel_ratio)
    if edge is None:
        return None
    search = ctx.config.search
    hi = window[1] * ctx.t_hohmann_s
    if hi <= edge.duration_s:
        return edge

    def _candidate(t: float) -> Optional[LambertCandidate]:
        candidate = evaluate_lambert_transfer(ctx, float(t), accel_ratio)
        if candidate is None or not candidate.feasible:
            return None
        return candidate

    def _cost(t: float) -> float:
        candidate = _candidate(t)
        return _INFEASIBLE_COST if candidate is None else candidate.total_delta_v_ms

    durations = np.linspace(edge.duration_s, hi, max(3, search.window_samples))
    costs = np.array([edge.total_delta_v_ms] + [_cost(t) for t in durations[1:]])
    i_best = int(np.argmin(costs))
    best = edge if i_best == 0 else _candidate(durations[i_best])

    result = minimize_scalar(
        _cost,
        bounds=(durations[max(0, i_best - 1)], durations[min(len(durations) - 1, i_best + 1)]),
        method="bounded",
        options={"xatol": 0.1 * SECONDS_PER_DAY},
    )
    if result.success and result.fun < best.total_delta_v_ms:
        refined = _candidate(result.x)
        if refined is not None:
            best = refined

    logger.debug("Cheapest duration %.1f days (edge %.1f days), delta-V %.0f m/s",
                 best.duration_s / SECONDS_PER_DAY, edge.duration_s / SECONDS_PER_DAY,
                 best.total_delta_v_ms)
    return best


def scan_departure(ctx: TransitContext, accel_ratio: float) -> float:
    """
    Launch delay (s) minimising the delta-V of a t_hohmann transfer.

    Coarse scan every ``departure_scan.step_days`` up to ``max_days``, then
    a bounded scalar refinement around the best sample.
    """
    scan = ctx.config.departure_scan

    def _cost(delay_s: float) -> float:
        shifted = ctx.at_departure(float(delay_s))
        candidate = evaluate_lambert_transfer(shifted, shifted.t_hohmann_s, accel_ratio)
        if candidate is None:
            return _INFEASIBLE_COST
        return candidate.total_delta_v_ms

    delays = np.arange(0.0, scan.max_days + 0.5 * scan.step_days, scan.step_days) * SECONDS_PER_DAY
    costs = np.array([_cost(d) for d in delays])
    i_best = int(np.argmin(costs))
    best_delay, best_cost = float(delays[i_best]), float(costs[i_best])
    if best_cost >= _INFEASIBLE_COST:
        logger.debug("Departure scan found no transfer in %.0f days", scan.max_days)
        return 0.0

    half = scan.refine_days * SECONDS_PER_DAY
    result = minimize_scalar(
        _cost,
        bounds=(max(0.0, best_delay - half), best_delay + half),
        method="bounded",
        options={"xatol": 0.1 * SECONDS_PER_DAY},
    )
    if result.success and result.fun < best_cost:
        best_delay = float(result.x)

    logger.debug("Departure scan: best delay %.1f days", best_delay / SECONDS_PER_DAY)
    return best_delay


# =============================================================================
# PLAN ASSEMBLY
# =============================================================================

def resample_path(path: np.ndarray, total_s: float, t0: float, t1: float, n: int) -> np.ndarray:
    """
    Re-sample a path taken uniformly over [0, total_s] at ``n`` evenly
    spaced times in [t0, t1].
    """
    times = np.linspace(0.0, total_s, len(path))
    ts = np.linspace(t0, t1, n)
    return np.column_stack([np.interp(ts, times, path[:, 0]),
                            np.interp(ts, times, path[:, 1])])


def build_segments(plan_id: str, start_time_ms: float, path: np.ndarray, total_s: float,
                   phases: Sequence[Tuple[SegmentType, float, float]],
                   start_state: StateVector, end_state: StateVector,
                   host_id: str) -> List[TransitSegment]:
    """
    Split a uniformly time-sampled path into contiguous phase segments.

    ``phases`` holds ``(type, duration_s, fuel_kg)``; zero-length phases are
    skipped and the last phase absorbs rounding so the segments end exactly
    at ``total_s``.
    """
    active = [p for p in phases if p[1] > 0]
    n_path = len(path) - 1
    segments = []
    state = start_state.copy()
    t0 = 0.0
    for i, (kind, duration, fuel) in enumerate(active):
        last = i == len(active) - 1
        t1 = total_s if last else min(total_s, t0 + duration)
        n = max(2, int(round(n_path * (t1 - t0) / total_s)) + 1)
        points = resample_path(path, total_s, t0, t1, n)
        if last:
            seg_end = end_state.copy()
        else:
            dt = (t1 - t0) / (n - 1)
            seg_end = StateVector(points[-1], (points[-1] - points[-2]) / dt)
        segments.append(TransitSegment(
            id=f"{plan_id}-{kind.value.lower()}",
            type=kind,
            start_time=start_time_ms + t0 * MS_PER_SECOND,
            end_time=start_time_ms + t1 * MS_PER_SECOND,
            start_state=state,
            end_state=seg_end,
            host_id=host_id,
            path_points=points,
            fuel_used_kg=float(fuel),
        ))
        state = seg_end.copy()
        t0 = t1
    return segments


def build_lambert_plan(ctx: TransitContext, cand: LambertCandidate, name: str,
                       plan_type: PlanType, accel_ratio: float,
                       extra_tags: Sequence[str] = ()) -> TransitPlan:
    """Turn an accepted Lambert candidate into a displayable plan."""
    cfg = ctx.config
    mode = ctx.mode
    total_s = cand.duration_s
    departure, braking = cand.burns

    t_acc, t_brk = departure.duration_s, braking.duration_s
    if t_acc + t_brk > total_s:
        scale = total_s / (t_acc + t_brk)
        t_acc, t_brk = t_acc * scale, t_brk * scale

    periapsis_au = state_to_elements(ctx.start_state.r, cand.v1, ctx.mu_au).periapsis
    tags = list(extra_tags)
    if periapsis_au < cfg.tags.sundiver_periapsis_au:
        tags.append('SUNDIVER')
    if mode.max_g > cfg.tags.high_g:
        tags.append('HIGH-G')
    if cand.arrival.tag:
        tags.append(cand.arrival.tag)

    n = cfg.search.path_samples
    torchship = (accel_ratio > cfg.tags.torchship_accel_ratio
                 and periapsis_au < cfg.tags.torchship_periapsis_au)
    if torchship:
        path = np.linspace(ctx.start_state.r, cand.target_end.r, n + 1)
    else:
        positions, _ = integrate_ballistic_states(
            ctx.start_state.r, cand.v1, total_s, ctx.mu_au, n,
            substeps=cfg.search.substeps_for)
        path = apply_drift_correction(positions, cand.target_end.r)

    if mode.brake_at_arrival:
        end_state = cand.target_end.copy()
        arrival_speed = 0.0
    else:
        end_state = StateVector(cand.target_end.r, cand.v2)
        arrival_speed = max(0.0, cand.arrival.relative_speed_ms - cand.arrival_dv_ms)

    plan_id = new_plan_id()
    phases = [
        (SegmentType.ACCEL, t_acc, departure.fuel_kg),
        (SegmentType.COAST, total_s - t_acc - t_brk, 0.0),
        (SegmentType.BRAKE, t_brk, braking.fuel_kg),
    ]
    segments = build_segments(plan_id, ctx.start_time_ms, path, total_s, phases,
                              ctx.start_state, end_state, ctx.root.id)
    if not mode.brake_at_arrival:
        segments[-1].warnings.append('Flyby')

    return TransitPlan(
        id=plan_id,
        origin_id=ctx.origin.id if ctx.origin is not None else '',
        target_id=ctx.target.id,
        start_time=ctx.start_time_ms,
        segments=segments,
        total_delta_v_ms=cand.total_delta_v_ms,
        total_time_days=total_s / SECONDS_PER_DAY,
        total_fuel_kg=cand.total_fuel_kg,
        arrival_velocity_ms=arrival_speed,
        plan_type=plan_type,
        name=name,
        tags=tags,
        distance_au=path_length(path),
        max_g=mode.max_g,
        accel_ratio=t_acc / total_s,
        brake_ratio=t_brk / total_s,
        intercept_speed_ms=mode.intercept_speed_ms,
        arrival_placement=mode.arrival_placement,
        aerobraking_delta_v_ms=cand.arrival.aerobraking_dv_ms,
        initial_delay_days=ctx.initial_delay_s / SECONDS_PER_DAY,
        is_kinematic=torchship,
    )


def _hohmann_tags(ctx: TransitContext, duration_s: float, accel_ratio: float) -> List[str]:
    tags = ctx.config.tags
    near = abs(duration_s - ctx.t_hohmann_s) < tags.hohmann_tolerance * ctx.t_hohmann_s
    if near and accel_ratio < tags.hohmann_max_accel_ratio:
        return ['HOHMANN-OPTIMAL']
    return []


# =============================================================================
# VARIANTS
# =============================================================================

def plan_most_efficient(ctx: TransitContext) -> Optional[TransitPlan]:
    """Low-thrust variant; optionally scans the launch date first."""
    variant = ctx.config.variants.efficiency
    ratio = variant.accel_ratio if variant.accel_ratio is not None else 0.05
    mode = ctx.mode

    extra = []
    if mode.optimize_departure and ctx.origin is not None and mode.initial_state is None:
        delay_s = scan_departure(ctx, ratio)
        if delay_s > 0:
            ctx = ctx.at_departure(delay_s)
            extra.append('DEPARTURE-WINDOW')

    cand = solve_cheapest(ctx, variant.window, ratio)
    if cand is None:
        return None
    extra = _hohmann_tags(ctx, cand.duration_s, ratio) + extra
    return build_lambert_plan(ctx, cand, 'Most Efficient', PlanType.EFFICIENCY, ratio, extra)


def plan_balanced(ctx: TransitContext) -> Optional[TransitPlan]:
    """Lambert variant flown at the requested accel ratio."""
    variant = ctx.config.variants.balanced
    if variant.accel_ratio is not None:
        ratio = variant.accel_ratio
    else:
        ratio = max(ctx.config.search.min_accel_ratio, ctx.mode.accel_ratio)

    cand = solve_variant(ctx, variant.window, ratio)
    if cand is None:
        return None
    extra = _hohmann_tags(ctx, cand.duration_s, ratio)
    plan = build_lambert_plan(ctx, cand, 'Balanced', PlanType.ASSIST, ratio, extra)
    if 'SUNDIVER' in plan.tags:
        plan.name = 'Sundiver'
    return plan


def _profile_distance(tau: np.ndarray, a: float, mbf: float,
                      t_acc: float, t_coast: float) -> Tuple[np.ndarray, np.ndarray]:
    """Distance and speed along an accel / coast / brake profile."""
    v_max = a * t_acc
    s_acc = 0.5 * a * t_acc ** 2
    s_coast = s_acc + v_max * t_coast
    t_brake0 = t_acc + t_coast

    dist = np.where(tau <= t_acc, 0.5 * a * tau ** 2,
                    np.where(tau <= t_brake0, s_acc + v_max * (tau - t_acc),
                             s_coast + v_max * (tau - t_brake0)
                             - 0.5 * a * mbf * (tau - t_brake0) ** 2))
    speed = np.where(tau <= t_acc, a * tau,
                     np.where(tau <= t_brake0, v_max,
                              v_max - a * mbf * (tau - t_brake0)))
    return dist, speed


def plan_direct(ctx: TransitContext, local: bool = False) -> Optional[TransitPlan]:
    """
    Direct Burn: accelerate, coast and brake along a straight chord.

    With ``ar``/``br`` the accel/brake fractions of the flight time t and
    ``mbf`` the mass brake factor, the distance flown is

        D = a K t^2,   K = ar - ar^2/2 - mbf br^2 / 2

    so t = sqrt(D / (a K)).  D depends on where the target is at t, so the
    solve is repeated ``search.direct_iterations`` times against the
    moving target.  When braking to rest, br = ar / mbf.

    ``local`` expresses the solve in the frame of the endpoints' common
    ancestor, which keeps planet-moon hops away from heliocentric
    magnitudes.
    """
    cfg = ctx.config
    search = cfg.search
    mode = ctx.mode

    max_g = max(search.min_max_g, mode.max_g)
    a = max_g * G0
    engine = PropulsionModel(max_g, mode.ship_mass_kg, mode.ship_isp, cfg)
    frame = ctx.frame_node() if local else ctx.root
    t0_ms = ctx.start_time_ms

    def _frame_state(offset_s: float) -> StateVector:
        if frame.id == ctx.root.id:
            return StateVector.zero()
        return global_state(ctx.system, frame, t0_ms + offset_s * MS_PER_SECOND, cfg)

    start_local = ctx.start_state.r - _frame_state(0.0).r

    def _ratios(mbf: float) -> Tuple[float, float]:
        ar = max(0.001, mode.accel_ratio)
        br = ar / mbf if mode.brake_at_arrival else min(mode.brake_ratio, ar / mbf)
        if ar + br > search.direct_ratio_cap:
            scale = search.direct_ratio_cap / (ar + br)
            ar, br = ar * scale, br * scale
        return ar, br

    t = 0.0
    mbf = 1.0
    ar, br = _ratios(mbf)
    end_local = ctx.target_state(0.0).r - _frame_state(0.0).r
    for iteration in range(search.direct_iterations):
        if iteration > 0:
            mbf = engine.mass_brake_factor(a * ar * t)
            ar, br = _ratios(mbf)
        K = ar - 0.5 * ar ** 2 - 0.5 * mbf * br ** 2
        if K <= 0:
            logger.debug("Direct burn: non-positive profile constant K=%.4f", K)
            return None
        end_local = ctx.target_state(t).r - _frame_state(t).r
        distance_m = float(np.linalg.norm(end_local - start_local)) * AU_M
        if distance_m == 0.0:
            return None
        t = float(np.sqrt(distance_m / (a * K)))

    end_local = ctx.target_state(t).r - _frame_state(t).r
    chord = end_local - start_local
    chord_m = float(np.linalg.norm(chord)) * AU_M
    if chord_m == 0.0:
        return None
    direction = chord / np.linalg.norm(chord)

    t_acc = ar * t
    t_brk = br * t
    t_coast = max(0.0, t - t_acc - t_brk)
    profile_end, _ = _profile_distance(np.array([t]), a, mbf, t_acc, t_coast)
    if profile_end[0] <= 0:
        return None

    dv1 = a * t_acc
    dv2 = a * mbf * t_brk
    departure, braking = engine.burn_sequence([dv1, dv2])

    plan_id = new_plan_id()
    high_g = mode.max_g > cfg.tags.high_g
    segments = []
    state = ctx.start_state.copy()
    t_cursor = 0.0
    phases = [(SegmentType.ACCEL, t_acc, departure.fuel_kg),
              (SegmentType.COAST, t_coast, 0.0),
              (SegmentType.BRAKE, t_brk, braking.fuel_kg)]
    active = [p for p in phases if p[1] > 0]
    for i, (kind, duration, fuel) in enumerate(active):
        t_end = t if i == len(active) - 1 else t_cursor + duration
        tau = np.linspace(t_cursor, t_end, search.direct_path_samples + 1)
        dist, speed = _profile_distance(tau, a, mbf, t_acc, t_coast)
        frac = np.clip(dist / profile_end[0], 0.0, 1.0)
        local_points = start_local + frac[:, None] * chord
        frame_states = [_frame_state(s) for s in tau]
        points = local_points + np.array([fs.r for fs in frame_states])
        v_end = direction * speed[-1] / AU_M + frame_states[-1].v
        seg_end = StateVector(points[-1], v_end)
        segments.append(TransitSegment(
            id=f"{plan_id}-{kind.value.lower()}",
            type=kind,
            start_time=t0_ms + t_cursor * MS_PER_SECOND,
            end_time=t0_ms + t_end * MS_PER_SECOND,
            start_state=state,
            end_state=seg_end,
            host_id=frame.id,
            path_points=points,
            fuel_used_kg=float(fuel),
            warnings=['High G'] if high_g and kind != SegmentType.COAST else [],
        ))
        state = seg_end.copy()
        t_cursor = t_end

    if mode.brake_at_arrival:
        segments[-1].end_state = ctx.target_state(t)
    else:
        segments[-1].warnings.append('Flyby')

    tags = ['HIGH-G'] if high_g else []
    logger.debug("Direct burn solved: t=%.3f days, mbf=%.3f, ar=%.3f, br=%.3f",
                 t / SECONDS_PER_DAY, mbf, ar, br)
    return TransitPlan(
        id=plan_id,
        origin_id=ctx.origin.id if ctx.origin is not None else '',
        target_id=ctx.target.id,
        start_time=t0_ms,
        segments=segments,
        total_delta_v_ms=dv1 + dv2,
        total_time_days=t / SECONDS_PER_DAY,
        total_fuel_kg=departure.fuel_kg + braking.fuel_kg,
        arrival_velocity_ms=abs(dv1 - dv2),
        plan_type=PlanType.SPEED,
        name='Direct (Local)' if local else 'Direct',
        tags=tags,
        distance_au=chord_m / AU_M,
        max_g=mode.max_g,
        accel_ratio=ar,
        brake_ratio=br,
        intercept_speed_ms=mode.intercept_speed_ms,
        arrival_placement=mode.arrival_placement,
        initial_delay_days=ctx.initial_delay_s / SECONDS_PER_DAY,
        is_kinematic=False,
    )
