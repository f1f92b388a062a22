"""
===============================================================================
TRANSIT CORE - Orbital Mechanics Engine
===============================================================================
Planar two-body dynamics used by every planner component.

This module provides:

    1. **State Propagator** -- Orbital elements + time -> position and
       velocity in the orbit's host frame, by solving Kepler's equation
       with a bounded Newton-Raphson iteration.

    2. **Ballistic Integrator** -- Fixed-step RK4 under inverse-square
       gravity, producing uniformly time-sampled path points, with an
       optional endpoint drift correction for display.

    3. **Conic geometry** -- Hohmann transfer time, state -> elements
       recovery and periapsis of the osculating conic.

Orbits are coplanar: inclination and ascending node are ignored and the
perifocal frame is rotated by the argument of periapsis only.

Units: the propagator returns AU and AU/s.  The integrator and the conic
helpers are unit-agnostic as long as ``mu`` matches the length and time
units of the vectors passed in.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.

===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import numpy as np

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.constants import AU_M, MS_PER_SECOND, PI, TWO_PI
from transitcore.core.data_structures import StateVector
from transitcore.core.system import Orbit

logger = logging.getLogger(__name__)


# =============================================================================
# KEPLER'S EQUATION
# =============================================================================

def solve_kepler(mean_anomaly: float, e: float,
                 config: Optional[PlannerConfig] = None) -> float:
    """
    Solve Kepler's equation  E - e*sin(E) = M  for the eccentric anomaly.

    Newton-Raphson seeded at E = M:

        E_{k+1} = E_k - (E_k - e sin E_k - M) / (1 - e cos E_k)

    The iteration count is capped (``kepler.max_iterations``), which
    guarantees termination but not convergence; near e -> 1 callers must
    tolerate a small residual.

    Parameters
    ----------
    mean_anomaly : float
        Mean anomaly M (rad), any value; reduced mod 2*pi first.
    e : float
        Eccentricity in [0, 1).

    Returns
    -------
    float
        Eccentric anomaly E (rad), on the same 2*pi branch as the reduced M.
    """
    cfg = (config or default_config()).kepler
    M = float(np.mod(mean_anomaly, TWO_PI))
    if e < cfg.circular_threshold:
        return M

    E = M
    for _ in range(cfg.max_iterations):
        f_prime = 1.0 - e * np.cos(E)
        dE = (E - e * np.sin(E) - M) / f_prime
        E -= dE
        if abs(dE) < cfg.tolerance:
            break
    return float(E)


def true_anomaly_from_eccentric(E: float, e: float) -> float:
    """
    Half-angle form, numerically safe across the whole orbit:

        nu = 2 * atan2( sqrt(1+e) sin(E/2), sqrt(1-e) cos(E/2) )
    """
    return float(2.0 * np.arctan2(np.sqrt(1.0 + e) * np.sin(E / 2.0),
                                  np.sqrt(1.0 - e) * np.cos(E / 2.0)))


def mean_motion(orbit: Orbit) -> float:
    """Signed mean motion (rad/s); negative for retrograde orbits."""
    if orbit.n_rad_per_s is not None:
        n = orbit.n_rad_per_s
    else:
        a_m = orbit.elements.a_au * AU_M
        n = np.sqrt(orbit.host_mu / a_m ** 3)
    return -n if orbit.is_retrograde else n


# =============================================================================
# STATE PROPAGATOR
# =============================================================================

def propagate_state(orbit: Optional[Orbit], t_ms: float,
                    config: Optional[PlannerConfig] = None) -> StateVector:
    """
    Position and velocity of an orbiting node relative to its host.

    Algorithm
    ---------
        M  = M0 + n (t - t0)
        E  = solve_kepler(M, e)
        nu = true anomaly from E
        r  = a (1 - e cos E)
        perifocal position  (r cos nu, r sin nu)
        perifocal velocity  sqrt(mu/p) * (-sin nu, e + cos nu)
        rotate both by the argument of periapsis

    Retrograde orbits run the mean anomaly backwards and reverse the
    velocity so that it stays tangent to the clockwise motion.

    Parameters
    ----------
    orbit : Orbit or None
        ``None``, ``host_mu == 0`` or a missing semi-major axis yield the
        zero state (the system root).
    t_ms : float
        Unix time (ms).

    Returns
    -------
    StateVector
        Host-relative state in AU and AU/s.
    """
    if orbit is None or orbit.host_mu == 0 or not orbit.elements.a_au:
        return StateVector.zero()

    el = orbit.elements
    e = el.e
    a_m = el.a_au * AU_M

    dt_s = (t_ms - orbit.t0_ms) / MS_PER_SECOND
    M = el.m0_rad + mean_motion(orbit) * dt_s
    E = solve_kepler(M, e, config)
    nu = true_anomaly_from_eccentric(E, e)

    r_m = a_m * (1.0 - e * np.cos(E))
    pos_pf = r_m * np.array([np.cos(nu), np.sin(nu)])

    p = a_m * max(1.0 - e * e, 1e-9)
    vel_pf = np.sqrt(orbit.host_mu / p) * np.array([-np.sin(nu), e + np.cos(nu)])
    if orbit.is_retrograde:
        vel_pf = -vel_pf

    w = np.radians(el.arg_periapsis_deg)
    rot = np.array([[np.cos(w), -np.sin(w)],
                    [np.sin(w), np.cos(w)]])

    return StateVector(rot @ pos_pf / AU_M, rot @ vel_pf / AU_M)


# =============================================================================
# BALLISTIC INTEGRATOR
# =============================================================================

def two_body_acceleration(pos: np.ndarray, mu: float) -> np.ndarray:
    """
    Central inverse-square acceleration  a = -mu r / |r|^3.

    Returns zero at the singularity r = 0.
    """
    r_mag = np.linalg.norm(pos)
    if r_mag == 0.0:
        return np.zeros_like(pos)
    return -mu / r_mag ** 3 * pos


def rk4_step(r: np.ndarray, v: np.ndarray, dt: float,
             mu: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    One classical 4th-order Runge-Kutta step of

        dr/dt = v
        dv/dt = -mu r / |r|^3

    Local truncation error O(dt^5), global O(dt^4).
    """
    kr1 = v
    kv1 = two_body_acceleration(r, mu)

    kr2 = v + 0.5 * dt * kv1
    kv2 = two_body_acceleration(r + 0.5 * dt * kr1, mu)

    kr3 = v + 0.5 * dt * kv2
    kv3 = two_body_acceleration(r + 0.5 * dt * kr2, mu)

    kr4 = v + dt * kv3
    kv4 = two_body_acceleration(r + dt * kr3, mu)

    r_new = r + (dt / 6.0) * (kr1 + 2.0 * kr2 + 2.0 * kr3 + kr4)
    v_new = v + (dt / 6.0) * (kv1 + 2.0 * kv2 + 2.0 * kv3 + kv4)
    return r_new, v_new


SubstepRule = Union[int, Callable[[float], int]]


def integrate_ballistic_states(
    r0: np.ndarray,
    v0: np.ndarray,
    duration_s: float,
    mu: float,
    steps: int,
    substeps: SubstepRule = 1,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample a ballistic trajectory at ``steps + 1`` uniformly spaced times.

    Parameters
    ----------
    r0, v0 : np.ndarray
        Initial position and velocity.
    duration_s : float
        Total propagation time (s).
    mu : float
        Gravitational parameter in units consistent with r0/v0.
    steps : int
        Number of output intervals.
    substeps : int or callable
        RK4 steps per output interval, or a function of the current
        distance |r| returning that count (finer steps near the primary).

    Returns
    -------
    positions, velocities : np.ndarray
        Arrays of shape (steps + 1, dim).
    """
    steps = max(1, int(steps))
    r = np.asarray(r0, dtype=np.float64).copy()
    v = np.asarray(v0, dtype=np.float64).copy()
    positions = np.empty((steps + 1, r.size))
    velocities = np.empty((steps + 1, r.size))
    positions[0], velocities[0] = r, v

    dt_sample = duration_s / steps
    for i in range(steps):
        n_sub = substeps(float(np.linalg.norm(r))) if callable(substeps) else substeps
        n_sub = max(1, int(n_sub))
        h = dt_sample / n_sub
        for _ in range(n_sub):
            r, v = rk4_step(r, v, h, mu)
        positions[i + 1], velocities[i + 1] = r, v
    return positions, velocities


def apply_drift_correction(points: np.ndarray, target_end_pos: np.ndarray) -> np.ndarray:
    """
    Shift a sampled path so its last point lands on ``target_end_pos``.

    The endpoint residual is spread linearly over the samples by elapsed
    fraction (point i moves by residual * i / N).  This is a display
    technique that hides integration error and unmodelled perturbations;
    it does not produce a physically propagated trajectory.
    """
    n = len(points) - 1
    if n <= 0:
        return points.copy()
    residual = np.asarray(target_end_pos, dtype=np.float64) - points[-1]
    fractions = np.arange(n + 1, dtype=np.float64)[:, None] / n
    return points + fractions * residual


def integrate_ballistic_path(
    r0: np.ndarray,
    v0: np.ndarray,
    duration_s: float,
    mu: float,
    steps: int,
    target_end_pos: Optional[np.ndarray] = None,
    substeps: SubstepRule = 1,
) -> np.ndarray:
    """
    RK4 path points, shape (steps + 1, dim), optionally drift-corrected so
    that the final point equals ``target_end_pos``.
    """
    points, _ = integrate_ballistic_states(r0, v0, duration_s, mu, steps, substeps)
    if target_end_pos is not None:
        residual = float(np.linalg.norm(np.asarray(target_end_pos) - points[-1]))
        logger.debug("Drift correction residual %.3e over %d samples", residual, steps)
        points = apply_drift_correction(points, target_end_pos)
    return points


# =============================================================================
# CONIC GEOMETRY
# =============================================================================

def hohmann_transfer_time(r1: float, r2: float, mu: float) -> float:
    """
    Half-period of the Hohmann transfer ellipse:

        t_h = pi * sqrt( (r1 + r2)^3 / (8 mu) )

    Units follow ``mu`` (metres and seconds for SI).
    """
    return float(PI * np.sqrt((r1 + r2) ** 3 / (8.0 * mu)))


def _cross2(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[1] - a[1] * b[0])


@dataclass(frozen=True)
class ConicElements:
    """
    Planar osculating conic.

    ``a`` is negative for hyperbolic and infinite for parabolic conics.
    Angles are in radians; ``periapsis`` shares the length unit of the
    state it was computed from.
    """
    a: float
    e: float
    p: float
    periapsis: float
    arg_periapsis: float
    true_anomaly: float
    is_retrograde: bool


def state_to_elements(r: np.ndarray, v: np.ndarray, mu: float) -> ConicElements:
    """
    Recover the osculating conic of a planar state.

        h   = r x v                      (scalar in 2D)
        e   = ((v^2 - mu/r) r - (r.v) v) / mu
        p   = h^2 / mu
        r_p = p / (1 + |e|)
        a   = 1 / (2/r - v^2/mu)
    """
    r = np.asarray(r, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    r_mag = np.linalg.norm(r)
    v_sq = float(np.dot(v, v))
    h = _cross2(r, v)

    e_vec = ((v_sq - mu / r_mag) * r - np.dot(r, v) * v) / mu
    e = float(np.linalg.norm(e_vec))
    p = h * h / mu
    periapsis = p / (1.0 + e)

    energy_term = 2.0 / r_mag - v_sq / mu
    a = np.inf if abs(energy_term) < 1e-15 else 1.0 / energy_term

    if e > 1e-12:
        arg_periapsis = float(np.arctan2(e_vec[1], e_vec[0]))
        nu = float(np.arctan2(r[1], r[0]) - arg_periapsis)
        if h < 0:
            nu = -nu
    else:
        arg_periapsis = 0.0
        nu = float(np.arctan2(r[1], r[0]))
    nu = float(np.mod(nu, TWO_PI))

    return ConicElements(a=float(a), e=e, p=float(p), periapsis=float(periapsis),
                         arg_periapsis=arg_periapsis, true_anomaly=nu,
                         is_retrograde=h < 0)
