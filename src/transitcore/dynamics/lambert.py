"""
===============================================================================
TRANSIT CORE - Lambert Solver
===============================================================================
Universal-variable solution of Lambert's problem in the system plane: given
two positions and a transfer time, find the departure and arrival
velocities of the connecting two-body conic.

The solver is unit-agnostic: pass positions, time and ``mu`` in a
consistent system (m, s, m^3/s^2 or AU, s, AU^3/s^2).

Failure is signalled by returning ``None``, never by raising.  Callers
should retry with ``long_way=True`` before declaring a geometry infeasible.

References
----------
    [1] Bate, Mueller & White, "Fundamentals of Astrodynamics", ch. 5.
    [2] Curtis, "Orbital Mechanics for Engineering Students", Algorithm 5.2.
===============================================================================
"""

import logging
from typing import Optional, Tuple

import numpy as np

from transitcore.core.config import PlannerConfig, default_config

logger = logging.getLogger(__name__)

# Below this |z| the Stumpff functions use their Taylor series.
_SERIES_LIMIT = 1e-3


# =============================================================================
# STUMPFF FUNCTIONS
# =============================================================================

def stumpff_c(z: float) -> float:
    """
    C(z) = (1 - cos sqrt(z)) / z            z > 0
         = (cosh sqrt(-z) - 1) / (-z)       z < 0
         = 1/2 - z/24 + z^2/720 - ...       z ~ 0
    """
    if z > _SERIES_LIMIT:
        return (1.0 - np.cos(np.sqrt(z))) / z
    if z < -_SERIES_LIMIT:
        return (np.cosh(np.sqrt(-z)) - 1.0) / (-z)
    return 0.5 - z / 24.0 + z * z / 720.0 - z ** 3 / 40320.0


def stumpff_s(z: float) -> float:
    """
    S(z) = (sqrt(z) - sin sqrt(z)) / z^(3/2)          z > 0
         = (sinh sqrt(-z) - sqrt(-z)) / (-z)^(3/2)    z < 0
         = 1/6 - z/120 + z^2/5040 - ...               z ~ 0
    """
    if z > _SERIES_LIMIT:
        sz = np.sqrt(z)
        return (sz - np.sin(sz)) / (sz ** 3)
    if z < -_SERIES_LIMIT:
        sz = np.sqrt(-z)
        return (np.sinh(sz) - sz) / (sz ** 3)
    return 1.0 / 6.0 - z / 120.0 + z * z / 5040.0 - z ** 3 / 362880.0


# =============================================================================
# SOLVER
# =============================================================================

def transfer_angle(r1: np.ndarray, r2: np.ndarray) -> float:
    """Signed angle from r1 to r2 (rad), normalised to (-pi, pi]."""
    dtheta = np.arctan2(r2[1], r2[0]) - np.arctan2(r1[1], r1[0])
    while dtheta > np.pi:
        dtheta -= 2.0 * np.pi
    while dtheta <= -np.pi:
        dtheta += 2.0 * np.pi
    return float(dtheta)


def solve_lambert(
    r1: np.ndarray,
    r2: np.ndarray,
    dt: float,
    mu: float,
    long_way: bool = False,
    tol: Optional[float] = None,
    max_iter: Optional[int] = None,
    config: Optional[PlannerConfig] = None,
) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Solve Lambert's problem with bisection on the universal variable z.

    Algorithm:
        1. Signed transfer angle dtheta in (-pi, pi].
        2. A = sin(dtheta) * sqrt(r1 r2 / (1 - cos dtheta)); the sign of A
           selects the sense of motion.  The default is the
           counter-clockwise (prograde) arc; ``long_way`` negates A, giving
           the clockwise arc that covers the complementary angle.
        3. For z in [z_min, z_max] (z_max = 4 pi^2, single revolution):

               y(z)     = r1 + r2 + A (z S(z) - 1) / sqrt(C(z))
               sqrt(mu) t(z) = (y/C)^(3/2) S + A sqrt(y)

           t(z) increases with z, so bisect until |t(z) - dt| <= tol * dt.
           A negative y means z lies below the admissible region and
           raises the lower bound.
        4. Lagrange coefficients

               f     = 1 - y / r1
               g     = A sqrt(y / mu)
               g_dot = 1 - y / r2

           give  v1 = (r2 - f r1) / g  and  v2 = (g_dot r2 - r1) / g.

    Parameters
    ----------
    r1, r2 : np.ndarray
        Departure and arrival positions (2,).
    dt : float
        Time of flight (s), > 0.
    mu : float
        Gravitational parameter in units consistent with r and dt.
    long_way : bool
        Select the opposite-sense arc.
    tol : float, optional
        Relative time-of-flight tolerance (default ``lambert.rtol``).
    max_iter : int, optional
        Bisection budget (default ``lambert.max_iterations``).

    Returns
    -------
    (v1, v2) or None
        None for degenerate (collinear) geometry, a non-finite intermediate,
        C(z) <= 0, or an exhausted iteration budget.
    """
    cfg = (config or default_config()).lambert
    tol = cfg.rtol if tol is None else tol
    max_iter = cfg.max_iterations if max_iter is None else max_iter

    r1 = np.asarray(r1, dtype=np.float64)
    r2 = np.asarray(r2, dtype=np.float64)
    r1_mag = float(np.linalg.norm(r1))
    r2_mag = float(np.linalg.norm(r2))
    if dt <= 0 or mu <= 0 or r1_mag == 0.0 or r2_mag == 0.0:
        return None

    dtheta = transfer_angle(r1, r2)
    one_minus_cos = 1.0 - np.cos(dtheta)
    if one_minus_cos < 1e-12:
        logger.debug("Lambert: degenerate zero transfer angle")
        return None
    A = np.sin(dtheta) * np.sqrt(r1_mag * r2_mag / one_minus_cos)
    if abs(A) < 1e-12 * max(r1_mag, r2_mag):
        logger.debug("Lambert: degenerate collinear geometry (dtheta=%.6f)", dtheta)
        return None
    if long_way:
        A = -A

    sqrt_mu = np.sqrt(mu)
    lower, upper = cfg.z_min, cfg.z_max
    z = y = c = None
    converged = False

    for iteration in range(max_iter):
        z = 0.5 * (lower + upper)
        c = stumpff_c(z)
        s = stumpff_s(z)
        if c <= 0.0:
            logger.debug("Lambert: C(z) <= 0 at z=%.6g", z)
            return None
        y = r1_mag + r2_mag + A * (z * s - 1.0) / np.sqrt(c)
        if not np.isfinite(y):
            logger.debug("Lambert: non-finite y at z=%.6g", z)
            return None
        if y < 0.0:
            lower = z
            continue

        x = np.sqrt(y / c)
        t_calc = (x ** 3 * s + A * np.sqrt(y)) / sqrt_mu
        if not np.isfinite(t_calc):
            logger.debug("Lambert: non-finite time of flight at z=%.6g", z)
            return None
        if abs(t_calc - dt) <= tol * dt:
            converged = True
            break
        if t_calc < dt:
            lower = z
        else:
            upper = z

    if not converged or y <= 0.0:
        logger.debug("Lambert: no convergence after %d iterations (dt=%.6g)", max_iter, dt)
        return None

    f = 1.0 - y / r1_mag
    g = A * np.sqrt(y / mu)
    g_dot = 1.0 - y / r2_mag
    if g == 0.0 or not np.isfinite(g):
        return None

    v1 = (r2 - f * r1) / g
    v2 = (g_dot * r2 - r1) / g
    if not (np.all(np.isfinite(v1)) and np.all(np.isfinite(v2))):
        return None

    logger.debug("Lambert converged in %d iterations (z=%.6g, long_way=%s)",
                 iteration + 1, z, long_way)
    return v1, v2


def solve_lambert_any(r1, r2, dt, mu, config: Optional[PlannerConfig] = None,
                      **kwargs) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Try the prograde arc, then the opposite-sense arc."""
    result = solve_lambert(r1, r2, dt, mu, long_way=False, config=config, **kwargs)
    if result is None:
        result = solve_lambert(r1, r2, dt, mu, long_way=True, config=config, **kwargs)
    return result
