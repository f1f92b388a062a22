"""
===============================================================================
TRANSIT CORE - Maneuver Planner
===============================================================================
Propellant, burn timing and arrival-burn costing for transit plans.

This module provides the rocket-equation helpers used throughout the
planner, a constant-thrust propulsion model that turns delta-V demands
into burn durations and fuel, Oberth-effect capture costing, aerobraking
credit, and the periapsis burn of a powered gravity assist.

Sign conventions and units:
    - All velocities in m/s
    - All masses in kg
    - All durations in seconds
    - Gravitational parameters (mu) in m^3/s^2
    - Specific impulse (Isp) in seconds
    - g0 = 9.80665 m/s^2 (standard gravity)
===============================================================================
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.constants import G0
from transitcore.core.mode import AerobrakeOptions

logger = logging.getLogger(__name__)


# =============================================================================
# ROCKET EQUATION
# =============================================================================

def calculate_fuel_mass(mass_initial_kg: float, dv_ms: float, isp: float) -> float:
    """
    Propellant burned to produce ``dv_ms`` starting from ``mass_initial_kg``.

        m_final = m0 * exp(-dv / (Isp g0))
        fuel    = m0 * (1 - exp(-dv / (Isp g0)))

    Args:
        mass_initial_kg: Wet mass before the burn (kg).
        dv_ms: Delta-V of the burn (m/s).
        isp: Specific impulse (s).

    Returns:
        Fuel mass (kg); 0 for a non-positive Isp or mass.
    """
    if isp <= 0.0 or mass_initial_kg <= 0.0:
        return 0.0
    v_exhaust = isp * G0
    return float(mass_initial_kg * -np.expm1(-dv_ms / v_exhaust))


def calculate_delta_v(mass_initial_kg: float, fuel_mass_kg: float, isp: float) -> float:
    """
    Delta-V obtained by burning ``fuel_mass_kg``:

        dv = Isp g0 ln(m0 / (m0 - fuel))

    Returns 0 for a non-positive Isp or mass, or when the fuel would
    consume the whole vehicle.
    """
    if isp <= 0.0 or mass_initial_kg <= 0.0:
        return 0.0
    mass_final_kg = mass_initial_kg - fuel_mass_kg
    if mass_final_kg <= 0.0:
        return 0.0
    return float(isp * G0 * -np.log1p(-fuel_mass_kg / mass_initial_kg))


def calculate_burn_time(fuel_mass_kg: float, thrust_n: float, isp: float) -> float:
    """
    Burn duration for a fixed thrust:  t = fuel / m_dot,  m_dot = F / (Isp g0).
    """
    if thrust_n <= 0.0 or isp <= 0.0:
        return 0.0
    m_dot = thrust_n / (isp * G0)
    return float(fuel_mass_kg / m_dot)


def sequential_fuel(mass_initial_kg: float, burns_ms: Sequence[float],
                    isp: float) -> List[float]:
    """
    Fuel for each burn in order, each seeing the mass left by the previous
    ones.
    """
    fuels = []
    mass = mass_initial_kg
    for dv in burns_ms:
        fuel = calculate_fuel_mass(mass, dv, isp)
        fuels.append(fuel)
        mass -= fuel
    return fuels


# =============================================================================
# PROPULSION MODEL
# =============================================================================

@dataclass(frozen=True)
class BurnResult:
    delta_v_ms: float
    fuel_kg: float
    duration_s: float
    mass_after_kg: float


class PropulsionModel:
    """
    Constant-thrust engine sized to ``max_g`` at the departure wet mass.

    With ship mass and Isp the thrust is F = m0 * max_g * g0 and the mass
    flow m_dot = F / (Isp g0) is constant, so later burns accelerate
    harder as propellant is spent.  Without ship data every burn runs at
    max_g and costs a flat ``fuel.fallback_fraction`` kg per m/s.

    Typical usage:
        engine = PropulsionModel(max_g=1.0, ship_mass_kg=2e6, isp=380)
        dep, arr = engine.burn_sequence([dv1, dv2])
    """

    def __init__(self, max_g: float, ship_mass_kg: Optional[float] = None,
                 isp: Optional[float] = None,
                 config: Optional[PlannerConfig] = None) -> None:
        self.config = config or default_config()
        self.max_g = max_g
        self.accel_ms2 = max_g * G0
        self.ship_mass_kg = ship_mass_kg
        self.isp = isp
        self.uses_rocket_equation = bool(ship_mass_kg) and bool(isp) and isp > 0

    @property
    def exhaust_velocity(self) -> float:
        return self.isp * G0 if self.uses_rocket_equation else 0.0

    @property
    def mass_flow(self) -> float:
        """Propellant mass flow (kg/s) at full thrust."""
        if not self.uses_rocket_equation:
            return 0.0
        return self.ship_mass_kg * self.accel_ms2 / self.exhaust_velocity

    def burn(self, dv_ms: float, mass_kg: Optional[float] = None) -> BurnResult:
        """Cost of a single burn starting at ``mass_kg`` (default: wet mass)."""
        dv_ms = max(0.0, float(dv_ms))
        if not self.uses_rocket_equation:
            duration = dv_ms / self.accel_ms2 if self.accel_ms2 > 0 else np.inf
            fuel = dv_ms * self.config.fuel.fallback_fraction
            return BurnResult(dv_ms, fuel, duration, 0.0)

        mass = self.ship_mass_kg if mass_kg is None else mass_kg
        fuel = calculate_fuel_mass(mass, dv_ms, self.isp)
        duration = fuel / self.mass_flow if self.mass_flow > 0 else np.inf
        return BurnResult(dv_ms, fuel, duration, mass - fuel)

    def burn_sequence(self, burns_ms: Sequence[float]) -> List[BurnResult]:
        """Burns flown in order from the departure wet mass."""
        results = []
        mass = self.ship_mass_kg
        for dv in burns_ms:
            result = self.burn(dv, mass)
            results.append(result)
            mass = result.mass_after_kg
        return results

    def delta_v_for_duration(self, duration_s: float, mass_kg: Optional[float] = None) -> float:
        """
        Delta-V available from a full-thrust burn of ``duration_s``:

            dv = Isp g0 ln(m / (m - m_dot t))

        The burn is capped at 99% of the remaining mass.
        """
        duration_s = max(0.0, duration_s)
        if not self.uses_rocket_equation:
            return self.accel_ms2 * duration_s
        mass = self.ship_mass_kg if mass_kg is None else mass_kg
        t = min(duration_s, 0.99 * mass / self.mass_flow)
        return float(self.exhaust_velocity * np.log(mass / (mass - self.mass_flow * t)))

    def mass_brake_factor(self, dv_accel_ms: float) -> float:
        """
        Ratio of braking to departure acceleration after the departure burn,
        m0 / m1, clamped by ``fuel.max_brake_factor``.  1 without ship data.
        """
        if not self.uses_rocket_equation:
            return 1.0
        cap = self.config.fuel.max_brake_factor
        return min(float(np.exp(min(dv_accel_ms / self.exhaust_velocity, np.log(cap)))), cap)

    def __repr__(self) -> str:
        return (f"PropulsionModel(max_g={self.max_g}, ship_mass_kg={self.ship_mass_kg}, "
                f"isp={self.isp})")


# =============================================================================
# ARRIVAL AND FLYBY BURNS
# =============================================================================

def oberth_capture_delta_v(v_inf_ms: float, mu_target: float,
                           r_p_m: float) -> Tuple[float, float]:
    """
    Capture burn into a circular orbit of radius r_p from a hyperbolic
    approach with excess speed v_inf, burning at periapsis:

        V_p = sqrt(v_inf^2 + 2 mu / r_p)     hyperbolic periapsis speed
        V_c = sqrt(mu / r_p)                 circular speed
        dv  = |V_p - V_c|

    Returns:
        (dv, V_p) in m/s.
    """
    v_p = np.sqrt(v_inf_ms ** 2 + 2.0 * mu_target / r_p_m)
    v_c = np.sqrt(mu_target / r_p_m)
    return float(abs(v_p - v_c)), float(v_p)


@dataclass(frozen=True)
class AerobrakeResult:
    propulsive_dv_ms: float
    aerobraking_dv_ms: float
    tag: Optional[str] = None


def apply_aerobraking(capture_dv_ms: float, entry_speed_ms: float,
                      options: AerobrakeOptions, has_atmosphere: bool) -> AerobrakeResult:
    """
    Let the target's atmosphere absorb part of an arrival burn.

    If the entry speed is within the thermal limit, the atmosphere removes
    the whole capture burn (``AEROCAPTURE``).  Otherwise the ship burns
    down to the limit and the atmosphere removes the rest
    (``PARTIAL-AERO``).  Without permission or an atmosphere nothing
    changes.
    """
    if not options.allowed or not has_atmosphere or capture_dv_ms <= 0.0:
        return AerobrakeResult(capture_dv_ms, 0.0)

    limit = options.limit_ms
    if entry_speed_ms <= limit:
        logger.debug("Aerocapture: entry %.0f m/s within limit %.0f m/s", entry_speed_ms, limit)
        return AerobrakeResult(0.0, capture_dv_ms, 'AEROCAPTURE')

    propulsive = min(capture_dv_ms, entry_speed_ms - limit)
    aero = capture_dv_ms - propulsive
    if aero <= 0.0:
        return AerobrakeResult(capture_dv_ms, 0.0)
    logger.debug("Partial aerobraking: burn %.0f m/s, atmosphere %.0f m/s", propulsive, aero)
    return AerobrakeResult(propulsive, aero, 'PARTIAL-AERO')


def powered_flyby_delta_v(v_inf_in_ms: float, v_inf_out_ms: float,
                          periapsis_m: float, mu_body: float) -> float:
    """
    Periapsis burn of a powered gravity assist:

        v_peri_in  = sqrt(v_inf_in^2  + 2 mu / r_p)
        v_peri_out = sqrt(v_inf_out^2 + 2 mu / r_p)
        dv         = |v_peri_out - v_peri_in|

    Zero when the incoming and outgoing excess speeds match.
    """
    v_peri_in = np.sqrt(v_inf_in_ms ** 2 + 2.0 * mu_body / periapsis_m)
    v_peri_out = np.sqrt(v_inf_out_ms ** 2 + 2.0 * mu_body / periapsis_m)
    dv = abs(v_peri_out - v_peri_in)
    logger.debug("Powered flyby: v_inf_in=%.1f, v_inf_out=%.1f, r_p=%.0f m, dv=%.1f m/s",
                 v_inf_in_ms, v_inf_out_ms, periapsis_m, dv)
    return float(dv)
