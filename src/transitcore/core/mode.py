"""
Transit request options.

``TransitMode.from_dict`` accepts both snake_case keys and the camelCase
keys used by the UI (``maxG``, ``accelRatio``, ``brakeAtArrival`` ...).
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from transitcore.core.constants import DEFAULT_AEROBRAKE_LIMIT_KMS, THERMAL_LIMITS_KMS
from transitcore.core.data_structures import StateVector
from transitcore.core.exceptions import InvalidModeError


_CAMEL_KEYS = {
    'maxG': 'max_g',
    'accelRatio': 'accel_ratio',
    'brakeRatio': 'brake_ratio',
    'interceptSpeed_ms': 'intercept_speed_ms',
    'brakeAtArrival': 'brake_at_arrival',
    'shipMass_kg': 'ship_mass_kg',
    'shipIsp': 'ship_isp',
    'parkingOrbitRadius_au': 'parking_orbit_radius_au',
    'arrivalPlacement': 'arrival_placement',
    'initialState': 'initial_state',
    'optimizeDeparture': 'optimize_departure',
    'includeAssist': 'include_assist',
}


@dataclass(frozen=True)
class AerobrakeOptions:
    """Aerobraking permission and maximum atmospheric entry speed (km/s)."""
    allowed: bool = False
    limit_kms: float = DEFAULT_AEROBRAKE_LIMIT_KMS

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AerobrakeOptions':
        if not data:
            return cls()
        limit = data.get('limit_kms')
        if limit is None and data.get('shield') in THERMAL_LIMITS_KMS:
            limit = THERMAL_LIMITS_KMS[data['shield']]
        return cls(allowed=bool(data.get('allowed', False)),
                   limit_kms=float(limit if limit is not None else DEFAULT_AEROBRAKE_LIMIT_KMS))

    @property
    def limit_ms(self) -> float:
        return self.limit_kms * 1000.0


@dataclass(frozen=True)
class TransitMode:
    """
    Ship performance and arrival preferences for one planning request.

    Attributes
    ----------
    max_g : float
        Peak acceleration (g).
    accel_ratio, brake_ratio : float
        Fraction of the flight time budgeted to each burn phase.
    intercept_speed_ms : float
        Desired residual speed relative to the target when not braking.
    brake_at_arrival : bool
        Match the target's velocity (or capture) on arrival.
    ship_mass_kg, ship_isp : float, optional
        Wet mass and specific impulse; enable rocket-equation fuel
        accounting.  Without them fuel is a flat fraction of delta-V.
    parking_orbit_radius_au : float, optional
        Capture into a circular orbit of this radius (Oberth costing).
    aerobrake : AerobrakeOptions
    arrival_placement : str, optional
        Node id to dock with, ``'surface'``, or ``'l4'``/``'l5'``.
    initial_state : StateVector, optional
        Global departure state overriding the origin's propagated state.
    optimize_departure : bool
        Scan launch dates for the Most Efficient variant.
    include_assist : bool
        Attempt a gravity-assist variant.
    """
    max_g: float = 0.1
    accel_ratio: float = 0.1
    brake_ratio: float = 0.1
    intercept_speed_ms: float = 0.0
    brake_at_arrival: bool = True
    ship_mass_kg: Optional[float] = None
    ship_isp: Optional[float] = None
    parking_orbit_radius_au: Optional[float] = None
    aerobrake: AerobrakeOptions = field(default_factory=AerobrakeOptions)
    arrival_placement: Optional[str] = None
    initial_state: Optional[StateVector] = None
    optimize_departure: bool = False
    include_assist: bool = True

    def __post_init__(self):
        if not np.isfinite(self.max_g) or self.max_g < 0:
            raise InvalidModeError(f"max_g must be a non-negative number, got {self.max_g}")
        for name in ('accel_ratio', 'brake_ratio'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidModeError(f"{name} must lie in [0, 1], got {value}")
        if self.intercept_speed_ms < 0:
            raise InvalidModeError("intercept_speed_ms must be non-negative")
        if self.ship_mass_kg is not None and self.ship_mass_kg < 0:
            raise InvalidModeError("ship_mass_kg must be non-negative")
        if self.ship_isp is not None and self.ship_isp < 0:
            raise InvalidModeError("ship_isp must be non-negative")
        if self.parking_orbit_radius_au is not None and self.parking_orbit_radius_au < 0:
            raise InvalidModeError("parking_orbit_radius_au must be non-negative")

    @property
    def uses_rocket_equation(self) -> bool:
        return bool(self.ship_mass_kg) and bool(self.ship_isp) and self.ship_isp > 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransitMode':
        """Build a mode from a camelCase or snake_case mapping."""
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if name == 'aerobrake':
                value = value if isinstance(value, AerobrakeOptions) else AerobrakeOptions.from_dict(value)
            elif name == 'initial_state' and value is not None and not isinstance(value, StateVector):
                value = StateVector.from_dict(value)
            kwargs[name] = value
        unknown = set(kwargs) - set(cls.__dataclass_fields__)
        if unknown:
            raise InvalidModeError(f"Unknown transit mode options: {sorted(unknown)}")
        for name in ('max_g', 'accel_ratio', 'brake_ratio', 'intercept_speed_ms'):
            if name in kwargs:
                kwargs[name] = float(kwargs[name])
        return cls(**kwargs)
