"""
===============================================================================
TRANSIT CORE - Physical and Astronomical Constants
===============================================================================
Central repository for the physical constants used by the transit planner.

Internal conventions:
    - Positions are carried in AU and velocities in AU/s inside the planner.
    - Speeds reported to callers (delta-V, arrival speed) are in m/s.
    - Gravitational parameters (mu) are in m^3/s^2 unless the name carries
      an ``_au`` suffix, in which case they are in AU^3/s^2.
    - Mission time stamps are Unix milliseconds.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
GRAVITATIONAL_CONSTANT = 6.67430e-11   # m^3 / (kg * s^2)
G0 = 9.80665                           # Standard gravity (m/s^2)
AU_KM = 149597870.7                    # Astronomical Unit in kilometres
AU_M = AU_KM * 1000.0                  # Astronomical Unit in meters

# =============================================================================
# TIME
# =============================================================================
SECONDS_PER_DAY = 86400.0
MS_PER_SECOND = 1000.0
MS_PER_DAY = SECONDS_PER_DAY * MS_PER_SECOND

# =============================================================================
# REFERENCE BODIES (used by fixtures, CLI defaults and documentation)
# =============================================================================
SOLAR_MASS_KG = 1.989e30
SOLAR_RADIUS_KM = 696340.0
EARTH_MASS_KG = 5.972e24
EARTH_RADIUS_KM = 6371.0
MOON_MASS_KG = 7.342e22
MOON_RADIUS_KM = 1737.4
MOON_SMA_KM = 384400.0
MARS_MASS_KG = 6.417e23
MARS_RADIUS_KM = 3389.5
JUPITER_MASS_KG = 1.898e27
JUPITER_RADIUS_KM = 69911.0

# =============================================================================
# AEROBRAKING
# =============================================================================
# Maximum atmospheric entry speed (km/s) by thermal protection class.
THERMAL_LIMITS_KMS = {
    'none': 3.0,
    'ceramic': 12.0,
    'ablative': 20.0,
    'magnetic': 50.0,
    'forcefield': 500.0,
}
DEFAULT_AEROBRAKE_LIMIT_KMS = THERMAL_LIMITS_KMS['none']
