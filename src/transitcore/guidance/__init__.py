"""
===============================================================================
TRANSIT CORE - Guidance Package
===============================================================================
Transit plan generation.

Modules:
    maneuver_planner  : Rocket equation, burn timing, capture and aerobraking
    trajectory_search : Lambert-based variants, Direct Burn, launch-date scan
    gravity_assist    : Patched-conic flyby candidate search and plan builder
    transit_planner   : plan() entry point combining every variant
===============================================================================
"""
