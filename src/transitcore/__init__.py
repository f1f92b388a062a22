"""
===============================================================================
TRANSIT CORE
===============================================================================
Astrodynamics transit-planning engine for procedurally generated star
systems: Keplerian propagation, Lambert targeting, ballistic path sampling,
flight-profile search, patched-conic gravity assists and journey playback.

Subpackages:
    core           -- Constants, system graph, value types, configuration
    dynamics       -- State propagator, frame resolver, Lambert solver, RK4
    guidance       -- Fuel model, trajectory search, gravity assists, planner
    scheduling     -- Journey sampling, cancellation and bookkeeping
    trade_studies  -- Tabular plan comparison and CSV export
===============================================================================
"""

from transitcore.guidance.transit_planner import plan

__version__ = '0.1.0'

__all__ = ['plan', '__version__']
