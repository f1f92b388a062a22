"""
===============================================================================
TRANSIT CORE - Dynamics Package
===============================================================================
Two-body orbital dynamics in the system plane.

Modules:
    orbital_mechanics : Kepler propagation, RK4 ballistic paths, conic helpers
    lambert           : Universal-variable Lambert solver
    frames            : Global/local state composition over the parent chain
===============================================================================
"""
