"""
===============================================================================
TRANSIT CORE - Core Package
===============================================================================
Shared foundations for every subsystem.

Modules:
    constants        : Physical and astronomical constants
    exceptions       : TransitError hierarchy
    data_structures  : StateVector, TransitSegment, TransitPlan, JourneyLog
    system           : Id-indexed star system graph and orbits
    config           : YAML-backed PlannerConfig loader
    mode             : TransitMode request options
===============================================================================
"""
