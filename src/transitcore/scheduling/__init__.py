"""
===============================================================================
TRANSIT CORE - Scheduling Package
===============================================================================
Playback of scheduled journeys at arbitrary mission time.

Modules:
    journey_scheduler : Kinematic sampling, cancellation, bookkeeping
===============================================================================
"""
