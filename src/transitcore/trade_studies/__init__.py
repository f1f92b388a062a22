"""
===============================================================================
TRANSIT CORE - Trade Studies Package
===============================================================================
Side-by-side comparison of plan variants.

Modules:
    plan_comparison : pandas summary tables and sampled journey tracks
===============================================================================
"""
