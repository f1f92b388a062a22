"""
===============================================================================
TRANSIT CORE - Transit Planner
===============================================================================
Entry point of the core:

    plan(system, origin_id, target_id, start_time_ms, mode) -> [TransitPlan]

Resolves the endpoints, builds the shared request context and runs the
variant solvers in order:

    Most Efficient -> Balanced -> Direct Burn -> Gravity Assist

A variant with no feasible solution is simply absent from the result.
Short hops (endpoints closer than ``search.short_range_au``) only run the
Direct Burn solver in the local frame of the endpoints' common ancestor.

Plans that are legal but impractical (delta-V above
``practicality.max_delta_v_ms`` or a flight more than
``practicality.max_duration_factor`` times the Hohmann baseline) are kept
and carry a ``hidden_reason``.
===============================================================================
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

import numpy as np

from transitcore.core.config import PlannerConfig, default_config
from transitcore.core.constants import DEG2RAD, SECONDS_PER_DAY
from transitcore.core.data_structures import TransitPlan
from transitcore.core.exceptions import InvalidModeError
from transitcore.core.mode import TransitMode
from transitcore.core.system import CelestialNode, System
from transitcore.dynamics.frames import global_state
from transitcore.guidance.gravity_assist import plan_gravity_assist
from transitcore.guidance.trajectory_search import (
    TransitContext, plan_balanced, plan_direct, plan_most_efficient,
)

logger = logging.getLogger(__name__)


def lagrange_target(target: CelestialNode, placement: Optional[str],
                    config: PlannerConfig) -> CelestialNode:
    """
    Virtual massless copy of ``target`` leading (L4) or trailing (L5) it
    along its orbit.  Any other placement returns ``target`` unchanged.
    """
    if placement not in ('l4', 'l5') or target.orbit is None:
        return target
    offset_deg = (config.lagrange.l4_offset_deg if placement == 'l4'
                  else config.lagrange.l5_offset_deg)
    if target.orbit.is_retrograde:
        offset_deg = -offset_deg
    orbit = target.orbit.with_anomaly_offset(offset_deg * DEG2RAD)
    return replace(target, orbit=orbit, mass_kg=0.0, effective_mass_kg=0.0,
                   atmosphere=None, scheduled_journeys=[])


def _mark_impractical(plan: TransitPlan, ctx: TransitContext) -> None:
    limits = ctx.config.practicality
    if plan.total_delta_v_ms > limits.max_delta_v_ms:
        plan.hidden_reason = (f"Delta-V {plan.total_delta_v_ms / 1000.0:.1f} km/s exceeds "
                              f"{limits.max_delta_v_ms / 1000.0:.0f} km/s")
        return
    baseline_days = ctx.t_hohmann_s / SECONDS_PER_DAY
    if baseline_days > 0 and plan.total_time_days > limits.max_duration_factor * baseline_days:
        plan.hidden_reason = (f"Duration {plan.total_time_days:.1f} days exceeds "
                              f"{limits.max_duration_factor:g}x the Hohmann baseline")


def plan(system: System, origin_id: Optional[str], target_id: str, start_time_ms: float,
         mode: Union[TransitMode, Dict[str, Any]],
         config: Optional[PlannerConfig] = None) -> List[TransitPlan]:
    """
    Compute the transit plans from ``origin_id`` to ``target_id``.

    Args:
        system: Star system graph (read-only, except orbit self-repair).
        origin_id: Departure node; may be None when ``mode.initial_state``
            supplies the departure state.
        target_id: Destination node.
        start_time_ms: Departure time (Unix ms).
        mode: TransitMode or a camelCase/snake_case mapping of its fields.
        config: Solver configuration (default: packaged defaults).

    Returns:
        Plans in variant order.  Empty when the root has no mass.

    Raises:
        UnknownNodeError: origin or target id not in the system.
        SystemRootError: the system has no root node.
        InvalidModeError: malformed mode, or neither origin nor initial state.
    """
    config = config or default_config()
    if not isinstance(mode, TransitMode):
        mode = TransitMode.from_dict(mode)

    target = system.get(target_id)
    origin = system.get(origin_id) if origin_id is not None else None
    if origin is None and mode.initial_state is None:
        raise InvalidModeError("An origin id or an initial state is required")

    root = system.root()
    if root.mu <= 0:
        logger.info("Root %r has no mass; no gravitational model to plan in", root.id)
        return []

    target = lagrange_target(target, mode.arrival_placement, config)
    if mode.initial_state is not None:
        start_state = mode.initial_state.copy()
    else:
        start_state = global_state(system, origin, start_time_ms, config)

    ctx = TransitContext(system=system, origin=origin, target=target, root=root,
                         start_time_ms=start_time_ms, start_state=start_state,
                         mode=mode, config=config)

    separation = float(np.linalg.norm(ctx.target_state(0.0).r - start_state.r))
    logger.info("Planning %s -> %s: separation %.4f AU, Hohmann baseline %.1f days",
                origin_id, target_id, separation, ctx.t_hohmann_s / SECONDS_PER_DAY)

    if separation < config.search.short_range_au:
        direct = plan_direct(ctx, local=True)
        plans = [direct] if direct is not None else []
    else:
        plans = []
        efficient = plan_most_efficient(ctx)
        if efficient is not None:
            plans.append(efficient)
        else:
            logger.info("Most Efficient variant infeasible")

        balanced = plan_balanced(ctx)
        if balanced is not None:
            plans.append(balanced)
        else:
            logger.info("Balanced variant infeasible")

        direct = plan_direct(ctx)
        if direct is None:
            logger.info("Direct Burn variant infeasible")
        elif balanced is not None and abs(direct.total_time_days - balanced.total_time_days) \
                < config.practicality.duplicate_tolerance_days:
            logger.info("Direct Burn duplicates Balanced (%.2f days); dropped",
                        direct.total_time_days)
        else:
            plans.append(direct)

        if mode.include_assist:
            assist = plan_gravity_assist(ctx)
            if assist is not None:
                plans.append(assist)
            else:
                logger.info("No acceptable gravity assist")

    for p in plans:
        _mark_impractical(p, ctx)
    logger.info("Planned %d variant(s): %s", len(plans), ', '.join(p.name for p in plans))
    return plans
