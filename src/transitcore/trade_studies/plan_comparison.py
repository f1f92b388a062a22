"""
Plan Comparison
Tabulates the variants returned by the planner side by side and samples a
construct's scheduled journeys into a time-stamped track, both as pandas
DataFrames ready for display or CSV export.
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from transitcore.core.config import PlannerConfig
from transitcore.core.constants import MS_PER_SECOND, SECONDS_PER_DAY
from transitcore.core.data_structures import TransitPlan
from transitcore.core.system import CelestialNode, System
from transitcore.scheduling.journey_scheduler import sample_journey_kinematics_at_time

logger = logging.getLogger(__name__)


def plans_summary_table(plans: List[TransitPlan]) -> pd.DataFrame:
    """Return a pandas DataFrame summarising each plan variant."""
    rows = []
    for p in plans:
        rows.append({
            'Plan': p.name,
            'Type': p.plan_type.value,
            'Duration [days]': round(p.total_time_days, 2),
            'Delta-V [m/s]': round(p.total_delta_v_ms, 1),
            'Fuel [kg]': round(p.total_fuel_kg, 1),
            'Arrival Speed [m/s]': round(p.arrival_velocity_ms, 1),
            'Aerobraking [m/s]': round(p.aerobraking_delta_v_ms, 1),
            'Distance [AU]': round(p.distance_au, 4),
            'Delay [days]': round(p.initial_delay_days, 1),
            'Tags': ', '.join(p.tags),
            'Hidden': p.hidden_reason or '',
        })
    return pd.DataFrame(rows)


def journey_track(system: System, construct: CelestialNode, start_ms: float,
                  end_ms: float, step_s: float,
                  config: Optional[PlannerConfig] = None) -> pd.DataFrame:
    """Sample a construct's journeys every ``step_s`` seconds.

    Returns
    -------
    track : pd.DataFrame
        One row per sample with time, elapsed days, position (AU),
        velocity (m/s) and flight state.  Empty if the construct has no
        journeys.
    """
    if step_s <= 0:
        raise ValueError("step_s must be positive")
    times = np.arange(start_ms, end_ms + 0.5 * step_s * MS_PER_SECOND, step_s * MS_PER_SECOND)
    rows = []
    for t in times:
        k = sample_journey_kinematics_at_time(system, construct, float(t), config)
        if k is None:
            continue
        rows.append({
            'time_ms': float(t),
            'elapsed_days': (t - start_ms) / MS_PER_SECOND / SECONDS_PER_DAY,
            'x_au': k.position_au[0],
            'y_au': k.position_au[1],
            'vx_ms': k.velocity_ms[0],
            'vy_ms': k.velocity_ms[1],
            'speed_ms': float(np.linalg.norm(k.velocity_ms)),
            'state': k.state.value,
            'journey_id': k.journey_id,
        })
    logger.debug("Sampled %d track points for %r", len(rows), construct.id)
    return pd.DataFrame(rows)


def export_csv(frame: pd.DataFrame, path: str) -> None:
    frame.to_csv(path, index=False)
    logger.info("Wrote %d rows to %s", len(frame), path)
