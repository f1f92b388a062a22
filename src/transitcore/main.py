#!/usr/bin/env python3
"""
===============================================================================
TRANSIT CORE - COMMAND-LINE DRIVER
===============================================================================
Plans a transit between two nodes of a star system JSON file and prints the
variant comparison table.

USAGE:
    transitcore system.json earth mars
    transitcore system.json earth mars --start 2031-04-01T00:00:00
    transitcore system.json earth mars --mode ship.yaml --csv plans.csv
    transitcore system.json earth mars --track track.csv --track-step-hours 12

The mode file is a YAML mapping of TransitMode options (camelCase or
snake_case keys).  ``--max-g``, ``--accel-ratio`` and ``--brake-ratio``
override the corresponding entries.
===============================================================================
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml

from transitcore.core.config import load_config
from transitcore.core.constants import MS_PER_SECOND, SECONDS_PER_DAY
from transitcore.core.data_structures import JourneyLog
from transitcore.core.exceptions import TransitError
from transitcore.core.system import CelestialNode, System
from transitcore.guidance.transit_planner import plan
from transitcore.trade_studies.plan_comparison import (
    export_csv, journey_track, plans_summary_table,
)

logger = logging.getLogger('transitcore')


def parse_start_time(value: Optional[str]) -> float:
    """Unix milliseconds from an integer string or an ISO-8601 timestamp (UTC if naive)."""
    if value is None:
        return datetime.now(timezone.utc).timestamp() * MS_PER_SECOND
    try:
        return float(value)
    except ValueError:
        pass
    try:
        stamp = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid start time: {value!r}") from None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp.timestamp() * MS_PER_SECOND


def load_system(path: str) -> System:
    with open(path, 'r') as f:
        return System.from_dict(json.load(f))


def load_mode(path: Optional[str], args: argparse.Namespace) -> Dict[str, Any]:
    mode: Dict[str, Any] = {}
    if path is not None:
        with open(path, 'r') as f:
            mode = yaml.safe_load(f) or {}
    overrides = {'max_g': args.max_g, 'accel_ratio': args.accel_ratio,
                 'brake_ratio': args.brake_ratio}
    for key, value in overrides.items():
        if value is not None:
            mode[key] = value
    if args.no_assist:
        mode['include_assist'] = False
    return mode


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='transitcore',
        description='Plan spacecraft transits between bodies of a star system',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  transitcore system.json earth mars                      Plan with defaults
  transitcore system.json earth mars --max-g 0.5          Faster ship
  transitcore system.json earth mars --csv plans.csv      Export the table
        """
    )
    parser.add_argument('system', help='Star system JSON file')
    parser.add_argument('origin', help='Origin node id')
    parser.add_argument('target', help='Target node id')
    parser.add_argument('--start', type=str, default=None,
                        help='Departure time, Unix ms or ISO-8601 (default: now)')
    parser.add_argument('--mode', type=str, default=None,
                        help='YAML file of transit mode options')
    parser.add_argument('--max-g', type=float, default=None,
                        help='Peak acceleration (g)')
    parser.add_argument('--accel-ratio', type=float, default=None,
                        help='Fraction of flight time spent accelerating')
    parser.add_argument('--brake-ratio', type=float, default=None,
                        help='Fraction of flight time spent braking')
    parser.add_argument('--no-assist', action='store_true',
                        help='Skip the gravity-assist search')
    parser.add_argument('--config', type=str, default=None,
                        help='Planner configuration overrides (YAML)')
    parser.add_argument('--csv', type=str, default=None,
                        help='Write the comparison table to this CSV file')
    parser.add_argument('--track', type=str, default=None,
                        help='Write a sampled track of the first visible plan to CSV')
    parser.add_argument('--track-step-hours', type=float, default=24.0,
                        help='Track sample step in hours (default: 24)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')
    return parser


def _track_for(system: System, plans: List, step_hours: float) -> pd.DataFrame:
    visible = [p for p in plans if not p.hidden_reason] or plans
    chosen = visible[0]
    ship = CelestialNode(id='cli-ship', name='Ship', kind='construct',
                         scheduled_journeys=[JourneyLog(id='cli-journey', plans=[chosen])])
    end_ms = chosen.start_time + chosen.total_time_days * SECONDS_PER_DAY * MS_PER_SECOND
    return journey_track(system, ship, chosen.start_time, end_ms, step_hours * 3600.0)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.  Returns the process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    try:
        start_ms = parse_start_time(args.start)
        config = load_config(args.config)
        system = load_system(args.system)
        mode = load_mode(args.mode, args)
        plans = plan(system, args.origin, args.target, start_ms, mode, config)
    except (TransitError, OSError, ValueError, yaml.YAMLError,
            argparse.ArgumentTypeError) as exc:
        logger.error("%s", exc)
        return 1

    print("=" * 70)
    print(f"  TRANSIT PLANS: {args.origin} -> {args.target}")
    print("=" * 70)
    if not plans:
        print("  No feasible plans")
        return 0

    table = plans_summary_table(plans)
    print(table.to_string(index=False))

    if args.csv:
        export_csv(table, args.csv)
    if args.track:
        export_csv(_track_for(system, plans, args.track_step_hours), args.track)
    return 0


if __name__ == '__main__':
    sys.exit(main())
