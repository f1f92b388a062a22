"""
===============================================================================
TRANSIT CORE - Planner Configuration
===============================================================================
Loads the solver knobs from ``transitcore/config/planner.yaml`` with
``yaml.safe_load``.  A user-supplied YAML file is deep-merged on top of the
packaged defaults, then frozen into a ``PlannerConfig`` tree of dataclasses
so solvers can read ``config.lambert.rtol`` and friends without dictionary
lookups.
===============================================================================
"""

import logging
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from transitcore.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config' / 'planner.yaml'


# =============================================================================
# SECTIONS
# =============================================================================

@dataclass(frozen=True)
class KeplerConfig:
    max_iterations: int = 10
    tolerance: float = 1e-7
    circular_threshold: float = 1e-6


@dataclass(frozen=True)
class LambertConfig:
    z_min: float = -10000.0
    z_max: float = 39.47841760435743
    max_iterations: int = 200
    rtol: float = 1e-4


@dataclass(frozen=True)
class FramesConfig:
    max_depth: int = 10


@dataclass(frozen=True)
class SearchConfig:
    bisection_iterations: int = 50
    window_samples: int = 12
    short_range_au: float = 0.1
    path_samples: int = 300
    direct_path_samples: int = 50
    min_max_g: float = 0.1
    min_accel_ratio: float = 0.01
    direct_iterations: int = 10
    direct_ratio_cap: float = 0.98
    substeps: Tuple[Tuple[float, int], ...] = ((0.3, 100), (0.8, 10))

    def substeps_for(self, r_au: float) -> int:
        """RK4 sub-steps per path sample at heliocentric distance ``r_au``."""
        for limit, steps in self.substeps:
            if r_au < limit:
                return int(steps)
        return 1


@dataclass(frozen=True)
class VariantWindow:
    window: Tuple[float, float]
    accel_ratio: Optional[float] = None


@dataclass(frozen=True)
class VariantsConfig:
    efficiency: VariantWindow = VariantWindow((0.8, 1.5), 0.05)
    balanced: VariantWindow = VariantWindow((0.5, 1.2))


@dataclass(frozen=True)
class DepartureScanConfig:
    step_days: float = 10.0
    max_days: float = 1000.0
    refine_days: float = 10.0


@dataclass(frozen=True)
class TagConfig:
    sundiver_periapsis_au: float = 0.05
    hohmann_tolerance: float = 0.15
    hohmann_max_accel_ratio: float = 0.2
    high_g: float = 2.0
    torchship_accel_ratio: float = 0.1
    torchship_periapsis_au: float = 0.3


@dataclass(frozen=True)
class PracticalityConfig:
    max_delta_v_ms: float = 100000.0
    max_duration_factor: float = 5.0
    duplicate_tolerance_days: float = 0.1


@dataclass(frozen=True)
class AssistConfig:
    min_mass_kg: float = 3e23
    max_candidates: int = 3
    grid_size: int = 8
    window_fraction: float = 0.3
    max_speed_mismatch: float = 0.2
    periapsis_margin_m: float = 200000.0
    out_of_range_penalty: float = 5.0
    flyby_half_window_days: float = 2.0
    flyby_samples: int = 20
    max_leg_samples: int = 2000
    min_leg_samples: int = 100


@dataclass(frozen=True)
class FuelConfig:
    fallback_fraction: float = 0.01
    max_brake_factor: float = 10.0


@dataclass(frozen=True)
class LagrangeConfig:
    l4_offset_deg: float = 60.0
    l5_offset_deg: float = -60.0


@dataclass(frozen=True)
class PlannerConfig:
    """Immutable bundle of every solver setting."""
    kepler: KeplerConfig = KeplerConfig()
    lambert: LambertConfig = LambertConfig()
    frames: FramesConfig = FramesConfig()
    search: SearchConfig = SearchConfig()
    variants: VariantsConfig = VariantsConfig()
    departure_scan: DepartureScanConfig = DepartureScanConfig()
    tags: TagConfig = TagConfig()
    practicality: PracticalityConfig = PracticalityConfig()
    assist: AssistConfig = AssistConfig()
    fuel: FuelConfig = FuelConfig()
    lagrange: LagrangeConfig = LagrangeConfig()


_SECTIONS = {
    'kepler': KeplerConfig,
    'lambert': LambertConfig,
    'frames': FramesConfig,
    'search': SearchConfig,
    'departure_scan': DepartureScanConfig,
    'tags': TagConfig,
    'practicality': PracticalityConfig,
    'assist': AssistConfig,
    'fuel': FuelConfig,
    'lagrange': LagrangeConfig,
}


# =============================================================================
# LOADING
# =============================================================================

def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root in {path} must be a mapping")
    return data


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _build_section(name: str, cls, values: Dict[str, Any]):
    if not isinstance(values, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown keys in section '{name}': {sorted(unknown)}")
    kwargs = {}
    types = {f.name: f.type for f in fields(cls)}
    for key, value in values.items():
        try:
            if key == 'substeps':
                kwargs[key] = tuple((float(lim), int(n)) for lim, n in value)
            elif types[key] is int:
                if isinstance(value, float) and not value.is_integer():
                    raise ValueError(f"expected an integer, got {value}")
                kwargs[key] = int(value)
            elif types[key] is float:
                kwargs[key] = float(value)
            else:
                kwargs[key] = value
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {name}.{key}: {value!r} ({exc})") from exc
    return cls(**kwargs)


def _build_variants(values: Dict[str, Any]) -> VariantsConfig:
    out = {}
    for key in ('efficiency', 'balanced'):
        entry = values.get(key, {})
        window = entry.get('window')
        if window is None or len(window) != 2 or float(window[0]) >= float(window[1]):
            raise ConfigError(f"variants.{key}.window must be [low, high] with low < high")
        ratio = entry.get('accel_ratio')
        out[key] = VariantWindow((float(window[0]), float(window[1])),
                                 float(ratio) if ratio is not None else None)
    return VariantsConfig(**out)


def build_config(data: Dict[str, Any]) -> PlannerConfig:
    """Freeze a merged configuration mapping into a PlannerConfig."""
    unknown = set(data) - set(_SECTIONS) - {'variants'}
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {sorted(unknown)}")
    kwargs = {name: _build_section(name, cls, data[name])
              for name, cls in _SECTIONS.items() if name in data}
    if 'variants' in data:
        kwargs['variants'] = _build_variants(data['variants'])
    return PlannerConfig(**kwargs)


def load_config(path: Optional[str] = None) -> PlannerConfig:
    """
    Load the planner configuration.

    Args:
        path: Optional user YAML file whose keys override the packaged
            defaults.  ``None`` returns the packaged defaults.

    Returns:
        PlannerConfig

    Raises:
        ConfigError: unreadable file, malformed YAML or unknown keys.
    """
    data = _read_yaml(DEFAULT_CONFIG_PATH)
    if path is not None:
        logger.info("Loading planner configuration overrides from: %s", path)
        data = deep_merge(data, _read_yaml(Path(path)))
    return build_config(data)


@lru_cache(maxsize=1)
def default_config() -> PlannerConfig:
    """Packaged defaults, parsed once."""
    return load_config()
