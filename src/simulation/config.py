"""
===============================================================================
TOPOLOGY ANALYSIS - Analysis Configuration
===============================================================================
Run parameters of a connectivity analysis, loaded from YAML.

Example (config/analysis_config.yaml):

    analysis:
      mode: progressive            # or 'overall'
      transmission_ranges: [50.0, 100.0, 250.0]
      metrics: [nodedeg, part, partdeg, mincut, stability]
      intervals:                   # minimum time between samples
        mincut: 10.0
      bidirectional: true
      calculate_mobility: true     # overall mode, first range only
      workers: 1
      output_basename: output/scenario
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from core.constants import ALL_METRICS, METRIC_UNIDIRECTIONAL, metric_suffix

logger = logging.getLogger(__name__)

MODE_PROGRESSIVE = 'progressive'
MODE_OVERALL = 'overall'


@dataclass
class AnalysisConfig:
    """
    Parameters of one analysis run.

    Attributes
    ----------
    transmission_ranges : list of float
        Ranges swept independently, in order.
    mode : str
        ``progressive`` (metric time series) or ``overall`` (run averages).
    metrics : list of str
        Metrics sampled in progressive mode.
    intervals : dict
        Minimum sampling interval per metric; missing metrics use 0.
    bidirectional : bool
        Mirror link toggles; ``False`` solves ordered pairs and enables
        unidirectional analysis (progressive mode only).
    calculate_mobility : bool
        Compute the relative mobility scalar (overall mode).
    workers : int
        Worker processes for the scheduling phase.
    node_ranges : list of float, optional
        Per-node transmission ranges for directed (unidirectional) analysis.
    output_basename : str, optional
        Base path for written series / summary files.
    """
    transmission_ranges: List[float]
    mode: str = MODE_PROGRESSIVE
    metrics: List[str] = field(
        default_factory=lambda: [m for m in ALL_METRICS if m != METRIC_UNIDIRECTIONAL]
    )
    intervals: Dict[str, float] = field(default_factory=dict)
    bidirectional: bool = True
    calculate_mobility: bool = True
    workers: int = 1
    node_ranges: Optional[List[float]] = None
    output_basename: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check the parameters for consistency.

        Raises
        ------
        ValueError
            On an unknown mode or metric, a non-positive range or worker
            count, a negative interval, or directed (bidirectional: false)
            analysis in overall mode or per-node ranges without it.
        """
        if self.mode not in (MODE_PROGRESSIVE, MODE_OVERALL):
            raise ValueError(
                f"Unknown mode: {self.mode}. Valid: {[MODE_PROGRESSIVE, MODE_OVERALL]}"
            )
        if not self.transmission_ranges and self.node_ranges is None:
            raise ValueError("At least one transmission range is required.")
        for r in self.transmission_ranges:
            if r <= 0.0:
                raise ValueError(f"Transmission range must be positive, got {r}")
        self.metrics = [metric_suffix(m) for m in self.metrics]
        for name, interval in self.intervals.items():
            metric_suffix(name)
            if interval < 0.0:
                raise ValueError(f"Sampling interval of '{name}' must be >= 0, got {interval}")
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if not self.bidirectional and self.mode != MODE_PROGRESSIVE:
            raise ValueError("Directed analysis (bidirectional: false) requires progressive mode")
        if self.node_ranges is not None:
            if self.bidirectional:
                raise ValueError("Per-node ranges require bidirectional: false")
            if any(r <= 0.0 for r in self.node_ranges):
                raise ValueError("Per-node ranges must be positive.")
        if METRIC_UNIDIRECTIONAL in self.metrics and self.bidirectional:
            logger.warning("Metric 'uni' has no effect in bidirectional analysis")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Build from a mapping; an ``analysis`` section is unwrapped."""
        if 'analysis' in data:
            data = data['analysis']
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")
        # null entries fall back to the defaults
        params = {k: v for k, v in data.items() if v is not None}
        if 'transmission_ranges' in params:
            params['transmission_ranges'] = [float(r) for r in params['transmission_ranges']]
        else:
            params['transmission_ranges'] = []
        if params.get('intervals') is None:
            params['intervals'] = {}
        params['intervals'] = {k: float(v) for k, v in params['intervals'].items()}
        if params.get('node_ranges') is not None:
            params['node_ranges'] = [float(r) for r in params['node_ranges']]
        return cls(**params)


def load_config(config_path: str) -> AnalysisConfig:
    """
    Load the analysis configuration from a YAML file.

    Args:
        config_path: Path to the YAML file

    Returns:
        Validated AnalysisConfig
    """
    path = Path(config_path)
    logger.info("Loading configuration from: %s", path)
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    config = AnalysisConfig.from_dict(data)
    logger.info(
        "Mode: %s, ranges: %s", config.mode,
        config.transmission_ranges or "per-node",
    )
    return config
