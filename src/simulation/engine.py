"""
===============================================================================
TOPOLOGY ANALYSIS - Analysis Engine
===============================================================================
Central orchestrator of a connectivity analysis.  Sweeps the configured
transmission ranges; each range is an independent two-phase pass:

    1. SCHEDULE   -- solve every node pair and fill a fresh EventHeap with
                     the pairs' link status changes (parallel if requested).
    2. AGGREGATE  -- drain the heap through the progressive or the overall
                     aggregator, on a fresh adjacency state.

Every pass gets its own RunContext, returned with its result.
===============================================================================
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from contact.obstruction import BuildingObstruction
from core.data_structures import EventHeap
from core.run_context import RunContext
from core.scenario import Scenario
from simulation.config import MODE_OVERALL, AnalysisConfig
from simulation.output import write_results
from simulation.scheduler import schedule
from topology.aggregator import (
    OverallSummary,
    ProgressiveResult,
    overall,
    progressive,
    summaries_to_dataframe,
)

logger = logging.getLogger(__name__)

RangeResult = Union[ProgressiveResult, OverallSummary]


def normalize_mobility(total: float, node_count: int, duration: float) -> float:
    """Mobility sum divided by ``N (N - 1) / 2 * duration``; 0 when undefined."""
    denom = node_count * (node_count - 1) / 2.0 * duration
    if denom <= 0.0:
        return 0.0
    return total / denom


class AnalysisEngine:
    """
    Runs the configured analysis over one scenario.

    Parameters
    ----------
    scenario : Scenario
        Node trajectories, duration and obstruction regions.
    config : AnalysisConfig
        Ranges, mode, metrics and worker settings.

    Attributes
    ----------
    results : list
        One ProgressiveResult or OverallSummary per pass, in sweep order.
    """

    def __init__(self, scenario: Scenario, config: AnalysisConfig) -> None:
        self.scenario = scenario
        self.config = config
        self.results: List[RangeResult] = []
        self._blocked = BuildingObstruction(scenario.buildings) if scenario.buildings else None
        logger.info(
            "AnalysisEngine created.  %d nodes, duration %.3f, %d obstruction regions",
            scenario.node_count, scenario.duration, len(scenario.buildings),
        )

    def run_range(self, tx_range: float, calculate_mobility: bool = False) -> RangeResult:
        """
        Schedule and aggregate one transmission range.

        Parameters
        ----------
        tx_range : float
            Transmission range shared by all nodes.
        calculate_mobility : bool
            Attach the normalized mobility scalar (overall mode only).
        """
        cfg = self.config
        n = self.scenario.node_count
        duration = self.scenario.duration
        heap = EventHeap(minimum=True)
        context = RunContext()

        # directed analysis solves every ordered pair with the shared range
        mobility = schedule(
            self.scenario.trajectories, duration, tx_range, heap,
            context=context,
            blocked=self._blocked,
            calculate_mobility=calculate_mobility,
            workers=cfg.workers,
            node_ranges=None if cfg.bidirectional else [tx_range] * n,
        )

        if cfg.mode == MODE_OVERALL:
            return overall(
                heap, n, duration,
                tx_range=tx_range,
                context=context,
                mobility=normalize_mobility(mobility, n, duration) if calculate_mobility else None,
            )
        return progressive(
            heap, n,
            tx_range=tx_range,
            metrics=cfg.metrics,
            intervals=cfg.intervals,
            bidirectional=cfg.bidirectional,
            context=context,
        )

    def run_node_ranges(self) -> ProgressiveResult:
        """Directed progressive pass with per-node transmission ranges."""
        cfg = self.config
        heap = EventHeap(minimum=True)
        context = RunContext()
        schedule(
            self.scenario.trajectories, self.scenario.duration, 0.0, heap,
            context=context,
            blocked=self._blocked,
            workers=cfg.workers,
            node_ranges=cfg.node_ranges,
        )
        return progressive(
            heap, self.scenario.node_count,
            metrics=cfg.metrics,
            intervals=cfg.intervals,
            bidirectional=False,
            context=context,
        )

    def run(self) -> List[RangeResult]:
        """
        Execute every configured pass.

        Returns
        -------
        list
            ProgressiveResult or OverallSummary per pass.
        """
        cfg = self.config
        wall_start = time.time()
        self.results = []

        if cfg.node_ranges is not None:
            self.results.append(self.run_node_ranges())
        else:
            for idx, tx_range in enumerate(cfg.transmission_ranges):
                want_mobility = (
                    cfg.mode == MODE_OVERALL and cfg.calculate_mobility and idx == 0
                )
                logger.info("Range %d/%d: %.3f", idx + 1, len(cfg.transmission_ranges), tx_range)
                self.results.append(self.run_range(tx_range, calculate_mobility=want_mobility))

        logger.info(
            "Analysis complete.  %d passes in %.2f s wall time",
            len(self.results), time.time() - wall_start,
        )
        return self.results

    def get_summary(self) -> pd.DataFrame:
        """Overall-mode summaries as a DataFrame (empty in progressive mode)."""
        summaries = [r for r in self.results if isinstance(r, OverallSummary)]
        return summaries_to_dataframe(summaries)

    def get_diagnostics(self) -> pd.DataFrame:
        """Run-context counters of every pass, one row per pass."""
        rows: List[Dict[str, Any]] = []
        for r in self.results:
            row: Dict[str, Any] = {'range': r.tx_range}
            row.update(r.context.summary())
            rows.append(row)
        return pd.DataFrame(rows)

    def __repr__(self) -> str:
        return (
            f"AnalysisEngine(nodes={self.scenario.node_count}, "
            f"mode={self.config.mode}, passes={len(self.results)})"
        )


def run_analysis(scenario: Scenario, config: AnalysisConfig,
                 output_basename: Optional[str] = None) -> List[RangeResult]:
    """
    Run the analysis and, when a basename is given, write the result files.
    """
    engine = AnalysisEngine(scenario, config)
    results = engine.run()
    basename = output_basename or config.output_basename
    if basename:
        write_results(results, basename)
    return results
