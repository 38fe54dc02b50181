"""
===============================================================================
TOPOLOGY ANALYSIS - Topology Aggregators
===============================================================================
Drain a scheduled link-event heap in time order and turn the stream of
pairwise link status changes into global topology metrics.

Two consumption modes over the same event stream:

    progressive -- maintains the explicit adjacency state and samples the
                   selected metrics whenever simulated time advances past
                   a metric's deadline.  Each metric series stores a sample
                   only when the value changes.

    overall     -- duration-weighted averages over the whole run: average
                   degree, partitions, partition degree, link-break
                   duration statistics and link counts.  Partitions are
                   merged incrementally on connect and rebuilt from the
                   active links after a disconnect.

Both loops are strictly sequential: one mutator, non-decreasing event
time.  Stopper sentinels are skipped.  A transition into the state a pair
is already in is an invariant violation; the pair is abandoned for the
rest of the pass and the run continues.
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components

from core.constants import (
    ALL_METRICS,
    METRIC_MIN_CUT,
    METRIC_NODE_DEGREE,
    METRIC_PARTITION_DEGREE,
    METRIC_PARTITIONS,
    METRIC_STABILITY,
    METRIC_UNIDIRECTIONAL,
    OVERALL_COLUMNS,
    metric_suffix,
)
from core.data_structures import DisjointSet, EventHeap, LinkEvent
from core.exceptions import InvariantViolation
from core.run_context import RunContext
from topology.graph import TopologyGraph
from topology.metrics import MetricSeries, SamplingDeadline

logger = logging.getLogger(__name__)

UNIDIRECTIONAL_SERIES = ('unicnt', 'unisrc', 'unidst')


# =============================================================================
# RESULTS
# =============================================================================

@dataclass
class ProgressiveResult:
    """Metric series of one progressive pass over one transmission range."""
    tx_range: float
    series: Dict[str, MetricSeries]
    context: RunContext
    final_time: float = 0.0

    def __getitem__(self, name: str) -> MetricSeries:
        return self.series[name]

    def frames(self) -> Dict[str, pd.DataFrame]:
        """One ``time``/``value`` DataFrame per series."""
        return {name: s.to_dataframe() for name, s in self.series.items()}


@dataclass
class OverallSummary:
    """Run-averaged statistics of one transmission range."""
    tx_range: float
    avg_degree: float
    avg_partitions: float
    avg_partition_degree: float
    break_duration_mean: float
    break_duration_var: float
    break_count: int
    avg_link_duration: float
    total_links: int
    mobility: Optional[float] = None
    context: RunContext = field(default_factory=RunContext, repr=False)

    def as_row(self) -> Tuple:
        """Values in the column order of the summary file."""
        return (
            self.tx_range,
            self.avg_degree,
            self.avg_partitions,
            self.avg_partition_degree,
            self.break_duration_mean,
            self.break_duration_var,
            self.break_count,
            self.avg_link_duration,
            self.total_links,
        )


def summaries_to_dataframe(summaries: Iterable[OverallSummary]) -> pd.DataFrame:
    """Stack summary rows into a DataFrame with the summary file's columns."""
    return pd.DataFrame([s.as_row() for s in summaries], columns=list(OVERALL_COLUMNS))


# =============================================================================
# PROGRESSIVE MODE
# =============================================================================

def _apply_event(topo: TopologyGraph, event: LinkEvent, mirror: bool) -> None:
    """Apply one link event; raises InvariantViolation on a repeated state."""
    present = topo.has_edge(event.src, event.dst)
    if event.up == present:
        raise InvariantViolation(
            f"link {'up' if event.up else 'down'} applied to a link already "
            f"{'up' if present else 'down'}",
            event.pair,
        )
    topo.set_edge(event.src, event.dst, event.up, mirror=mirror)


class _ProgressiveSampler:
    """Deadlines, caches and series of the selected metrics."""

    def __init__(self, metrics, intervals, bidirectional: bool) -> None:
        intervals = intervals or {}
        self.bidirectional = bidirectional
        self.metrics: List[str] = []
        for name in metrics:
            key = metric_suffix(name)
            if key == METRIC_UNIDIRECTIONAL and bidirectional:
                logger.debug("Unidirectional metric ignored in bidirectional analysis")
                continue
            if key not in self.metrics:
                self.metrics.append(key)

        self.deadlines = {
            key: SamplingDeadline(interval=float(intervals.get(key, 0.0)))
            for key in self.metrics
        }
        self.series: Dict[str, MetricSeries] = {}
        for key in self.metrics:
            if key == METRIC_UNIDIRECTIONAL:
                for sub in UNIDIRECTIONAL_SERIES:
                    self.series[sub] = MetricSeries(sub)
            else:
                self.series[key] = MetricSeries(key)

    def _compute(self, key: str, graph: TopologyGraph, counts: Optional[Dict[str, int]]):
        if key == METRIC_NODE_DEGREE:
            return graph.average_degree()
        if key == METRIC_PARTITIONS:
            return graph.partitions()
        if key == METRIC_PARTITION_DEGREE:
            return graph.partition_degree()
        if key == METRIC_MIN_CUT:
            return graph.min_cut()
        if key == METRIC_STABILITY:
            return graph.stability()
        return counts

    def sample(self, time: float, topo: TopologyGraph) -> None:
        view = None
        for key in self.metrics:
            deadline = self.deadlines[key]
            if not deadline.due(time):
                continue
            if deadline.stale(topo.version):
                if view is None:
                    view = (topo, None) if self.bidirectional else topo.without_unidirectional()
                deadline.cached = self._compute(key, view[0], view[1])
                deadline.version = topo.version
            if key == METRIC_UNIDIRECTIONAL:
                for sub in UNIDIRECTIONAL_SERIES:
                    self.series[sub].record(time, deadline.cached[sub])
            else:
                self.series[key].record(time, deadline.cached)


def progressive(
    heap: EventHeap,
    node_count: int,
    tx_range: float = 0.0,
    metrics: Iterable[str] = ALL_METRICS,
    intervals: Optional[Dict[str, float]] = None,
    bidirectional: bool = True,
    context: Optional[RunContext] = None,
) -> ProgressiveResult:
    """
    Drain ``heap`` and record the evolution of the selected metrics.

    Before an event whose time lies strictly after the current time is
    applied, every selected metric whose deadline has passed is sampled at
    the current time.  No sample is taken after the last event.

    Parameters
    ----------
    heap : EventHeap
        Min-heap of LinkEvent keyed by time; emptied by this call.
    node_count : int
        Number of nodes.
    tx_range : float
        Transmission range the events were scheduled for (labels only).
    metrics : iterable of str
        Metric identifiers from ``core.constants.ALL_METRICS``.
    intervals : dict, optional
        Minimum time between samples per metric; 0 (default) samples at
        every time advance.
    bidirectional : bool
        Mirror every toggle.  When ``False`` the edge set is directed and
        one-directional links are removed before the other metrics are
        computed.
    context : RunContext, optional
        Receives counters and diagnostics.

    Returns
    -------
    ProgressiveResult
    """
    if context is None:
        context = RunContext()
    topo = TopologyGraph(node_count)
    sampler = _ProgressiveSampler(metrics, intervals, bidirectional)

    time = 0.0
    total = heap.size()
    logger.info("Progressive pass over %d events (range %.3f)", total, tx_range)
    while heap:
        ntime = heap.top_level()
        if ntime > time:
            sampler.sample(time, topo)
        time = ntime
        event = heap.delete_top()

        if event.is_sentinel:
            context.sentinels_skipped += 1
            continue
        if event.pair in context.abandoned_pairs:
            continue
        try:
            _apply_event(topo, event, mirror=bidirectional)
        except InvariantViolation as exc:
            context.abandon(event.pair, time, str(exc))
            if topo.has_edge(event.src, event.dst):
                topo.set_edge(event.src, event.dst, False, mirror=bidirectional)
            continue
        context.events_applied += 1

    logger.debug("Progressive pass finished at t=%.3f: %s", time, context.summary())
    return ProgressiveResult(
        tx_range=tx_range, series=sampler.series, context=context, final_time=time
    )


# =============================================================================
# OVERALL MODE
# =============================================================================

def _rebuild_partitions(link_up: np.ndarray) -> DisjointSet:
    """Partition structure recomputed from the currently active links."""
    active = csr_matrix(link_up >= 0.0)
    _, labels = connected_components(active, directed=False)
    return DisjointSet.from_labels(labels)


def overall(
    heap: EventHeap,
    node_count: int,
    duration: float,
    tx_range: float = 0.0,
    context: Optional[RunContext] = None,
    mobility: Optional[float] = None,
) -> OverallSummary:
    """
    Drain ``heap`` and compute run-averaged statistics.

    The event stream must be undirected (one event per link change).

    Parameters
    ----------
    heap : EventHeap
        Min-heap of LinkEvent keyed by time; emptied by this call.
    node_count : int
        Number of nodes.
    duration : float
        Scenario duration; averages are taken over ``[0, duration]``.
    tx_range : float
        Transmission range the events were scheduled for.
    context : RunContext, optional
        Receives counters and diagnostics.
    mobility : float, optional
        Normalized mobility scalar to attach to the summary.

    Returns
    -------
    OverallSummary
    """
    if context is None:
        context = RunContext()
    n = node_count

    # time each link came up, -1 while it is down; upper triangle only
    link_up = np.full((n, n), -1.0)
    partitions_ds = DisjointSet(n)
    partitions = n
    partition_degree = n * (n - 1)

    area_partitions = 0.0
    area_partition_degree = 0.0
    link_duration = 0.0
    links = 0
    break_durations: List[float] = []

    t_old = 0.0
    logger.info("Overall pass over %d events (range %.3f)", heap.size(), tx_range)
    while heap:
        t_new = heap.top_level()
        event = heap.delete_top()
        if t_new > t_old:
            area_partitions += partitions * (t_new - t_old)
            area_partition_degree += partition_degree * (t_new - t_old)
            t_old = t_new

        if event.is_sentinel:
            context.sentinels_skipped += 1
            continue
        i, j = min(event.pair), max(event.pair)
        if (i, j) in context.abandoned_pairs or event.pair in context.abandoned_pairs:
            continue

        t_up = link_up[i, j]
        try:
            if event.up:
                if t_up >= 0.0:
                    raise InvariantViolation(
                        f"link up applied to a link up since t={t_up}", (i, j), t_new
                    )
                link_up[i, j] = t_new
                partitions_ds.union(i, j)
            else:
                if t_up < 0.0:
                    raise InvariantViolation("link down applied to a link already down", (i, j), t_new)
                link_up[i, j] = -1.0
                t_conn = t_new - t_up
                link_duration += t_conn
                links += 1
                if t_new < duration:
                    if t_up > 0.0:
                        # links cut by the window boundaries are not breaks
                        break_durations.append(t_conn)
                    partitions_ds = _rebuild_partitions(link_up)
        except InvariantViolation as exc:
            context.abandon((i, j), t_new, str(exc))
            if link_up[i, j] >= 0.0:
                link_up[i, j] = -1.0
                partitions_ds = _rebuild_partitions(link_up)
                partitions = partitions_ds.count
                partition_degree = partitions_ds.partition_degree()
            continue
        context.events_applied += 1

        partitions = partitions_ds.count
        partition_degree = partitions_ds.partition_degree()

    if t_old < duration:
        area_partitions += partitions * (duration - t_old)
        area_partition_degree += partition_degree * (duration - t_old)

    breaks = np.asarray(break_durations, dtype=np.float64)
    break_mean = float(np.mean(breaks)) if len(breaks) > 0 else float('nan')
    break_var = float(np.var(breaks, ddof=1)) if len(breaks) > 1 else float('nan')
    valid = duration > 0.0 and n > 1

    summary = OverallSummary(
        tx_range=tx_range,
        avg_degree=2.0 * link_duration / (duration * n) if valid else float('nan'),
        avg_partitions=area_partitions / duration if duration > 0.0 else float('nan'),
        avg_partition_degree=(
            area_partition_degree / (duration * n * (n - 1)) if valid else float('nan')
        ),
        break_duration_mean=break_mean,
        break_duration_var=break_var,
        break_count=len(breaks),
        avg_link_duration=link_duration / links if links > 0 else float('nan'),
        total_links=links,
        mobility=mobility,
        context=context,
    )
    logger.info(
        "Range %.3f: avg degree %.4f, partitions %.4f, %d link breaks",
        tx_range, summary.avg_degree, summary.avg_partitions, summary.break_count,
    )
    return summary
