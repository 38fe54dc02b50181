"""
===============================================================================
TOPOLOGY ANALYSIS - Link Event Scheduler
===============================================================================
Runs the pairwise contact solver for every node pair and merges all link
status changes into one time-ordered EventHeap.

Every pair is independent of every other pair, so the solving phase is
embarrassingly parallel.  With ``workers > 1`` the pairs are solved in a
multiprocessing.Pool; each worker returns plain event-time lists and its
own RunContext, and the results are merged into the heap sequentially in
pair order so the heap contents do not depend on the worker count.

Event list of one pair
----------------------
The solver yields alternating up/down times starting with up.  When the
pair is still connected at the end of the window an explicit down event at
``duration`` closes the link, so every pair contributes an even number of
events.  Zero-length contacts (two consecutive events at the same instant)
cancel out before insertion; a pair's events therefore always lie at
distinct times and their heap order is unambiguous.
===============================================================================
"""

import logging
from multiprocessing import Pool
from typing import Iterator, List, Optional, Sequence, Tuple

from contact.pair_solver import BlockedPredicate, solve_pair
from core.data_structures import EventHeap, LinkEvent
from core.exceptions import InvariantViolation
from core.run_context import RunContext
from core.trajectory import Trajectory

logger = logging.getLogger(__name__)

# (pair, event times, mobility, worker context)
PairOutcome = Tuple[Tuple[int, int], List[float], float, RunContext]


def collapse_zero_length(times: Sequence[float]) -> List[float]:
    """
    Drop consecutive equal instants in pairs.

    Two equal consecutive entries of an alternating up/down list describe a
    contact (or a gap) of zero length; removing both keeps the alternation
    and the parity intact.
    """
    out: List[float] = []
    for t in times:
        if out and out[-1] == t:
            out.pop()
        else:
            out.append(t)
    return out


def pair_event_times(result, duration: float) -> List[float]:
    """Solver result as a closed, alternating list of event times."""
    times = result.event_times()
    if len(times) % 2 == 1:
        times.append(duration)
    return collapse_zero_length(times)


def _iter_pairs(n: int, directed: bool) -> Iterator[Tuple[int, int]]:
    for i in range(n):
        for j in range(n):
            if i == j or (not directed and j < i):
                continue
            yield (i, j)


def _solve_task(args) -> PairOutcome:
    """
    Solve one node pair.

    Top-level function so multiprocessing.Pool can pickle it.
    """
    pair, a, b, duration, tx_range, blocked, calculate_mobility = args
    ctx = RunContext()
    try:
        result = solve_pair(
            a, b, 0.0, duration, tx_range,
            blocked=blocked,
            calculate_mobility=calculate_mobility,
            context=ctx,
            pair=pair,
        )
    except InvariantViolation as exc:
        ctx.abandon(pair, exc.time if exc.time is not None else 0.0, str(exc))
        return pair, [], 0.0, ctx
    return pair, pair_event_times(result, duration), result.mobility, ctx


def schedule(
    trajectories: Sequence[Trajectory],
    duration: float,
    tx_range: float,
    heap: EventHeap,
    context: Optional[RunContext] = None,
    blocked: Optional[BlockedPredicate] = None,
    calculate_mobility: bool = False,
    workers: int = 1,
    node_ranges: Optional[Sequence[float]] = None,
) -> float:
    """
    Put the link status changes of all node pairs into ``heap``.

    Parameters
    ----------
    trajectories : sequence of Trajectory
        One trajectory per node.
    duration : float
        Scenario duration; the analysis window is ``[0, duration]``.
    tx_range : float
        Transmission range shared by all nodes.
    heap : EventHeap
        Min-oriented heap receiving ``LinkEvent`` items keyed by time.
    context : RunContext, optional
        Receives counters and diagnostics.
    blocked : callable, optional
        Obstruction predicate handed to the solver.
    calculate_mobility : bool
        Sum the pairs' relative mobility scalars.
    workers : int
        Number of worker processes; 1 solves in-process.
    node_ranges : sequence of float, optional
        Per-node transmission ranges.  When given, every ordered pair
        (i, j) is solved with node i's range and yields directed events
        i -> j; ``tx_range`` is ignored.

    Returns
    -------
    float
        Sum of the pairs' mobility scalars (0 unless requested).
    """
    if context is None:
        context = RunContext()
    if not heap.minimum:
        raise ValueError("schedule() needs a min-oriented EventHeap")
    n = len(trajectories)
    directed = node_ranges is not None
    if directed and len(node_ranges) != n:
        raise ValueError(f"Expected {n} node ranges, got {len(node_ranges)}")

    tasks = [
        (
            (i, j), trajectories[i], trajectories[j], duration,
            float(node_ranges[i]) if directed else tx_range,
            blocked, calculate_mobility,
        )
        for i, j in _iter_pairs(n, directed)
    ]
    logger.info(
        "Scheduling %d %s pairs (range %s, workers %d)",
        len(tasks), "ordered" if directed else "unordered",
        "per-node" if directed else f"{tx_range:.3f}", workers,
    )

    if workers > 1 and len(tasks) > 1:
        chunksize = max(1, len(tasks) // (workers * 4))
        with Pool(processes=workers) as pool:
            outcomes = pool.map(_solve_task, tasks, chunksize=chunksize)
    else:
        outcomes = map(_solve_task, tasks)

    mobility = 0.0
    for pair, times, pair_mobility, pair_ctx in outcomes:
        context.merge(pair_ctx)
        if calculate_mobility:
            mobility += pair_mobility
        up = True
        for t in times:
            heap.add(LinkEvent(pair[0], pair[1], up), t)
            up = not up
        context.events_scheduled += len(times)

    logger.debug("Scheduled %d events, heap size %d", context.events_scheduled, heap.size())
    return mobility
