"""
===============================================================================
TOPOLOGY ANALYSIS - Pairwise Contact Solver
===============================================================================
Computes the exact instants at which two piecewise-linearly moving nodes
enter and leave each other's transmission range.

Between two consecutive breakpoints (the merged waypoint times of both
nodes) both nodes move affinely in time, so their relative position is

    rel(t) = (c1 t + c0,  d1 t + d0,  e1 t + e0)

and the squared separation |rel(t)|^2 is a quadratic in t.  Setting it
equal to r^2 and completing the square around the closest-approach time

    m = -(c0 c1 + d0 d1 + e0 e1) / (c1^2 + d1^2 + e1^2)

gives the roots m -/+ sqrt(m^2 - q) with

    q = (c0^2 + d0^2 + e0^2 - r^2) / (c1^2 + d1^2 + e1^2).

The smaller root is a candidate connect, the larger one a candidate
disconnect.  A candidate is accepted only if it falls inside the segment
and the obstruction predicate, evaluated at the segment's start
positions, does not block the link.

Segments with zero relative velocity or without real roots contribute no
transition.  After each segment the tracked state is compared with an
explicit distance test at the boundary; a disagreement (floating-point
drift) is corrected by a transition at the boundary and reported through
the run context.
===============================================================================
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from core.constants import LATE_TRANSITION_TOLERANCE, SHORT_CONTACT_HALF_WIDTH
from core.exceptions import InvariantViolation
from core.position import Position
from core.run_context import FP_CORRECTION, LATE_TRANSITION, SHORT_CONTACT, RunContext
from core.trajectory import Trajectory

logger = logging.getLogger(__name__)

BlockedPredicate = Callable[[Position, Position], bool]


@dataclass
class PairContactResult:
    """
    Link status changes of one node pair over an analysis window.

    Attributes
    ----------
    start, end : float
        The analysis window.
    mobility : float
        Accumulated relative mobility (0 unless requested).
    connected_at_start : bool
        Link state at ``start``.
    transitions : list of float
        Ordered connect/disconnect instants after ``start``, including
        boundary corrections.  Empty for a pair whose state never changes.
    connected_at_end : bool
        Link state at ``end``.  When ``True`` the caller closes the link
        with an explicit event at ``end``.
    """
    start: float
    end: float
    mobility: float = 0.0
    connected_at_start: bool = False
    transitions: List[float] = field(default_factory=list)
    connected_at_end: bool = False

    def event_times(self) -> List[float]:
        """Schedulable link events: ``start`` if initially connected, then
        every transition.  Consecutive entries alternate up/down, starting
        with up."""
        times = list(self.transitions)
        if self.connected_at_start:
            times.insert(0, self.start)
        return times

    def as_array(self) -> np.ndarray:
        """Element 0 is the mobility scalar, the rest the event times."""
        return np.array([self.mobility] + self.event_times(), dtype=np.float64)

    @property
    def permanently_connected(self) -> bool:
        return self.connected_at_start and not self.transitions


def _segment_mobility(
    a: Trajectory,
    b: Trajectory,
    t0: float,
    t1: float,
    m: float,
    d_old: float,
    d_new: float,
) -> float:
    """Approach-then-recede distance change across one segment."""
    if t0 < m < t1:
        # closing in until m, separating again afterwards
        d_int = a.position_at(m).distance(b.position_at(m))
        return abs(d_int - d_old) + abs(d_new - d_int)
    return abs(d_new - d_old)


def solve_pair(
    a: Trajectory,
    b: Trajectory,
    start: float,
    end: float,
    tx_range: float,
    blocked: Optional[BlockedPredicate] = None,
    calculate_mobility: bool = False,
    context: Optional[RunContext] = None,
    pair: Optional[Tuple[int, int]] = None,
) -> PairContactResult:
    """
    Solve the link status changes of two trajectories.

    Parameters
    ----------
    a, b : Trajectory
        Node trajectories.
    start, end : float
        Analysis window.
    tx_range : float
        Transmission range.
    blocked : callable, optional
        ``blocked(pos_a, pos_b)`` returns ``True`` when an obstruction
        prevents the link regardless of distance.
    calculate_mobility : bool
        Accumulate the relative mobility scalar.
    context : RunContext, optional
        Receives diagnostics; a throwaway context is used when omitted.
    pair : (int, int), optional
        Node indices, only used to label diagnostics.

    Returns
    -------
    PairContactResult

    Raises
    ------
    InvariantViolation
        If a root contradicts the tracked link state by more than the
        late-transition tolerance.
    """
    if context is None:
        context = RunContext()
    context.pairs_solved += 1

    r2 = tx_range * tx_range

    def linked(p: Position, q: Position) -> bool:
        return p.distance(q) <= tx_range and (blocked is None or not blocked(p, q))

    breakpoints = np.unique(np.concatenate((a.change_times(), b.change_times(), [end])))
    breakpoints = breakpoints[(breakpoints > start) & (breakpoints <= end)]

    o1 = a.position_at(start)
    o2 = b.position_at(start)
    connected = start < end and linked(o1, o2)
    result = PairContactResult(start=start, end=end, connected_at_start=connected)
    transitions = result.transitions
    mobility = 0.0

    t0 = start
    for t1 in breakpoints:
        t1 = float(t1)
        n1 = a.position_at(t1)
        n2 = b.position_at(t1)

        dt = t1 - t0
        dxo, dyo, dzo = o1.x - o2.x, o1.y - o2.y, o1.z - o2.z
        dxn, dyn, dzn = n1.x - n2.x, n1.y - n2.y, n1.z - n2.z
        c1 = (dxn - dxo) / dt
        c0 = (dxo * t1 - dxn * t0) / dt
        d1 = (dyn - dyo) / dt
        d0 = (dyo * t1 - dyn * t0) / dt
        e1 = (dzn - dzo) / dt
        e0 = (dzo * t1 - dzn * t0) / dt
        speed2 = c1 * c1 + d1 * d1 + e1 * e1

        if speed2 != 0.0:
            m = -(c0 * c1 + d0 * d1 + e0 * e1) / speed2

            if calculate_mobility:
                d_old = math.sqrt(dxo * dxo + dyo * dyo + dzo * dzo)
                d_new = math.sqrt(dxn * dxn + dyn * dyn + dzn * dzn)
                mobility += _segment_mobility(a, b, t0, t1, m, d_old, d_new)

            q = (c0 * c0 + d0 * d0 + e0 * e0 - r2) / speed2
            disc = m * m - q
            if disc > 0.0:
                half = math.sqrt(disc)
                t_in = m - half
                t_out = m + half
                # obstruction is judged at the segment's start positions
                open_los = blocked is None or not blocked(o1, o2)

                if t0 <= t_in <= t1 and open_los:
                    if half < SHORT_CONTACT_HALF_WIDTH:
                        context.record(
                            SHORT_CONTACT, t_in,
                            f"contact window of {2.0 * half:.6g} around t={m:.6g}; "
                            "check the range and trajectories",
                            pair,
                        )
                    if not connected:
                        transitions.append(t_in)
                        connected = True
                    elif t_in - t0 > LATE_TRANSITION_TOLERANCE:
                        raise InvariantViolation(
                            f"connect at t={t_in} while already connected since before t={t0}",
                            pair, t_in,
                        )
                    elif t_in > t0:
                        context.record(
                            LATE_TRANSITION, t_in, f"connect too late (t0={t0})", pair
                        )

                if t0 <= t_out <= t1 and open_los:
                    if connected:
                        transitions.append(t_out)
                        connected = False
                    elif t_out - t0 > LATE_TRANSITION_TOLERANCE:
                        raise InvariantViolation(
                            f"disconnect at t={t_out} while already disconnected since before t={t0}",
                            pair, t_out,
                        )
                    elif t_out > t0:
                        context.record(
                            LATE_TRANSITION, t_out, f"disconnect too late (t0={t0})", pair
                        )

        t0, o1, o2 = t1, n1, n2

        # floating-point drift check at the segment boundary
        conn_t1 = linked(n1, n2)
        if connected != conn_t1:
            transitions.append(t1)
            connected = conn_t1
            context.record(
                FP_CORRECTION, t1,
                f"{'connect' if conn_t1 else 'disconnect'} forced at segment boundary",
                pair,
            )

    result.mobility = mobility
    result.connected_at_end = connected
    return result
