"""
===============================================================================
TOPOLOGY ANALYSIS - Piecewise-Linear Node Trajectories
===============================================================================
A trajectory is the time-ordered list of waypoints of one mobile node.
Between two consecutive waypoints the node moves on a straight line at
constant speed, so the position at any time is a linear interpolation
between the bounding waypoints.  Outside the covered time span the node
rests at its first or last waypoint.

The array of waypoint times ("change times": the instants at which the
node changes speed or direction) is cached as a NumPy array.  It drives
both the binary search in ``position_at`` and the breakpoint merge in the
pairwise contact solver.
===============================================================================
"""

import logging
from typing import Iterator, List, NamedTuple, Optional

import numpy as np

from core.constants import EXTEND_TIME_OFFSET
from core.exceptions import DuplicateTimeConflict
from core.position import Position

logger = logging.getLogger(__name__)


class Waypoint(NamedTuple):
    """A node's position at a given time."""
    time: float
    pos: Position


class Trajectory:
    """
    Ordered waypoint list of a single mobile node.

    The trajectory owns its waypoints.  It is mutated by ``add`` (order
    preserving insertion), ``cut`` (restriction to a time window) and the
    convenience operations ``extend``, ``shift`` and ``remove_last``.
    Every mutation that changes waypoint times invalidates the cached
    change-time array.

    Parameters
    ----------
    waypoints : iterable of (time, Position), optional
        Initial waypoints, inserted one by one through ``add``.
    """

    def __init__(self, waypoints=None) -> None:
        self._waypoints: List[Waypoint] = []
        self._change_times: Optional[np.ndarray] = None
        if waypoints is not None:
            for time, pos in waypoints:
                self.add(time, pos)

    # =========================================================================
    # MUTATION
    # =========================================================================

    def add(self, time: float, pos: Position) -> None:
        """
        Insert a waypoint, keeping the list ordered by time.

        Insertion is optimised for waypoints arriving in increasing time
        order: the list is scanned from the end.

        Parameters
        ----------
        time : float
            Waypoint time.
        pos : Position
            Node position at ``time``.

        Raises
        ------
        DuplicateTimeConflict
            If a waypoint already exists at ``time`` with a different
            position.  The trajectory is left unchanged.
        """
        i = len(self._waypoints) - 1
        while i >= 0:
            w = self._waypoints[i]
            if time > w.time:
                break
            if time == w.time:
                if pos == w.pos:
                    return
                raise DuplicateTimeConflict(time, w.pos, pos)
            i -= 1
        if i < len(self._waypoints) - 1:
            logger.debug(
                "Inserting waypoint at t=%s before the last waypoint (t=%s)",
                time, self._waypoints[-1].time,
            )
        self._waypoints.insert(i + 1, Waypoint(float(time), pos))
        self._change_times = None

    def extend(self, other: 'Trajectory') -> None:
        """
        Append the waypoints of another trajectory after this one.

        The appended times are offset by this trajectory's last time plus a
        small gap, so the junction never holds two positions at one time.
        """
        offset = 0.0
        if self._waypoints:
            offset = self._waypoints[-1].time + EXTEND_TIME_OFFSET
        for w in other._waypoints:
            self._waypoints.append(Waypoint(w.time + offset, w.pos))
        self._change_times = None

    def shift(self, dx: float, dy: float) -> None:
        """Translate every waypoint by (dx, dy)."""
        # times are unchanged, so the cached change-time array stays valid
        self._waypoints = [
            Waypoint(w.time, w.pos.shifted(dx, dy)) for w in self._waypoints
        ]

    def remove_last(self) -> Waypoint:
        """Remove and return the latest waypoint."""
        w = self._waypoints.pop()
        self._change_times = None
        return w

    def cut(self, begin: float, end: float) -> None:
        """
        Restrict the trajectory to ``[begin, end]`` and rebase time to 0.

        Boundary waypoints are synthesised by interpolation when no waypoint
        lies exactly on a boundary and the interpolated position differs
        from the adjacent kept waypoint.
        """
        if not self._waypoints:
            return
        kept: List[Waypoint] = []
        last: Optional[Waypoint] = None
        for w in self._waypoints:
            if begin <= w.time <= end:
                if w.time > begin and not kept:
                    bpos = self.position_at(begin)
                    if bpos != w.pos:
                        kept.append(Waypoint(0.0, bpos))
                kept.append(Waypoint(w.time - begin, w.pos))
                last = w

        if last is None:
            # No waypoint inside the window: the node moves along one segment
            start = Waypoint(0.0, self.position_at(begin))
            stop = Waypoint(end - begin, self.position_at(end))
            kept.append(start)
            if start.pos != stop.pos:
                kept.append(stop)
        elif last.time < end:
            epos = self.position_at(end)
            if epos != last.pos:
                kept.append(Waypoint(end - begin, epos))

        self._waypoints = kept
        self._change_times = None

    # =========================================================================
    # QUERIES
    # =========================================================================

    def change_times(self) -> np.ndarray:
        """
        Sorted array of all waypoint times.

        The array is cached until the next mutation; callers must not
        modify it.
        """
        if self._change_times is None:
            self._change_times = np.fromiter(
                (w.time for w in self._waypoints),
                dtype=np.float64,
                count=len(self._waypoints),
            )
        return self._change_times

    def position_at(self, time: float) -> Position:
        """
        Position of the node at ``time``.

        Linear interpolation between the two bounding waypoints, clamped to
        the first / last waypoint outside the covered span.

        Raises
        ------
        ValueError
            If the trajectory has no waypoints.
        """
        if not self._waypoints:
            raise ValueError("Trajectory has no waypoints.")

        times = self.change_times()
        idx = int(np.searchsorted(times, time, side='left'))
        if idx == len(times):
            return self._waypoints[-1].pos

        w = self._waypoints[idx]
        if w.time == time or idx == 0:
            return w.pos

        prev = self._waypoints[idx - 1]
        if prev.pos == w.pos:
            return w.pos
        weight = (time - prev.time) / (w.time - prev.time)
        p1, p2 = prev.pos, w.pos
        return Position(
            p1.x * (1.0 - weight) + p2.x * weight,
            p1.y * (1.0 - weight) + p2.y * weight,
            p1.z * (1.0 - weight) + p2.z * weight,
        )

    @property
    def last(self) -> Waypoint:
        """The latest waypoint."""
        return self._waypoints[-1]

    @property
    def start_time(self) -> float:
        return self._waypoints[0].time

    @property
    def end_time(self) -> float:
        return self._waypoints[-1].time

    def __len__(self) -> int:
        return len(self._waypoints)

    def __getitem__(self, idx: int) -> Waypoint:
        return self._waypoints[idx]

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(self._waypoints)

    def __repr__(self) -> str:
        if not self._waypoints:
            return "Trajectory(empty)"
        return (
            f"Trajectory(waypoints={len(self._waypoints)}, "
            f"span=[{self.start_time}, {self.end_time}])"
        )
