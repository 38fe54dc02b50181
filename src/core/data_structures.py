"""
Custom data structures for the connectivity analysis.

This module provides the event and partition structures that the
scheduler and the topology aggregators share.  Every class documents its
time complexity, memory layout, and the role it plays in the analysis.

Structures
----------
LinkEvent   -- Link status change of one node pair (the heap payload).
EventHeap   -- Array-backed binary heap keyed by event time, min- or
               max-oriented.
DisjointSet -- Union-find over node indices for partition tracking.

All public methods carry type annotations and NumPy-style docstrings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Tuple

import numpy as np

from core.constants import STOPPER_INDEX


# ---------------------------------------------------------------------------
# 1. LinkEvent
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LinkEvent:
    """A link between two nodes going up or down.

    The event time is not stored here; it is the event's priority in the
    :class:`EventHeap`.

    Attributes
    ----------
    src : int
        Source node index.  Negative for a stopper sentinel.
    dst : int
        Destination node index.
    up : bool
        ``True`` for a connect, ``False`` for a disconnect.  Derived from
        toggle parity by the scheduler.
    """
    src: int
    dst: int
    up: bool = True

    @classmethod
    def stopper(cls) -> LinkEvent:
        """Structural end marker; aggregators skip it."""
        return cls(STOPPER_INDEX, STOPPER_INDEX, False)

    @property
    def is_sentinel(self) -> bool:
        return self.src < 0 or self.dst < 0

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.src, self.dst)


# ---------------------------------------------------------------------------
# 2. EventHeap
# ---------------------------------------------------------------------------

class EventHeap:
    """Binary heap storing items together with a floating-point priority.

    Why a heap for link events?
    ---------------------------
    Every node pair contributes its own, individually sorted list of link
    status changes.  The aggregators need one globally time-ordered stream.
    A heap merges all pairs' events while only ever keeping the next event
    at the root, so the drain loop retrieves the chronologically next
    change in O(1) and removes it in O(log n).

    Time complexity
    ---------------
    +-------------------+----------------+
    | Operation         | Worst-case     |
    +===================+================+
    | add               | O(log n)       |
    | delete_top        | O(log n)       |
    | remove_element_at | O(log n)       |
    | top_level         | O(1)           |
    | size              | O(1)           |
    +-------------------+----------------+

    Memory layout
    -------------
    A growable Python ``list`` of ``(priority, item)`` records laid out as
    an implicit binary tree: the children of position ``p`` sit at
    ``2(p+1)-1`` and ``2(p+1)``, its father at ``(p+1)//2 - 1``.

    Ordering
    --------
    ``minimum=True`` keeps the smallest priority at the root, ``False`` the
    largest.  Items of equal priority come out in no particular order; the
    sift operations do not preserve insertion order.
    """

    def __init__(self, minimum: bool = True) -> None:
        self._list: List[Tuple[float, Any]] = []
        self._minimum = minimum

    # -- index arithmetic --------------------------------------------------

    @staticmethod
    def father(p: int) -> int:
        return ((p + 1) // 2) - 1

    @staticmethod
    def left(p: int) -> int:
        return (2 * (p + 1)) - 1

    @staticmethod
    def right(p: int) -> int:
        return 2 * (p + 1)

    def _before(self, a: float, b: float) -> bool:
        """True when priority ``a`` belongs closer to the root than ``b``."""
        if self._minimum:
            return a < b
        return a > b

    def _swap(self, i: int, j: int) -> None:
        lst = self._list
        lst[i], lst[j] = lst[j], lst[i]

    def _sift_up(self, p: int) -> None:
        lst = self._list
        while p > 0:
            f = self.father(p)
            if not self._before(lst[p][0], lst[f][0]):
                break
            self._swap(p, f)
            p = f

    def _sift_down(self, p: int) -> None:
        lst = self._list
        count = len(lst)
        while True:
            l = self.left(p)
            r = self.right(p)
            if l >= count:
                break
            s = l
            if r < count and not self._before(lst[l][0], lst[r][0]):
                s = r
            if self._before(lst[p][0], lst[s][0]):
                break
            self._swap(p, s)
            p = s

    # -- core operations ---------------------------------------------------

    @property
    def minimum(self) -> bool:
        """Orientation of the heap: ``True`` for a min-heap."""
        return self._minimum

    def add(self, item: Any, priority: float) -> None:
        """Insert ``item`` with the given priority.

        Complexity
        ----------
        O(log n) amortized -- list append, then sift-up.
        """
        self._list.append((float(priority), item))
        self._sift_up(len(self._list) - 1)

    def remove_element_at(self, pos: int) -> Any:
        """Remove and return the item stored at array position ``pos``.

        Raises
        ------
        IndexError
            If ``pos`` is outside the heap.
        """
        lst = self._list
        if not 0 <= pos < len(lst):
            raise IndexError(f"heap position {pos} out of range")
        item = lst[pos][1]
        last = lst.pop()
        if pos < len(lst):
            lst[pos] = last
            self._sift_down(pos)
            self._sift_up(pos)
        return item

    def delete_top(self) -> Any:
        """Remove and return the item at the root.

        Raises
        ------
        IndexError
            If the heap is empty.
        """
        if not self._list:
            raise IndexError("delete from an empty EventHeap")
        return self.remove_element_at(0)

    def delete_min(self) -> Any:
        """Remove and return an item of smallest priority (min-heap only)."""
        if not self._minimum:
            raise TypeError("delete_min() on a max-oriented EventHeap")
        return self.delete_top()

    def delete_max(self) -> Any:
        """Remove and return an item of largest priority (max-heap only)."""
        if self._minimum:
            raise TypeError("delete_max() on a min-oriented EventHeap")
        return self.delete_top()

    def top_level(self) -> float:
        """Priority of the root item.  O(1).

        Raises
        ------
        IndexError
            If the heap is empty.
        """
        if not self._list:
            raise IndexError("top_level() on an empty EventHeap")
        return self._list[0][0]

    def min_level(self) -> float:
        """Smallest priority of a min-heap.  O(1)."""
        if not self._minimum:
            raise TypeError("min_level() on a max-oriented EventHeap")
        return self.top_level()

    def max_level(self) -> float:
        """Largest priority of a max-heap.  O(1)."""
        if self._minimum:
            raise TypeError("max_level() on a min-oriented EventHeap")
        return self.top_level()

    # -- utility -----------------------------------------------------------

    def element_at(self, pos: int) -> Any:
        """Item stored at array position ``pos``."""
        return self._list[pos][1]

    def level(self, pos: int) -> float:
        """Priority stored at array position ``pos``."""
        return self._list[pos][0]

    def size(self) -> int:
        """Return the current number of stored items.  O(1)."""
        return len(self._list)

    def is_empty(self) -> bool:
        return not self._list

    def copy(self) -> EventHeap:
        """Shallow copy: the stored items themselves are shared."""
        h = EventHeap(self._minimum)
        h._list = list(self._list)
        return h

    def __len__(self) -> int:
        return self.size()

    def __bool__(self) -> bool:
        return not self.is_empty()

    def __repr__(self) -> str:
        orientation = "min" if self._minimum else "max"
        return f"EventHeap({orientation}, size={self.size()})"


# ---------------------------------------------------------------------------
# 3. DisjointSet
# ---------------------------------------------------------------------------

class DisjointSet:
    """Union-find over node indices ``0 .. n-1``.

    Why union-find for partitions?
    ------------------------------
    A network partition is a connected component of the instantaneous
    link graph.  Links coming up only ever merge partitions, which
    union-find handles in near-constant time.  Links going down may split a
    partition; the aggregators then rebuild the structure from the set of
    active links.

    Time complexity
    ---------------
    ``find`` and ``union`` run in O(alpha(n)) amortized with path halving
    and union by size.  ``partition_degree`` is O(n).

    Memory layout
    -------------
    Two contiguous ``int64`` NumPy arrays: ``parent`` and ``size``.  The
    size entry is only meaningful at a root.
    """

    def __init__(self, n: int) -> None:
        self._parent = np.arange(n, dtype=np.int64)
        self._size = np.ones(n, dtype=np.int64)
        self._count = n

    @classmethod
    def from_labels(cls, labels: np.ndarray) -> DisjointSet:
        """Build the structure from a component label per node.

        Parameters
        ----------
        labels : np.ndarray
            Integer component label for every node, as returned by
            ``scipy.sparse.csgraph.connected_components``.
        """
        labels = np.asarray(labels, dtype=np.int64)
        ds = cls(len(labels))
        first = {}
        for node, label in enumerate(labels):
            root = first.setdefault(int(label), node)
            if root != node:
                ds.union(root, node)
        return ds

    def find(self, i: int) -> int:
        parent = self._parent
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = int(parent[i])
        return i

    def union(self, i: int, j: int) -> bool:
        """Merge the sets containing ``i`` and ``j``.

        Returns
        -------
        bool
            ``True`` if two different sets were merged.
        """
        ri = self.find(i)
        rj = self.find(j)
        if ri == rj:
            return False
        if self._size[ri] < self._size[rj]:
            ri, rj = rj, ri
        self._parent[rj] = ri
        self._size[ri] += self._size[rj]
        self._count -= 1
        return True

    def connected(self, i: int, j: int) -> bool:
        return self.find(i) == self.find(j)

    def component_sizes(self) -> np.ndarray:
        """Sizes of all components (one entry per root)."""
        n = len(self._parent)
        roots = np.array([self.find(i) for i in range(n)], dtype=np.int64)
        return self._size[np.unique(roots)]

    def partition_degree(self) -> int:
        """Sum over components of ``size * (n - size)``.

        Counts the ordered node pairs that cannot reach each other.
        """
        n = len(self._parent)
        sizes = self.component_sizes()
        return int(np.sum(sizes * (n - sizes)))

    @property
    def count(self) -> int:
        """Number of disjoint sets (partitions)."""
        return self._count

    def __len__(self) -> int:
        return len(self._parent)

    def __repr__(self) -> str:
        return f"DisjointSet(n={len(self)}, components={self._count})"
