"""
===============================================================================
TOPOLOGY ANALYSIS - Run Context and Diagnostics Channel
===============================================================================
Counters and diagnostics of one analysis pass.  A RunContext is created by
the caller, threaded explicitly through the solver, the scheduler and the
aggregators, and returned with the results; nothing is kept in module or
class level state.

Diagnostic kinds
----------------
    fp-correction     -- tracked connectivity disagreed with the distance
                         test at a segment boundary and was corrected.
    late-transition   -- a root arrived within tolerance after the tracked
                         state had already changed; it was skipped.
    short-contact     -- a contact window narrower than the reporting
                         threshold; usually a parameter problem.
    pair-abandoned    -- an invariant violation removed a node pair from
                         the rest of the pass.
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

FP_CORRECTION = 'fp-correction'
LATE_TRANSITION = 'late-transition'
SHORT_CONTACT = 'short-contact'
PAIR_ABANDONED = 'pair-abandoned'


@dataclass(frozen=True)
class Diagnostic:
    """One structured diagnostic record."""
    kind: str
    time: float
    pair: Optional[Tuple[int, int]]
    message: str


@dataclass
class RunContext:
    """
    Mutable counters and diagnostics of one analysis pass.

    Attributes
    ----------
    pairs_solved : int
        Node pairs handed to the contact solver.
    events_scheduled : int
        Link events inserted into the heap.
    events_applied : int
        Link events applied to the adjacency state.
    sentinels_skipped : int
        Stopper events drained and ignored.
    diagnostics : list of Diagnostic
        Corrections and violations, in the order they were recorded.
    abandoned_pairs : set of (int, int)
        Pairs removed from the pass by an invariant violation.
    """
    pairs_solved: int = 0
    events_scheduled: int = 0
    events_applied: int = 0
    sentinels_skipped: int = 0
    diagnostics: List[Diagnostic] = field(default_factory=list)
    abandoned_pairs: set = field(default_factory=set)

    def record(
        self,
        kind: str,
        time: float,
        message: str,
        pair: Optional[Tuple[int, int]] = None,
    ) -> None:
        """Append a diagnostic and report it as a warning."""
        self.diagnostics.append(Diagnostic(kind, time, pair, message))
        logger.warning("%s at t=%s pair=%s: %s", kind, time, pair, message)

    def abandon(self, pair: Tuple[int, int], time: float, reason: str) -> None:
        """Remove a node pair from the rest of the pass."""
        self.abandoned_pairs.add(pair)
        self.record(PAIR_ABANDONED, time, reason, pair)

    def count(self, kind: str) -> int:
        """Number of diagnostics of the given kind."""
        return sum(1 for d in self.diagnostics if d.kind == kind)

    @property
    def corrections(self) -> int:
        return self.count(FP_CORRECTION)

    def merge(self, other: 'RunContext') -> None:
        """Fold the counters and diagnostics of a worker context into this one.

        The other context's diagnostics were already logged where they were
        recorded, so they are not reported again.
        """
        self.pairs_solved += other.pairs_solved
        self.events_scheduled += other.events_scheduled
        self.events_applied += other.events_applied
        self.sentinels_skipped += other.sentinels_skipped
        self.diagnostics.extend(other.diagnostics)
        self.abandoned_pairs |= other.abandoned_pairs

    def summary(self) -> Dict[str, Any]:
        """Flat dictionary of counters, suitable for logging or a DataFrame row."""
        return {
            'pairs_solved': self.pairs_solved,
            'events_scheduled': self.events_scheduled,
            'events_applied': self.events_applied,
            'sentinels_skipped': self.sentinels_skipped,
            'fp_corrections': self.count(FP_CORRECTION),
            'late_transitions': self.count(LATE_TRANSITION),
            'short_contacts': self.count(SHORT_CONTACT),
            'abandoned_pairs': len(self.abandoned_pairs),
        }
